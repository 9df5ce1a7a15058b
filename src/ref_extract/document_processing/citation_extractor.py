"""Recover embedded citation JSON from Word field instruction text.

Zotero and Mendeley store each citation as a field whose instruction text is
``ADDIN ZOTERO_ITEM CSL_CITATION {...json...}`` (or ``ADDIN CSL_CITATION``
for Mendeley). Word splits that instruction across any number of
``w:instrText`` runs, so all runs of a part are concatenated before the JSON
is located with a string-aware brace scanner.
"""

import json
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from ..utils.errors import PayloadError
from ..utils.logging import get_logger
from ..utils.types import RecordSource
from ..utils.xml_utils import iter_elements

logger = get_logger(__name__)

INSTRUCTION_TEXT = "instrText"

ZOTERO_ITEM = "ZOTERO_ITEM"
ZOTERO_BIBLIOGRAPHY = "ZOTERO_BIBL"
CSL_CITATION = "CSL_CITATION"

CITATION_MARKER = re.compile(r"ADDIN (ZOTERO_ITEM|ZOTERO_BIBL|CSL_CITATION) ")


@dataclass
class CitationSpan:
    """A balanced ``{...}`` span found after a citation marker."""

    marker: str
    start: int
    end: int
    text: str

    @property
    def source(self) -> RecordSource:
        if self.marker == ZOTERO_BIBLIOGRAPHY:
            return RecordSource.BIBLIOGRAPHY_FIELD
        return RecordSource.CITATION_FIELD


@dataclass
class CitationPayload:
    """A citation span that parsed as JSON."""

    span: CitationSpan
    data: Any

    @property
    def source(self) -> RecordSource:
        return self.span.source


def collect_instruction_text(xml_content: Union[bytes, str]) -> str:
    """Concatenate the text of every instruction-text run in document order.

    Args:
        xml_content: Raw XML of one document part

    Returns:
        str: All instruction text of the part as one string

    Raises:
        xml.etree.ElementTree.ParseError: If the part is not well-formed XML
    """
    root = ET.fromstring(xml_content)
    return "".join(node.text or "" for node in iter_elements(root, INSTRUCTION_TEXT))


def find_matching_brace(text: str, start: int) -> int:
    """Index of the ``}`` that closes the ``{`` at ``start``, or -1.

    Braces inside double-quoted strings are ignored, and backslash escapes
    inside strings are honoured.
    """
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index

    return -1


def find_citation_spans(text: str) -> List[CitationSpan]:
    """Locate the JSON object that follows each citation marker.

    A marker whose ``{`` would only be found past the next marker is ignored,
    as is a span that never closes.
    """
    markers = list(CITATION_MARKER.finditer(text))
    spans = []

    for position, match in enumerate(markers):
        limit = markers[position + 1].start() if position + 1 < len(markers) else len(text)
        open_brace = text.find("{", match.end(), limit)
        if open_brace == -1:
            logger.debug(f"No JSON after {match.group(1)} marker at {match.start()}")
            continue

        close_brace = find_matching_brace(text, open_brace)
        if close_brace == -1:
            logger.debug(f"Unbalanced JSON after {match.group(1)} marker at {match.start()}")
            continue

        spans.append(CitationSpan(
            marker=match.group(1),
            start=open_brace,
            end=close_brace + 1,
            text=text[open_brace:close_brace + 1],
        ))

    return spans


def parse_citation_spans(
    spans: List[CitationSpan],
    context: str = "document",
    log: Optional[logging.Logger] = None,
) -> Tuple[List[CitationPayload], List[PayloadError]]:
    """Parse each span as JSON, skipping the ones that fail.

    Args:
        spans: Spans from :func:`find_citation_spans`
        context: Label used in error messages (usually file and part name)
        log: Logger for skipped spans

    Returns:
        Tuple of parsed payloads and the errors for skipped spans
    """
    log = log or logger
    payloads = []
    errors = []

    for span in spans:
        try:
            payloads.append(CitationPayload(span=span, data=json.loads(span.text)))
        except json.JSONDecodeError as e:
            error = PayloadError(context, str(e), span.text)
            log.debug(error.message)
            errors.append(error)

    return payloads, errors


def extract_citation_payloads(
    xml_content: Union[bytes, str],
    context: str = "document",
    log: Optional[logging.Logger] = None,
) -> Tuple[List[CitationPayload], List[PayloadError]]:
    """Run the whole payload extraction for one XML part."""
    text = collect_instruction_text(xml_content)
    if not text:
        return [], []
    return parse_citation_spans(find_citation_spans(text), context, log)
