"""Extract citation records from a DOCX file."""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..utils.errors import DiagnosticMessages, PayloadError
from ..utils.logging import get_logger
from ..utils.types import ExtractedRecord, FilePath
from .archive_reader import read_archive_parts
from .citation_extractor import extract_citation_payloads
from .record_validator import decode_citation_payload

logger = get_logger(__name__)

WORD_BOOKMARK_PATTERN = re.compile(r'<w:bookmarkStart[^>]*w:name="_Ref')
WORD_BIBLIOGRAPHY_PATTERN = re.compile(r"<b:Sources")


@dataclass
class DocxExtractionResult:
    """Records and diagnostics for one DOCX file."""

    file_path: str
    records: List[ExtractedRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    payload_errors: List[PayloadError] = field(default_factory=list)
    has_citation_fields: bool = False
    has_word_bookmarks: bool = False
    has_word_bibliography: bool = False


def extract_from_docx(
    file_path: FilePath,
    relaxed: bool = True,
    log: Optional[logging.Logger] = None,
) -> DocxExtractionResult:
    """Extract every Zotero/Mendeley citation from a DOCX file.

    Args:
        file_path: Path to the .docx file
        relaxed: Whether citation items that fail strict validation may be
            salvaged
        log: Logger for progress and diagnostics

    Returns:
        DocxExtractionResult: Extracted records plus warnings

    Raises:
        ArchiveError: If the file is not a readable DOCX container
    """
    log = log or logger
    path = str(file_path)
    name = Path(path).name
    result = DocxExtractionResult(file_path=path)

    log.info(f"Processing DOCX: {name}")

    for part in read_archive_parts(path):
        text = part.text()
        if WORD_BOOKMARK_PATTERN.search(text):
            result.has_word_bookmarks = True
        if WORD_BIBLIOGRAPHY_PATTERN.search(text):
            result.has_word_bibliography = True

        context = f"{name}:{part.name}"
        try:
            payloads, errors = extract_citation_payloads(part.content, context, log)
        except ET.ParseError as e:
            log.debug(f"Skipping malformed XML part {context}: {e}")
            continue

        result.payload_errors.extend(errors)
        if payloads:
            result.has_citation_fields = True
            log.debug(f"Found {len(payloads)} citation fields in {context}")

        for payload in payloads:
            result.records.extend(decode_citation_payload(
                payload.data,
                source_file=path,
                source=payload.source,
                relaxed=relaxed,
                log=log,
            ))

    if not result.has_citation_fields:
        if result.has_word_bookmarks or result.has_word_bibliography:
            warning = DiagnosticMessages.word_native_citations(path)
        else:
            warning = DiagnosticMessages.no_citation_fields(path)
        log.warning(warning)
        result.warnings.append(warning)
    else:
        log.info(f"Extracted {len(result.records)} citations from {name}")

    return result
