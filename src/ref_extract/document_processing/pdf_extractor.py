"""Extract references from a PDF through GROBID."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..utils.errors import DiagnosticMessages
from ..utils.logging import get_logger
from ..utils.types import ExtractedRecord, FilePath
from .grobid_client import GrobidClient
from .grobid_parser import parse_tei_references

logger = get_logger(__name__)


@dataclass
class PdfExtractionResult:
    """Records and diagnostics for one PDF file."""

    file_path: str
    records: List[ExtractedRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def extract_from_pdf(
    file_path: FilePath,
    client: GrobidClient,
    full_text: bool = False,
    log: Optional[logging.Logger] = None,
) -> PdfExtractionResult:
    """Send a PDF to GROBID and convert the returned bibliography.

    An empty bibliography is reported as a warning, not an error.

    Args:
        file_path: Path to the PDF
        client: Configured GROBID client
        full_text: Use GROBID's full-text endpoint
        log: Logger for progress and diagnostics

    Returns:
        PdfExtractionResult: Extracted records plus warnings

    Raises:
        ParsingServiceUnavailableError: If GROBID does not answer the probe
        ParsingServiceError: If GROBID rejects the request
    """
    log = log or logger
    path = str(file_path)
    result = PdfExtractionResult(file_path=path)

    log.info(f"Processing PDF via GROBID: {Path(path).name}")
    client.ensure_alive()

    tei_xml = client.process_references(path, full_text=full_text)
    if tei_xml.strip():
        try:
            result.records = parse_tei_references(tei_xml, path)
        except ET.ParseError as e:
            log.debug(f"GROBID returned malformed TEI for {path}: {e}")

    if not result.records:
        warning = DiagnosticMessages.parser_empty_result(path)
        log.warning(warning)
        result.warnings.append(warning)
    else:
        log.info(f"Extracted {len(result.records)} references from {Path(path).name}")

    return result
