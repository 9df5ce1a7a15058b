"""Deduplication, merging, trimming, and ordering of extracted records."""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from ..utils.logging import get_logger
from ..utils.types import BibliographicRecord, ExtractedRecord

logger = get_logger(__name__)

UNKNOWN = "unknown"
TITLE_KEY_LENGTH = 100
TITLE_STOP_WORDS = frozenset({"a", "an", "the", "on", "in", "of", "for", "to"})

_DOI_URL_PREFIX = re.compile(r"^https?://(dx\.)?doi\.org/")
_DOI_PREFIX = re.compile(r"^doi:")
_TRAILING_SLASHES = re.compile(r"/+$")
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_LETTER = re.compile(r"[^a-z]")
_YEAR = re.compile(r"\d{4}")


@dataclass
class NormalizationResult:
    """Normalized records and the number of duplicates folded away."""

    records: List[ExtractedRecord] = field(default_factory=list)
    duplicates_removed: int = 0

    @property
    def items(self) -> List[BibliographicRecord]:
        return [extracted.record for extracted in self.records]


def normalize_doi(doi: str) -> str:
    doi = doi.strip().lower()
    doi = _DOI_URL_PREFIX.sub("", doi)
    doi = _DOI_PREFIX.sub("", doi)
    return doi.strip()


def normalize_url(url: str) -> str:
    return _TRAILING_SLASHES.sub("", url.strip().lower())


def normalize_title(title: Optional[str]) -> str:
    return _NON_ALNUM.sub("", (title or "").lower())[:TITLE_KEY_LENGTH]


def extract_year(record: BibliographicRecord) -> str:
    """Four-digit year of a record as a string, or ``"unknown"``."""
    issued = record.issued
    if issued is None:
        return UNKNOWN
    if issued.date_parts and issued.date_parts[0] and issued.date_parts[0][0]:
        return str(issued.date_parts[0][0])
    if issued.literal:
        match = _YEAR.search(issued.literal)
        if match:
            return match.group()
    return UNKNOWN


def first_author_family(record: BibliographicRecord) -> str:
    """Lowercased, letters-only family name of the first author.

    Falls back to the first word of a literal name. Returns ``"unknown"`` when
    the record has no usable first author.
    """
    if record.author:
        first = record.author[0]
        if first.family:
            return _NON_LETTER.sub("", first.family.lower())
        if first.literal:
            words = first.literal.split()
            return _NON_LETTER.sub("", words[0].lower()) if words else ""
    return UNKNOWN


def dedupe_key(record: BibliographicRecord) -> str:
    """Key under which duplicate records collide.

    DOI takes priority over URL, which takes priority over an
    author/year/title composite. Blank identifiers are ignored.
    """
    doi = normalize_doi(record.DOI) if record.DOI else ""
    if doi:
        return f"doi:{doi}"
    url = normalize_url(record.URL) if record.URL else ""
    if url:
        return f"url:{url}"
    return f"key:{first_author_family(record)}|{extract_year(record)}|{normalize_title(record.title)}"


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def merge_fields(canonical: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Fill gaps in ``canonical`` from ``incoming`` without overwriting anything.

    Returns a new dict; neither argument is modified.
    """
    merged = dict(canonical)
    for key, value in incoming.items():
        if _is_blank(value):
            continue
        if _is_blank(merged.get(key)):
            merged[key] = value
    return merged


def _trim_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return [_trim_name(entry) if isinstance(entry, dict) else entry for entry in value]
    return value


def _trim_name(name: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value.strip() if isinstance(value, str) else value for key, value in name.items()}


def trim_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Strip whitespace from every string field, including person names."""
    return {key: _trim_value(value) for key, value in data.items()}


def sort_key(record: BibliographicRecord) -> Tuple[str, str, str]:
    return first_author_family(record), extract_year(record), normalize_title(record.title)


def deduplicate_records(
    extracted: List[ExtractedRecord],
    log: Optional[logging.Logger] = None,
) -> Tuple[List[ExtractedRecord], int]:
    """Collapse records that share a dedupe key.

    The first record seen for a key is canonical; later ones only fill its
    empty fields.

    Args:
        extracted: Records in discovery order
        log: Logger for removed duplicates

    Returns:
        Tuple of unique records (first-seen order) and duplicates removed
    """
    log = log or logger
    canonical: Dict[str, ExtractedRecord] = {}
    merged_fields: Dict[str, Dict[str, Any]] = {}
    duplicates_removed = 0

    for item in extracted:
        key = dedupe_key(item.record)
        if key in canonical:
            duplicates_removed += 1
            log.debug(f"Duplicate removed: {key}")
            merged_fields[key] = merge_fields(merged_fields[key], item.record.to_csl())
        else:
            canonical[key] = item
            merged_fields[key] = item.record.to_csl()

    unique = [
        replace(first, record=BibliographicRecord.from_csl(merged_fields[key]))
        for key, first in canonical.items()
    ]
    return unique, duplicates_removed


def normalize_records(
    extracted: List[ExtractedRecord],
    log: Optional[logging.Logger] = None,
) -> NormalizationResult:
    """Deduplicate, merge, trim, and sort extracted records.

    Records with neither a title nor an identifier are dropped first.

    Args:
        extracted: Records from every input file, in discovery order
        log: Logger for debug output

    Returns:
        NormalizationResult: Sorted unique records and the duplicate count
    """
    log = log or logger
    log.debug(f"Normalizing {len(extracted)} references")

    viable = []
    for item in extracted:
        if item.record.is_viable():
            viable.append(item)
        else:
            log.debug(f"Dropping record without title or identifiers from {item.source_file}")

    unique, duplicates_removed = deduplicate_records(viable, log)

    trimmed = [
        replace(item, record=BibliographicRecord.from_csl(trim_fields(item.record.to_csl())))
        for item in unique
    ]
    ordered = sorted(trimmed, key=lambda item: sort_key(item.record))

    log.debug(f"After normalization: {len(ordered)} unique items")
    return NormalizationResult(records=ordered, duplicates_removed=duplicates_removed)


def _first_title_word(title: Optional[str]) -> str:
    for word in (title or "").lower().split():
        cleaned = _NON_LETTER.sub("", word)
        if cleaned and cleaned not in TITLE_STOP_WORDS:
            return cleaned.capitalize()
    return "Untitled"


def generate_cite_key(record: BibliographicRecord) -> str:
    """Citation key of the form ``{Author}{Year}{TitleWord}``, e.g. ``Smith2023Test``."""
    author = first_author_family(record) or UNKNOWN
    author_key = author[0].upper() + author[1:]
    return f"{author_key}{extract_year(record)}{_first_title_word(record.title)}"
