"""Two-tier validation of citation payloads and bibliographic records.

Strict validation runs first. When it fails and the relaxed policy is on, a
record keeps whatever top-level fields validate, as long as its ``type`` is
usable. The outcome is a tagged :class:`ValidationResult` so callers decide
what to keep.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..utils.logging import get_logger
from ..utils.types import BibliographicRecord, ExtractedRecord, RecordSource

logger = get_logger(__name__)

# Each salvage round removes at least one field
MAX_SALVAGE_ROUNDS = 50


class ValidationStatus(Enum):
    """Outcome of validating one record."""

    VALID = "valid"
    PARTIALLY_VALID = "partially_valid"
    REJECTED = "rejected"


@dataclass
class ValidationResult:
    """Tagged result of record validation."""

    status: ValidationStatus
    record: Optional[BibliographicRecord] = None
    issues: List[str] = field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def valid(cls, record: BibliographicRecord) -> "ValidationResult":
        return cls(ValidationStatus.VALID, record=record)

    @classmethod
    def partially_valid(cls, record: BibliographicRecord, issues: List[str]) -> "ValidationResult":
        return cls(ValidationStatus.PARTIALLY_VALID, record=record, issues=issues)

    @classmethod
    def rejected(cls, reason: str, issues: Optional[List[str]] = None) -> "ValidationResult":
        return cls(ValidationStatus.REJECTED, issues=issues or [], reason=reason)

    @property
    def accepted(self) -> bool:
        return self.status is not ValidationStatus.REJECTED


class CitationItem(BaseModel):
    """One entry of a citation field's ``citationItems`` array."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[Union[str, int]] = None
    uris: Optional[List[str]] = None
    uri: Optional[List[str]] = None
    item_data: Optional[Dict[str, Any]] = Field(default=None, alias="itemData")
    locator: Optional[str] = None
    label: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    suppress_author: Optional[bool] = Field(default=None, alias="suppress-author")
    author_only: Optional[bool] = Field(default=None, alias="author-only")


class CitationField(BaseModel):
    """The JSON object stored in a Zotero/Mendeley citation field."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    citation_id: Optional[Union[str, int]] = Field(default=None, alias="citationID")
    citation_items: Optional[List[CitationItem]] = Field(default=None, alias="citationItems")
    properties: Optional[Dict[str, Any]] = None
    schema_url: Optional[str] = Field(default=None, alias="schema")


def _describe(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg', 'invalid value')}"


def _has_type(data: Dict[str, Any]) -> bool:
    value = data.get("type")
    return isinstance(value, str) and bool(value.strip())


def _viability_check(record: BibliographicRecord) -> Optional[str]:
    if record.is_viable():
        return None
    return "record has no title and no identifiers"


def validate_record(data: Any, relaxed: bool = True) -> ValidationResult:
    """Validate a CSL item, salvaging what it can when ``relaxed`` is set.

    Relaxed mode drops every top-level field that fails validation and keeps
    the rest, provided the item has a non-empty ``type``. Records without a
    title and without any identifier are always rejected.

    Args:
        data: Candidate CSL item (normally a dict)
        relaxed: Whether to fall back to partial acceptance

    Returns:
        ValidationResult: Valid, partially valid, or rejected
    """
    if not isinstance(data, dict):
        return ValidationResult.rejected(f"expected an object, got {type(data).__name__}")

    try:
        record = BibliographicRecord.model_validate(data)
    except ValidationError as e:
        first_issues = [_describe(err) for err in e.errors()]
    else:
        reason = _viability_check(record)
        if reason:
            return ValidationResult.rejected(reason)
        return ValidationResult.valid(record)

    if not relaxed:
        return ValidationResult.rejected("strict validation failed", first_issues)
    if not _has_type(data):
        return ValidationResult.rejected("missing or empty type", first_issues)

    candidate = dict(data)
    issues = []
    for _ in range(MAX_SALVAGE_ROUNDS):
        try:
            record = BibliographicRecord.model_validate(candidate)
            break
        except ValidationError as e:
            bad_fields = {err["loc"][0] for err in e.errors() if err.get("loc")}
            bad_fields.discard("type")
            if not bad_fields:
                return ValidationResult.rejected("record could not be salvaged", first_issues)
            for err in e.errors():
                issues.append(f"dropped {_describe(err)}")
            for name in bad_fields:
                candidate.pop(name, None)
    else:
        return ValidationResult.rejected("record could not be salvaged", first_issues)

    reason = _viability_check(record)
    if reason:
        return ValidationResult.rejected(reason, issues)
    return ValidationResult.partially_valid(record, issues)


def _raw_items(payload: Any) -> List[Any]:
    if not isinstance(payload, dict):
        return []
    items = payload.get("citationItems")
    return items if isinstance(items, list) else []


def decode_citation_payload(
    payload: Any,
    source_file: str,
    source: RecordSource = RecordSource.CITATION_FIELD,
    relaxed: bool = True,
    log: Optional[logging.Logger] = None,
) -> List[ExtractedRecord]:
    """Turn one parsed citation field into extracted records.

    The envelope is validated first. If it is malformed and ``relaxed`` is
    set, any ``citationItems`` array in the raw object is still walked and
    each item validated on its own.

    Args:
        payload: Parsed JSON from a citation span
        source_file: Path of the document the payload came from
        source: Provenance to attach to each record
        relaxed: Whether to use the relaxed fallback
        log: Logger for rejected items

    Returns:
        List[ExtractedRecord]: Accepted records, in citation order
    """
    log = log or logger

    try:
        citation = CitationField.model_validate(payload)
        items = [item.item_data for item in (citation.citation_items or [])]
    except ValidationError as e:
        if not relaxed:
            log.debug(f"Rejected citation field in {source_file}: {e.error_count()} schema errors")
            return []
        log.debug(f"Citation field in {source_file} failed schema check, using relaxed decoding")
        items = [
            item.get("itemData") for item in _raw_items(payload) if isinstance(item, dict)
        ]

    records = []
    for item_data in items:
        if item_data is None:
            continue
        result = validate_record(item_data, relaxed=relaxed)
        if not result.accepted:
            log.debug(f"Skipped citation item in {source_file}: {result.reason}")
            continue
        if result.issues:
            log.debug(f"Accepted partially valid item in {source_file}: {'; '.join(result.issues)}")
        records.append(ExtractedRecord(
            record=result.record,
            source=source,
            source_file=source_file,
            raw=item_data,
            issues=list(result.issues),
        ))

    return records
