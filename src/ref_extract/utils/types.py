"""Type definitions for ref-extract."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

FilePath = Union[str, Path]

IDENTIFIER_FIELDS = ("DOI", "ISBN", "ISSN", "PMID", "PMCID", "URL")


class InputKind(Enum):
    """Kind of input file."""

    DOCX = "docx"
    PDF = "pdf"
    UNKNOWN = "unknown"

    @classmethod
    def from_extension(cls, extension: str) -> "InputKind":
        """Get input kind from file extension.

        Args:
            extension: File extension (e.g., ".docx")

        Returns:
            InputKind: Input kind
        """
        extension = extension.lower().lstrip(".")

        if extension == "docx":
            return cls.DOCX
        elif extension == "pdf":
            return cls.PDF
        else:
            return cls.UNKNOWN


class RecordSource(str, Enum):
    """Where an extracted record came from."""

    CITATION_FIELD = "citation-field"
    BIBLIOGRAPHY_FIELD = "bibliography-field"
    EXTERNAL_PARSER = "external-parser"


class OutputFormat(str, Enum):
    """Supported output formats."""

    CSL = "csl"
    BIBLATEX = "biblatex"
    BIBTEX = "bibtex"
    RIS = "ris"

    @property
    def extension(self) -> str:
        if self is OutputFormat.CSL:
            return ".json"
        if self is OutputFormat.RIS:
            return ".ris"
        return ".bib"

    @classmethod
    def from_string(cls, value: Union[str, "OutputFormat"]) -> "OutputFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown output format '{value}' (expected one of: {valid})")


class Name(BaseModel):
    """A person name, either structured or a single literal."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    family: Optional[str] = None
    given: Optional[str] = None
    literal: Optional[str] = None
    dropping_particle: Optional[str] = Field(default=None, alias="dropping-particle")
    non_dropping_particle: Optional[str] = Field(default=None, alias="non-dropping-particle")
    suffix: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.family or self.given or self.literal)


class IssuedDate(BaseModel):
    """A CSL date: ``date-parts`` or a free-text literal."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    date_parts: Optional[List[List[Union[int, str]]]] = Field(default=None, alias="date-parts")
    season: Optional[Union[int, str]] = None
    circa: Optional[Union[bool, int, str]] = None
    literal: Optional[str] = None
    raw: Optional[str] = None


class BibliographicRecord(BaseModel):
    """A bibliographic item in CSL-JSON shape.

    Known CSL fields are typed. Anything else is kept as an extra field and
    written back out by :meth:`to_csl`.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[Union[str, int]] = None
    type: str = Field(min_length=1)
    citation_key: Optional[str] = Field(default=None, alias="citation-key")
    citation_label: Optional[str] = Field(default=None, alias="citation-label")

    # Titles and containers
    title: Optional[str] = None
    title_short: Optional[str] = Field(default=None, alias="title-short")
    container_title: Optional[str] = Field(default=None, alias="container-title")
    container_title_short: Optional[str] = Field(default=None, alias="container-title-short")
    collection_title: Optional[str] = Field(default=None, alias="collection-title")
    publisher: Optional[str] = None
    publisher_place: Optional[str] = Field(default=None, alias="publisher-place")
    event: Optional[str] = None
    event_place: Optional[str] = Field(default=None, alias="event-place")
    genre: Optional[str] = None
    medium: Optional[str] = None
    source: Optional[str] = None

    # Identifiers
    DOI: Optional[str] = None
    ISBN: Optional[str] = None
    ISSN: Optional[str] = None
    PMID: Optional[str] = None
    PMCID: Optional[str] = None
    URL: Optional[str] = None

    # People
    author: Optional[List[Name]] = None
    editor: Optional[List[Name]] = None
    translator: Optional[List[Name]] = None
    container_author: Optional[List[Name]] = Field(default=None, alias="container-author")
    collection_editor: Optional[List[Name]] = Field(default=None, alias="collection-editor")
    editorial_director: Optional[List[Name]] = Field(default=None, alias="editorial-director")
    director: Optional[List[Name]] = None
    interviewer: Optional[List[Name]] = None
    recipient: Optional[List[Name]] = None
    reviewed_author: Optional[List[Name]] = Field(default=None, alias="reviewed-author")
    composer: Optional[List[Name]] = None
    illustrator: Optional[List[Name]] = None

    # Dates
    issued: Optional[IssuedDate] = None
    accessed: Optional[IssuedDate] = None
    event_date: Optional[IssuedDate] = Field(default=None, alias="event-date")
    original_date: Optional[IssuedDate] = Field(default=None, alias="original-date")
    submitted: Optional[IssuedDate] = None

    # Numbers
    volume: Optional[Union[str, int]] = None
    issue: Optional[Union[str, int]] = None
    number: Optional[Union[str, int]] = None
    edition: Optional[Union[str, int]] = None
    page: Optional[str] = None
    page_first: Optional[Union[str, int]] = Field(default=None, alias="page-first")
    number_of_pages: Optional[Union[str, int]] = Field(default=None, alias="number-of-pages")

    # Free text
    abstract: Optional[str] = None
    note: Optional[str] = None
    keyword: Optional[str] = None
    language: Optional[str] = None

    @field_validator(
        "author", "editor", "translator", "container_author", "collection_editor",
        "editorial_director", "director", "interviewer", "recipient",
        "reviewed_author", "composer", "illustrator",
    )
    @classmethod
    def _drop_empty_names(cls, names: Optional[List[Name]]) -> Optional[List[Name]]:
        if names is None:
            return None
        return [name for name in names if not name.is_empty()]

    @field_validator("type")
    @classmethod
    def _type_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("type must not be blank")
        return value

    @field_validator("page", mode="before")
    @classmethod
    def _page_as_string(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def identifiers(self) -> Dict[str, str]:
        """Identifier fields that carry a non-blank value."""
        found = {}
        for name in IDENTIFIER_FIELDS:
            value = getattr(self, name)
            if value and str(value).strip():
                found[name] = str(value)
        return found

    def is_viable(self) -> bool:
        """A record needs a title or at least one identifier to be kept."""
        return bool(self.title and self.title.strip()) or bool(self.identifiers)

    def to_csl(self) -> Dict[str, Any]:
        """Serialize to a CSL-JSON dict, including extra fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_csl(cls, data: Dict[str, Any]) -> "BibliographicRecord":
        return cls.model_validate(data)


@dataclass
class ExtractedRecord:
    """A bibliographic record plus where it was found."""

    record: BibliographicRecord
    source: RecordSource
    source_file: str
    raw: Optional[Any] = None
    issues: List[str] = field(default_factory=list)


@dataclass
class ArchivePart:
    """One allow-listed part read from a DOCX container."""

    name: str
    content: bytes

    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")
