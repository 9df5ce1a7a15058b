"""Convert normalized records to CSL-JSON, BibLaTeX, BibTeX, or RIS.

BibLaTeX and BibTeX are written with bibtexparser, RIS with rispy. Entry
keys in their output are then replaced with derived citation keys. If a
library raises, the manual renderers in :mod:`manual_renderers` are used
instead.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import bibtexparser
import rispy
from bibtexparser.bibdatabase import BibDatabase
from bibtexparser.bparser import BibTexParser
from bibtexparser.bwriter import BibTexWriter

from ..normalization.normalizer import generate_cite_key
from ..utils.logging import get_logger
from ..utils.types import BibliographicRecord, OutputFormat
from . import manual_renderers
from .manual_renderers import (
    biblatex_type,
    bibtex_type,
    bracket_value,
    format_names,
    record_year,
    ris_type,
    single_line,
    split_page_range,
)

logger = get_logger(__name__)

BIBLATEX_FIELD_ORDER = [
    "author", "editor", "title", "date", "journaltitle", "booktitle", "series",
    "volume", "number", "pages", "edition", "publisher", "location",
    "institution", "isbn", "issn", "doi", "url", "language", "keywords",
    "abstract", "note",
]

BIBTEX_FIELD_ORDER = [
    "author", "editor", "title", "year", "journal", "booktitle", "series",
    "volume", "number", "pages", "edition", "publisher", "address", "school",
    "institution", "isbn", "issn", "doi", "url", "language", "keywords",
    "abstract", "note",
]

JOURNAL_RIS_TYPES = {"JOUR", "MGZN", "NEWS"}

_RIS_COUNTER_LINE = re.compile(r"^\d+\.$")


@dataclass
class KeyedRecord:
    """A record with its entry id and derived citation key."""

    record: BibliographicRecord
    entry_id: str
    cite_key: str


def assign_entry_keys(records: List[BibliographicRecord]) -> List[KeyedRecord]:
    """Give every record an entry id: its own id, its citation key, or ``ref-{n}``."""
    keyed = []
    for index, record in enumerate(records, start=1):
        cite_key = generate_cite_key(record)
        if record.id is not None and str(record.id) != "":
            entry_id = str(record.id)
        else:
            entry_id = cite_key or f"ref-{index}"
        keyed.append(KeyedRecord(record=record, entry_id=entry_id, cite_key=cite_key))
    return keyed


def to_csl_json(keyed: List[KeyedRecord], minify: bool = False) -> str:
    items = []
    for entry in keyed:
        item = entry.record.to_csl()
        item.setdefault("id", entry.entry_id)
        items.append(item)
    if minify:
        return json.dumps(items, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(items, ensure_ascii=False, indent=2)


def _range(page: Optional[str]) -> Optional[str]:
    if not page:
        return None
    start, end = split_page_range(page)
    return f"{start}--{end}" if start and end else page


def _put(entry: Dict[str, str], name: str, value: Any) -> None:
    if value is None or value == "" or value == []:
        return
    entry[name] = bracket_value(name, str(value))


def _common_bracket_fields(entry: Dict[str, str], record: BibliographicRecord) -> None:
    _put(entry, "author", " and ".join(format_names(record.author)))
    _put(entry, "editor", " and ".join(format_names(record.editor)))
    _put(entry, "title", record.title)
    _put(entry, "series", record.collection_title)
    _put(entry, "volume", record.volume)
    _put(entry, "number", record.issue if record.issue not in (None, "") else record.number)
    _put(entry, "pages", _range(record.page))
    _put(entry, "edition", record.edition)
    _put(entry, "isbn", record.ISBN)
    _put(entry, "issn", record.ISSN)
    _put(entry, "doi", record.DOI)
    _put(entry, "url", record.URL)
    _put(entry, "language", record.language)
    _put(entry, "keywords", record.keyword)
    _put(entry, "abstract", record.abstract)
    _put(entry, "note", record.note)


def biblatex_entry(keyed: KeyedRecord) -> Dict[str, str]:
    """bibtexparser entry dict for one record in BibLaTeX vocabulary."""
    record = keyed.record
    entry_type = biblatex_type(record.type)
    entry = {"ENTRYTYPE": entry_type, "ID": keyed.entry_id}
    _common_bracket_fields(entry, record)
    _put(entry, "date", record_year(record))
    container = "journaltitle" if entry_type == "article" else "booktitle"
    _put(entry, container, record.container_title)
    if entry_type in ("thesis", "report"):
        _put(entry, "institution", record.publisher)
    else:
        _put(entry, "publisher", record.publisher)
    _put(entry, "location", record.publisher_place)
    return entry


def bibtex_entry(keyed: KeyedRecord) -> Dict[str, str]:
    """bibtexparser entry dict for one record in BibTeX vocabulary."""
    record = keyed.record
    entry_type = bibtex_type(record.type)
    entry = {"ENTRYTYPE": entry_type, "ID": keyed.entry_id}
    _common_bracket_fields(entry, record)
    _put(entry, "year", record_year(record))
    container = "booktitle" if entry_type in ("incollection", "inproceedings") else "journal"
    _put(entry, container, record.container_title)
    if entry_type == "phdthesis":
        _put(entry, "school", record.publisher)
    elif entry_type == "techreport":
        _put(entry, "institution", record.publisher)
    else:
        _put(entry, "publisher", record.publisher)
    _put(entry, "address", record.publisher_place)
    return entry


def _write_bibtex(entries: List[Dict[str, str]], field_order: List[str]) -> str:
    database = BibDatabase()
    database.entries = entries

    writer = BibTexWriter()
    writer.indent = "  "
    writer.order_entries_by = None
    writer.display_order = field_order
    return writer.write(database)


def _check_readable(text: str, expected: int) -> None:
    """Raise if bibtexparser cannot read back every written entry."""
    parser = BibTexParser(ignore_nonstandard_types=False, interpolate_strings=False)
    found = len(bibtexparser.loads(text, parser=parser).entries)
    if found != expected:
        raise ValueError(f"wrote {expected} entries but {found} could be read back")


def replace_bracket_keys(text: str, keyed: List[KeyedRecord]) -> str:
    """Swap each entry's opening key for its citation key, in entry order."""
    position = 0
    for entry in keyed:
        pattern = re.compile(r"(@\w+\{)" + re.escape(entry.entry_id) + r"(,)")
        match = pattern.search(text, position)
        if match is None:
            continue
        replacement = f"{match.group(1)}{entry.cite_key}{match.group(2)}"
        text = text[:match.start()] + replacement + text[match.end():]
        position = match.start() + len(replacement)
    return text


def ris_entry(keyed: KeyedRecord) -> Dict[str, Any]:
    """rispy entry dict for one record."""
    record = keyed.record
    ref_type = ris_type(record.type)
    entry: Dict[str, Any] = {"type_of_reference": ref_type, "id": keyed.entry_id}

    authors = format_names(record.author)
    if authors:
        entry["authors"] = authors
    editors = format_names(record.editor)
    if editors:
        entry["secondary_authors"] = editors
    if record.title:
        entry["title"] = record.title
    year = record_year(record)
    if year:
        entry["year"] = year
    if record.container_title:
        key = "journal_name" if ref_type in JOURNAL_RIS_TYPES else "secondary_title"
        entry[key] = record.container_title
    if record.volume not in (None, ""):
        entry["volume"] = str(record.volume)
    if record.issue not in (None, ""):
        entry["number"] = str(record.issue)
    if record.page:
        start, end = split_page_range(record.page)
        if start:
            entry["start_page"] = start
        if end:
            entry["end_page"] = end
    if record.DOI:
        entry["doi"] = record.DOI
    if record.URL:
        entry["urls"] = [record.URL]
    if record.publisher:
        entry["publisher"] = record.publisher
    if record.publisher_place:
        entry["place_published"] = record.publisher_place
    serial = record.ISSN or record.ISBN
    if serial:
        entry["issn"] = serial
    if record.edition not in (None, ""):
        entry["edition"] = str(record.edition)
    if record.abstract:
        entry["abstract"] = record.abstract
    if record.language:
        entry["language"] = record.language
    if record.keyword:
        entry["keywords"] = [kw.strip() for kw in record.keyword.split(",") if kw.strip()]
    if record.note:
        entry["notes"] = [record.note]

    for key, value in entry.items():
        if isinstance(value, str):
            entry[key] = single_line(value)
        elif isinstance(value, list):
            entry[key] = [single_line(item) for item in value]
    return entry


def replace_ris_keys(text: str, keyed: List[KeyedRecord]) -> str:
    """Swap each record's ``ID`` line for its citation key, in record order."""
    position = 0
    for entry in keyed:
        pattern = re.compile(r"(?m)^(ID  - )" + re.escape(entry.entry_id) + r"[ \t]*$")
        match = pattern.search(text, position)
        if match is None:
            continue
        replacement = f"{match.group(1)}{entry.cite_key}"
        text = text[:match.start()] + replacement + text[match.end():]
        position = match.start() + len(replacement)
    return text


def _clean_ris(text: str) -> str:
    lines = [line for line in text.splitlines() if not _RIS_COUNTER_LINE.match(line.strip())]
    return "\n".join(lines).strip("\n") + "\n"


class FormatConverter:
    """Render normalized records in one output format."""

    def __init__(self, output_format: Union[str, OutputFormat] = OutputFormat.CSL,
                 minify: bool = False, log: Optional[logging.Logger] = None):
        self.output_format = OutputFormat.from_string(output_format)
        self.minify = minify
        self.log = log or logger

    def convert(self, records: List[BibliographicRecord]) -> str:
        """Convert records to a single text document.

        Args:
            records: Normalized records, in output order

        Returns:
            str: The rendered document
        """
        self.log.debug(f"Converting {len(records)} items to {self.output_format.value}")
        keyed = assign_entry_keys(records)

        if self.output_format is OutputFormat.CSL:
            return to_csl_json(keyed, self.minify)
        if self.output_format is OutputFormat.BIBLATEX:
            return self._bracket(keyed, biblatex_entry, BIBLATEX_FIELD_ORDER,
                                 manual_renderers.render_biblatex)
        if self.output_format is OutputFormat.BIBTEX:
            return self._bracket(keyed, bibtex_entry, BIBTEX_FIELD_ORDER,
                                 manual_renderers.render_bibtex)
        return self._ris(keyed)

    def _bracket(self, keyed, build_entry, field_order, fallback) -> str:
        if not keyed:
            return ""
        try:
            output = _write_bibtex([build_entry(entry) for entry in keyed], field_order)
            output = replace_bracket_keys(output, keyed)
            _check_readable(output, len(keyed))
            return output
        except Exception as e:
            self.log.debug(f"bibtexparser {self.output_format.value} error: {e}")
            return fallback([entry.record for entry in keyed])

    def _ris(self, keyed) -> str:
        if not keyed:
            return ""
        try:
            output = rispy.dumps([ris_entry(entry) for entry in keyed])
            return replace_ris_keys(_clean_ris(output), keyed)
        except Exception as e:
            self.log.debug(f"rispy RIS error: {e}")
            return manual_renderers.render_ris([entry.record for entry in keyed])


def convert_records(
    records: List[BibliographicRecord],
    output_format: Union[str, OutputFormat] = OutputFormat.CSL,
    minify: bool = False,
    log: Optional[logging.Logger] = None,
) -> str:
    """Convert records to the requested output format."""
    return FormatConverter(output_format, minify=minify, log=log).convert(records)
