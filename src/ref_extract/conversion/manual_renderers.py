"""Plain-text renderers used when the formatting libraries fail.

Only the core fields are written, in a fixed order.
"""

import re
from typing import List, Optional

from ..normalization.normalizer import UNKNOWN, extract_year, generate_cite_key
from ..utils.types import BibliographicRecord, Name

# Fields biblatex reads verbatim
VERBATIM_FIELDS = frozenset({"doi", "url"})

_LATEX_SPECIAL = re.compile(r"(?<!\\)([&%_#$])")
_BRACE = re.compile(r"(?<!\\)[{}]")

BIBLATEX_TYPES = {
    "article-journal": "article",
    "article-magazine": "article",
    "article-newspaper": "article",
    "book": "book",
    "chapter": "incollection",
    "paper-conference": "inproceedings",
    "thesis": "thesis",
    "report": "report",
    "webpage": "online",
    "dataset": "dataset",
    "software": "software",
}

BIBTEX_TYPES = {
    "article-journal": "article",
    "article-magazine": "article",
    "article-newspaper": "article",
    "book": "book",
    "chapter": "incollection",
    "paper-conference": "inproceedings",
    "thesis": "phdthesis",
    "report": "techreport",
}

RIS_TYPES = {
    "article-journal": "JOUR",
    "article-magazine": "MGZN",
    "article-newspaper": "NEWS",
    "book": "BOOK",
    "chapter": "CHAP",
    "paper-conference": "CONF",
    "thesis": "THES",
    "report": "RPRT",
    "webpage": "ELEC",
    "dataset": "DATA",
    "software": "COMP",
}


def biblatex_type(csl_type: str) -> str:
    return BIBLATEX_TYPES.get(csl_type, "misc")


def bibtex_type(csl_type: str) -> str:
    return BIBTEX_TYPES.get(csl_type, "misc")


def ris_type(csl_type: str) -> str:
    return RIS_TYPES.get(csl_type, "GEN")


def format_name(name: Name) -> str:
    """``Family, Given`` for structured names, the literal otherwise."""
    if name.literal:
        return name.literal
    if name.family and name.given:
        return f"{name.family}, {name.given}"
    return name.family or ""


def format_names(names: Optional[List[Name]]) -> List[str]:
    return [rendered for rendered in (format_name(n) for n in names or []) if rendered]


def record_year(record: BibliographicRecord) -> Optional[str]:
    year = extract_year(record)
    return None if year == UNKNOWN else year


def split_page_range(page: str):
    """Split ``start-end`` on the first hyphen."""
    start, _, end = page.partition("-")
    return start.strip(), end.strip().lstrip("-").strip()


def _braces_balanced(value: str) -> bool:
    depth = 0
    for match in _BRACE.finditer(value):
        depth += 1 if match.group() == "{" else -1
        if depth < 0:
            return False
    return depth == 0


def escape_bibtex_value(value: str) -> str:
    """Make a field value safe inside a braced BibTeX value.

    LaTeX special characters are backslash-escaped. Balanced braces are kept
    for case protection; if they do not balance, all of them are removed.
    """
    if not _braces_balanced(value):
        value = _BRACE.sub("", value)
    return _LATEX_SPECIAL.sub(r"\\\1", value)


def single_line(value: str) -> str:
    """Collapse line breaks and runs of whitespace into single spaces."""
    return " ".join(value.split())


def bracket_value(name: str, value: str) -> str:
    return value if name in VERBATIM_FIELDS else escape_bibtex_value(value)


def _text(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _bracket_entry(entry_type: str, key: str, fields: List[tuple]) -> str:
    lines = [f"  {name} = {{{bracket_value(name, value)}}}" for name, value in fields if value]
    return f"@{entry_type}{{{key},\n" + ",\n".join(lines) + "\n}"


def render_biblatex_entry(record: BibliographicRecord) -> str:
    entry_type = biblatex_type(record.type)
    container_field = "journaltitle" if entry_type == "article" else "booktitle"
    authors = format_names(record.author)
    fields = [
        ("author", " and ".join(authors)),
        ("title", record.title),
        ("year", record_year(record)),
        (container_field, record.container_title),
        ("volume", _text(record.volume)),
        ("number", _text(record.issue)),
        ("pages", record.page),
        ("doi", record.DOI),
        ("url", record.URL),
        ("publisher", record.publisher),
        ("isbn", record.ISBN),
    ]
    return _bracket_entry(entry_type, generate_cite_key(record), fields)


def render_bibtex_entry(record: BibliographicRecord) -> str:
    authors = format_names(record.author)
    fields = [
        ("author", " and ".join(authors)),
        ("title", record.title),
        ("year", record_year(record)),
        ("journal", record.container_title),
        ("volume", _text(record.volume)),
        ("number", _text(record.issue)),
        ("pages", record.page),
        ("doi", record.DOI),
        ("url", record.URL),
        ("publisher", record.publisher),
    ]
    return _bracket_entry(bibtex_type(record.type), generate_cite_key(record), fields)


def _ris_line(tag: str, value) -> str:
    return f"{tag}  - {single_line(str(value))}"


def render_ris_entry(record: BibliographicRecord) -> str:
    lines = [_ris_line("TY", ris_type(record.type)), _ris_line("ID", generate_cite_key(record))]

    for author in format_names(record.author):
        lines.append(_ris_line("AU", author))
    if record.title:
        lines.append(_ris_line("TI", record.title))
    year = record_year(record)
    if year:
        lines.append(_ris_line("PY", year))
    if record.container_title:
        lines.append(_ris_line("JO", record.container_title))
    if _text(record.volume):
        lines.append(_ris_line("VL", record.volume))
    if _text(record.issue):
        lines.append(_ris_line("IS", record.issue))
    if record.page:
        start, end = split_page_range(record.page)
        if start:
            lines.append(_ris_line("SP", start))
        if end:
            lines.append(_ris_line("EP", end))
    if record.DOI:
        lines.append(_ris_line("DO", record.DOI))
    if record.URL:
        lines.append(_ris_line("UR", record.URL))
    if record.publisher:
        lines.append(_ris_line("PB", record.publisher))

    lines.append("ER  - ")
    lines.append("")
    return "\n".join(lines)


def render_biblatex(records: List[BibliographicRecord]) -> str:
    return "\n\n".join(render_biblatex_entry(r) for r in records)


def render_bibtex(records: List[BibliographicRecord]) -> str:
    return "\n\n".join(render_bibtex_entry(r) for r in records)


def render_ris(records: List[BibliographicRecord]) -> str:
    return "\n".join(render_ris_entry(r) for r in records)
