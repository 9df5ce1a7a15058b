"""Parser for GROBID TEI bibliography output."""

import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..utils.logging import get_logger
from ..utils.types import BibliographicRecord, ExtractedRecord, RecordSource
from ..utils.xml_utils import children, element_text, first_child, iter_elements

logger = get_logger(__name__)

IDNO_FIELDS = {
    "DOI": "DOI",
    "PMID": "PMID",
    "PMCID": "PMCID",
    "ISSN": "ISSN",
    "ISBN": "ISBN",
}

_YEAR = re.compile(r"\d{4}")


def _first_title(node: Optional[ET.Element]) -> Optional[str]:
    for title in children(node, "title"):
        text = element_text(title)
        if text:
            return text
    return None


def _title_level(node: Optional[ET.Element]) -> Optional[str]:
    title = first_child(node, "title")
    return title.get("level") if title is not None else None


def _parse_person(node: ET.Element) -> Optional[Dict[str, str]]:
    """Build a CSL name from an author/editor element."""
    pers_name = first_child(node, "persName")
    if pers_name is not None:
        forenames = [element_text(f) for f in children(pers_name, "forename")]
        given = " ".join(f for f in forenames if f)
        family = element_text(first_child(pers_name, "surname"))
        name = {}
        if family:
            name["family"] = family
        if given:
            name["given"] = given
        if name:
            return name

    literal = element_text(node)
    if literal:
        return {"literal": literal}
    return None


def _parse_people(node: Optional[ET.Element], role: str) -> List[Dict[str, str]]:
    people = []
    for person in children(node, role):
        name = _parse_person(person)
        if name:
            people.append(name)
    return people


def _parse_date(node: Optional[ET.Element]) -> Optional[Dict[str, Any]]:
    if node is None:
        return None

    when = node.get("when")
    if when:
        parts = []
        for piece in when.split("-")[:3]:
            if not piece.isdigit():
                break
            parts.append(int(piece))
        if parts:
            return {"date-parts": [parts]}

    text = element_text(node)
    if text:
        match = _YEAR.search(text)
        if match:
            return {"date-parts": [[int(match.group())]]}
        return {"literal": text}
    return None


def _parse_scope(scope: ET.Element) -> Optional[str]:
    if scope.get("unit") == "page":
        start = scope.get("from")
        end = scope.get("to")
        if start and end:
            return f"{start}-{end}"
        if start:
            return start
    return element_text(scope)


def _parse_identifiers(bibl: ET.Element) -> Dict[str, str]:
    identifiers = {}
    for idno in iter_elements(bibl, "idno"):
        kind = (idno.get("type") or "").upper()
        field_name = IDNO_FIELDS.get(kind)
        value = element_text(idno)
        if field_name and value and field_name not in identifiers:
            identifiers[field_name] = value

    for ptr in iter_elements(bibl, "ptr"):
        target = ptr.get("target")
        if target:
            identifiers["URL"] = target
            break

    return identifiers


def parse_bibl_struct(bibl: ET.Element) -> Optional[Dict[str, Any]]:
    """Convert one ``biblStruct`` into a CSL item dict.

    Article-level data comes from ``analytic`` and container-level data from
    ``monogr``. Without an article title the container title becomes the
    title and the item is treated as a book.

    Args:
        bibl: A TEI ``biblStruct`` element

    Returns:
        Optional[Dict[str, Any]]: CSL item, or None if no title can be found
    """
    analytic = first_child(bibl, "analytic")
    monogr = first_child(bibl, "monogr")

    analytic_title = _first_title(analytic)
    monogr_title = _first_title(monogr)

    item: Dict[str, Any] = {}
    if analytic_title:
        item["title"] = analytic_title
        if monogr_title:
            item["container-title"] = monogr_title
        if first_child(monogr, "meeting") is not None:
            item["type"] = "paper-conference"
        elif _title_level(monogr) == "m":
            item["type"] = "chapter"
        else:
            item["type"] = "article-journal"
    elif monogr_title:
        item["title"] = monogr_title
        item["type"] = "book"
    else:
        return None

    authors = _parse_people(analytic, "author") or _parse_people(monogr, "author")
    if authors:
        item["author"] = authors
    editors = _parse_people(monogr, "editor")
    if editors:
        item["editor"] = editors

    imprint = first_child(monogr, "imprint")
    for scope in children(imprint, "biblScope") + children(monogr, "biblScope"):
        unit = scope.get("unit")
        value = _parse_scope(scope)
        if not value:
            continue
        if unit == "volume":
            item.setdefault("volume", value)
        elif unit == "issue":
            item.setdefault("issue", value)
        elif unit == "page":
            item.setdefault("page", value)

    issued = _parse_date(first_child(imprint, "date"))
    if issued:
        item["issued"] = issued

    publisher = element_text(first_child(imprint, "publisher"))
    if publisher:
        item["publisher"] = publisher
    place = element_text(first_child(imprint, "pubPlace"))
    if place:
        item["publisher-place"] = place

    item.update(_parse_identifiers(bibl))
    return item


def parse_tei_references(
    xml_content: Union[str, bytes],
    source_file: str,
) -> List[ExtractedRecord]:
    """Extract bibliographic records from GROBID TEI XML.

    Every ``biblStruct`` is visited wherever it sits in the document.

    Args:
        xml_content: TEI XML returned by GROBID
        source_file: Path of the PDF the XML describes

    Returns:
        List[ExtractedRecord]: Records in document order

    Raises:
        xml.etree.ElementTree.ParseError: If the XML is malformed
    """
    root = ET.fromstring(xml_content)
    records = []

    for bibl in iter_elements(root, "biblStruct"):
        item = parse_bibl_struct(bibl)
        if item is None:
            continue
        try:
            record = BibliographicRecord.model_validate(item)
        except ValidationError as e:
            logger.debug(f"Skipping unparseable TEI entry in {source_file}: {e.error_count()} errors")
            continue
        records.append(ExtractedRecord(
            record=record,
            source=RecordSource.EXTERNAL_PARSER,
            source_file=source_file,
        ))

    logger.debug(f"Parsed {len(records)} references from TEI for {source_file}")
    return records
