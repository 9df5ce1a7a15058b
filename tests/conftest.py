"""Shared fixtures for ref-extract tests."""

import json
import zipfile
from pathlib import Path

import pytest

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

SINGLE_ITEM_CSL = {
    "citationID": "abc123",
    "properties": {"formattedCitation": "(Smith & Doe, 2023)", "plainCitation": "(Smith & Doe, 2023)"},
    "citationItems": [
        {
            "id": 1,
            "uris": ["http://zotero.org/users/1/items/ABC123"],
            "itemData": {
                "id": 1,
                "type": "article-journal",
                "title": "A Test Article About Testing",
                "author": [
                    {"family": "Smith", "given": "John"},
                    {"family": "Doe", "given": "Jane"},
                ],
                "container-title": "Journal of Testing",
                "volume": "42",
                "issue": "1",
                "page": "1-15",
                "issued": {"date-parts": [[2023]]},
                "DOI": "10.1234/test.2023.001",
            },
        }
    ],
    "schema": "https://github.com/citation-style-language/schema/raw/master/csl-citation.json",
}

MULTI_ITEM_CSL = {
    "citationID": "def456",
    "citationItems": [
        {
            "id": 2,
            "itemData": {
                "id": 2,
                "type": "article-journal",
                "title": "Multiple Citations in One Field",
                "author": [{"family": "Johnson", "given": "Alice"}],
                "issued": {"date-parts": [[2022]]},
                "DOI": "10.5678/multi.001",
            },
        },
        {
            "id": 3,
            "itemData": {
                "id": 3,
                "type": "book",
                "title": "The Complete Guide to Testing",
                "author": [
                    {"family": "Williams", "given": "Bob"},
                    {"family": "Brown", "given": "Carol"},
                ],
                "publisher": "Academic Press",
                "publisher-place": "New York",
                "issued": {"date-parts": [[2021]]},
                "ISBN": "978-1234567890",
            },
        },
    ],
}

BIBLIOGRAPHY_CSL = {
    "citationID": "bib001",
    "citationItems": [
        {
            "id": 4,
            "itemData": {
                "id": 4,
                "type": "paper-conference",
                "title": "Conference Paper on Citation Extraction",
                "author": [{"family": "Davis", "given": "Eve"}],
                "container-title": "Proceedings of the Testing Conference",
                "issued": {"date-parts": [[2020]]},
                "DOI": "10.9999/conf.2020.005",
            },
        }
    ],
}


def field_runs(instruction: str) -> str:
    """Wrap instruction text in the begin/instr/separate/end runs of a Word field."""
    return (
        '<w:r><w:fldChar w:fldCharType="begin"/></w:r>'
        f'<w:r><w:instrText xml:space="preserve">{instruction}</w:instrText></w:r>'
        '<w:r><w:fldChar w:fldCharType="separate"/></w:r>'
        "<w:r><w:t>(citation)</w:t></w:r>"
        '<w:r><w:fldChar w:fldCharType="end"/></w:r>'
    )


def escape_xml(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def zotero_instruction(payload: dict, marker: str = "ZOTERO_ITEM CSL_CITATION") -> str:
    return escape_xml(f" ADDIN {marker} {json.dumps(payload)} ")


def document_xml(body: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{W_NS}"><w:body><w:p>{body}</w:p></w:body></w:document>'
    )


def write_docx(path: Path, parts: dict) -> Path:
    """Write a minimal DOCX archive holding the given parts."""
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("[Content_Types].xml", '<?xml version="1.0"?><Types/>')
        for name, content in parts.items():
            archive.writestr(name, content)
    return path


@pytest.fixture
def make_docx(tmp_path):
    """Factory building a DOCX whose body holds the given Zotero payloads."""

    def _make(name="paper.docx", payloads=(), extra_body="", extra_parts=None):
        body = "".join(field_runs(zotero_instruction(p)) for p in payloads) + extra_body
        parts = {"word/document.xml": document_xml(body)}
        parts.update(extra_parts or {})
        return write_docx(tmp_path / name, parts)

    return _make


@pytest.fixture
def sample_record_data():
    """The single-item fixture's CSL item."""
    return json.loads(json.dumps(SINGLE_ITEM_CSL["citationItems"][0]["itemData"]))
