"""Unit tests for DOCX citation extraction."""

from unittest import mock

import pytest

from conftest import (
    BIBLIOGRAPHY_CSL,
    MULTI_ITEM_CSL,
    SINGLE_ITEM_CSL,
    document_xml,
    field_runs,
    write_docx,
    zotero_instruction,
)
from ref_extract.document_processing.docx_extractor import extract_from_docx
from ref_extract.utils.errors import ArchiveError
from ref_extract.utils.types import RecordSource


class TestExtractFromDocx:
    """Tests for extract_from_docx."""

    def test_single_citation(self, make_docx):
        """Test extracting one Zotero citation."""
        path = make_docx(payloads=[SINGLE_ITEM_CSL])

        result = extract_from_docx(path)

        assert result.has_citation_fields
        assert len(result.records) == 1
        record = result.records[0].record
        assert record.title == "A Test Article About Testing"
        assert [a.family for a in record.author] == ["Smith", "Doe"]
        assert result.records[0].source_file == str(path)
        assert result.warnings == []

    def test_multiple_fields(self, make_docx):
        """Test several fields in one document, including multi-item citations."""
        path = make_docx(payloads=[SINGLE_ITEM_CSL, MULTI_ITEM_CSL])

        result = extract_from_docx(path)

        assert [r.record.DOI for r in result.records] == [
            "10.1234/test.2023.001",
            "10.5678/multi.001",
            None,
        ]
        assert result.records[2].record.ISBN == "978-1234567890"

    def test_bibliography_field(self, make_docx):
        """Test that ZOTERO_BIBL payloads get bibliography provenance."""
        body = field_runs(zotero_instruction(BIBLIOGRAPHY_CSL, marker="ZOTERO_BIBL"))
        path = make_docx(extra_body=body)

        result = extract_from_docx(path)

        assert len(result.records) == 1
        assert result.records[0].source == RecordSource.BIBLIOGRAPHY_FIELD

    def test_mendeley_field(self, make_docx):
        """Test a Mendeley CSL_CITATION field."""
        body = field_runs(zotero_instruction(SINGLE_ITEM_CSL, marker="CSL_CITATION"))
        path = make_docx(extra_body=body)

        result = extract_from_docx(path)
        assert result.records[0].record.DOI == "10.1234/test.2023.001"

    def test_header_and_footer_parts(self, make_docx):
        """Test that citations in headers are extracted."""
        header = document_xml(field_runs(zotero_instruction(MULTI_ITEM_CSL)))
        path = make_docx(payloads=[SINGLE_ITEM_CSL], extra_parts={"word/header1.xml": header})

        result = extract_from_docx(path)
        assert len(result.records) == 3

    def test_malformed_payload_skipped(self, make_docx):
        """Test that bad JSON in one field does not stop the others."""
        body = field_runs(" ADDIN ZOTERO_ITEM CSL_CITATION {broken: json} ")
        path = make_docx(payloads=[SINGLE_ITEM_CSL], extra_body=body)

        result = extract_from_docx(path)

        assert len(result.records) == 1
        assert len(result.payload_errors) == 1

    def test_no_citation_fields_warning(self, make_docx):
        """Test the diagnostic for a document without fields."""
        path = make_docx(extra_body="<w:r><w:t>Plain text (Smith, 2023)</w:t></w:r>")
        log = mock.Mock()

        result = extract_from_docx(path, log=log)

        assert result.records == []
        assert len(result.warnings) == 1
        assert "No Zotero/Mendeley citation fields" in result.warnings[0]
        log.warning.assert_called_once()

    def test_word_bookmarks_warning(self, make_docx):
        """Test the diagnostic for Word cross-reference bookmarks."""
        path = make_docx(extra_body='<w:bookmarkStart w:id="0" w:name="_Ref123456"/>')

        result = extract_from_docx(path)

        assert result.has_word_bookmarks
        assert "Word bookmark-style citations" in result.warnings[0]

    def test_word_bibliography_warning(self, make_docx):
        """Test the diagnostic for Word's native bibliography sources."""
        sources = (
            '<b:Sources xmlns:b="http://schemas.openxmlformats.org/officeDocument/2006/bibliography">'
            "</b:Sources>"
        )
        path = make_docx(extra_parts={"customXml/item1.xml": sources})

        result = extract_from_docx(path)

        assert result.has_word_bibliography
        assert "Word bookmark-style citations" in result.warnings[0]

    def test_malformed_part_skipped(self, tmp_path):
        """Test that a malformed XML part is skipped, not fatal."""
        path = write_docx(tmp_path / "mixed.docx", {
            "word/document.xml": document_xml(field_runs(zotero_instruction(SINGLE_ITEM_CSL))),
            "word/footer1.xml": "<w:ftr><unclosed>",
        })

        result = extract_from_docx(path)
        assert len(result.records) == 1

    def test_invalid_archive(self, tmp_path):
        """Test that a corrupt file raises ArchiveError."""
        path = tmp_path / "corrupt.docx"
        path.write_bytes(b"PK\x03\x04 not really")

        with pytest.raises(ArchiveError):
            extract_from_docx(path)
