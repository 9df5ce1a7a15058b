"""Unit tests for DOCX archive reading and citation payload extraction."""

import json
import zipfile
import xml.etree.ElementTree as ET

import pytest

from conftest import SINGLE_ITEM_CSL, W_NS, document_xml, escape_xml, field_runs, write_docx
from ref_extract.document_processing.archive_reader import is_allowed_part, read_archive_parts
from ref_extract.document_processing.citation_extractor import (
    collect_instruction_text,
    extract_citation_payloads,
    find_citation_spans,
    find_matching_brace,
    parse_citation_spans,
)
from ref_extract.utils.errors import ArchiveError
from ref_extract.utils.types import RecordSource


class TestArchiveReader:
    """Tests for reading allow-listed DOCX parts."""

    def test_allow_list(self):
        """Test which archive members are read."""
        assert is_allowed_part("word/document.xml")
        assert is_allowed_part("word/header1.xml")
        assert is_allowed_part("word/footer2.xml")
        assert is_allowed_part("customXml/item1.xml")
        assert not is_allowed_part("word/styles.xml")
        assert not is_allowed_part("customXml/item2.xml")
        assert not is_allowed_part("word/media/")

    def test_reads_only_allowed_parts(self, tmp_path):
        """Test that unrelated parts are not returned."""
        path = write_docx(tmp_path / "doc.docx", {
            "word/document.xml": document_xml(""),
            "word/header1.xml": "<hdr/>",
            "word/styles.xml": "<styles/>",
        })

        parts = read_archive_parts(path)

        assert [p.name for p in parts] == ["word/document.xml", "word/header1.xml"]
        assert parts[1].content == b"<hdr/>"

    def test_invalid_zip(self, tmp_path):
        """Test that a non-ZIP file raises ArchiveError."""
        path = tmp_path / "broken.docx"
        path.write_bytes(b"this is not a zip file")

        with pytest.raises(ArchiveError) as exc_info:
            read_archive_parts(path)
        assert "broken.docx" in exc_info.value.message

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises ArchiveError."""
        with pytest.raises(ArchiveError):
            read_archive_parts(tmp_path / "missing.docx")

    def test_no_allowed_parts(self, tmp_path):
        """Test that an archive without document parts raises ArchiveError."""
        path = tmp_path / "empty.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("other.txt", "hello")

        with pytest.raises(ArchiveError) as exc_info:
            read_archive_parts(path)
        assert "no word/document.xml" in exc_info.value.message


class TestBraceScanner:
    """Tests for the string-aware brace matcher."""

    def test_simple_object(self):
        """Test a flat object."""
        text = 'xx {"a": 1} yy'
        assert find_matching_brace(text, 3) == 10

    def test_nested_object(self):
        """Test nested objects and arrays."""
        text = '{"a": {"b": [{"c": 1}]}}'
        assert find_matching_brace(text, 0) == len(text) - 1

    def test_braces_inside_strings(self):
        """Test that quoted braces do not change depth."""
        text = '{"title": "Sets {A} and }B{"} trailing'
        assert text[:find_matching_brace(text, 0) + 1] == '{"title": "Sets {A} and }B{"}'

    def test_escaped_quotes(self):
        """Test that escaped quotes do not end a string."""
        text = r'{"title": "He said \"}\" loudly"}'
        assert find_matching_brace(text, 0) == len(text) - 1

    def test_unbalanced(self):
        """Test that an unterminated object returns -1."""
        assert find_matching_brace('{"a": {"b": 1}', 0) == -1


class TestCitationSpans:
    """Tests for locating citation JSON after markers."""

    def test_zotero_item_marker(self):
        """Test a Zotero citation field."""
        payload = json.dumps(SINGLE_ITEM_CSL)
        spans = find_citation_spans(f" ADDIN ZOTERO_ITEM CSL_CITATION {payload} ")

        assert len(spans) == 1
        assert json.loads(spans[0].text) == SINGLE_ITEM_CSL
        assert spans[0].source == RecordSource.CITATION_FIELD

    def test_mendeley_marker(self):
        """Test a Mendeley citation field."""
        spans = find_citation_spans(' ADDIN CSL_CITATION {"citationItems": []}')
        assert len(spans) == 1
        assert spans[0].marker == "CSL_CITATION"

    def test_bibliography_marker(self):
        """Test that the bibliography field has its own provenance."""
        spans = find_citation_spans(' ADDIN ZOTERO_BIBL {"uncited": [], "omitted": []} CSL_BIBLIOGRAPHY')
        assert len(spans) == 1
        assert spans[0].source == RecordSource.BIBLIOGRAPHY_FIELD

    def test_multiple_markers(self):
        """Test that each marker yields its own span."""
        text = ' ADDIN ZOTERO_ITEM {"n": 1} ADDIN ZOTERO_ITEM {"n": 2}'
        spans = find_citation_spans(text)
        assert [json.loads(s.text)["n"] for s in spans] == [1, 2]

    def test_marker_without_json(self):
        """Test that a marker with no following object is ignored."""
        text = ' ADDIN ZOTERO_ITEM no json here ADDIN ZOTERO_ITEM {"n": 2}'
        spans = find_citation_spans(text)
        assert len(spans) == 1
        assert json.loads(spans[0].text) == {"n": 2}

    def test_unbalanced_span_ignored(self):
        """Test that an object that never closes is ignored."""
        assert find_citation_spans(' ADDIN ZOTERO_ITEM {"n": {"m": 1}') == []

    def test_embedded_closing_brace(self):
        """Test recovering an object whose string value contains a closing brace."""
        payload = {"citationItems": [{"itemData": {"type": "book", "title": "Odd } title"}}]}
        spans = find_citation_spans(f" ADDIN ZOTERO_ITEM CSL_CITATION {json.dumps(payload)} trailing")
        assert json.loads(spans[0].text) == payload


class TestPayloadParsing:
    """Tests for JSON parsing of spans."""

    def test_bad_span_skipped(self):
        """Test that one malformed span does not stop the others."""
        spans = find_citation_spans(' ADDIN ZOTERO_ITEM {not json} ADDIN ZOTERO_ITEM {"ok": true}')
        payloads, errors = parse_citation_spans(spans, context="doc.docx")

        assert len(payloads) == 1
        assert payloads[0].data == {"ok": True}
        assert len(errors) == 1
        assert "doc.docx" in errors[0].message
        assert errors[0].raw_text == "{not json}"


class TestInstructionText:
    """Tests for collecting instruction text from document XML."""

    def test_collects_in_document_order(self):
        """Test that instrText runs are concatenated in order."""
        xml = document_xml(field_runs("first ") + "<w:r><w:t>ignored</w:t></w:r>" + field_runs("second"))
        assert collect_instruction_text(xml) == "first second"

    def test_malformed_xml(self):
        """Test that malformed XML raises a parse error."""
        with pytest.raises(ET.ParseError):
            collect_instruction_text("<w:document><unclosed>")

    def test_split_runs(self):
        """Test that JSON split across runs, even mid-marker, is recovered intact."""
        instruction = escape_xml(f" ADDIN ZOTERO_ITEM CSL_CITATION {json.dumps(SINGLE_ITEM_CSL)}")
        whole = document_xml(
            f'<w:r><w:instrText xml:space="preserve">{instruction}</w:instrText></w:r>'
        )

        for cut in (9, 15, len(instruction) // 2, len(instruction) - 3):
            head, tail = instruction[:cut], instruction[cut:]
            # Keep entity references intact
            while "&" in head[-5:] and ";" not in head[head.rfind("&"):]:
                cut += 1
                head, tail = instruction[:cut], instruction[cut:]
            split = document_xml(
                f'<w:r><w:instrText xml:space="preserve">{head}</w:instrText></w:r>'
                f'<w:r><w:instrText xml:space="preserve">{tail}</w:instrText></w:r>'
            )

            split_payloads, _ = extract_citation_payloads(split)
            whole_payloads, _ = extract_citation_payloads(whole)
            assert [p.data for p in split_payloads] == [p.data for p in whole_payloads]
            assert split_payloads[0].data == SINGLE_ITEM_CSL

    def test_namespace_agnostic(self):
        """Test that instrText is found by local name under the Word namespace."""
        xml = f'<w:document xmlns:w="{W_NS}"><w:instrText>abc</w:instrText></w:document>'
        assert collect_instruction_text(xml) == "abc"
