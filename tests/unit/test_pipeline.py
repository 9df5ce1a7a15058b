"""Unit tests for the batch pipeline and command-line interface."""

import json
from unittest import mock

import pytest

from conftest import BIBLIOGRAPHY_CSL, MULTI_ITEM_CSL, SINGLE_ITEM_CSL
from ref_extract import cli
from ref_extract.document_processing.grobid_client import GrobidClient
from ref_extract.pipeline import ExtractionPipeline, run_extraction
from ref_extract.utils.errors import OutputError, ParsingServiceUnavailableError
from ref_extract.utils.file_utils import expand_input_paths, resolve_output_path, write_output


class TestExtractionPipeline:
    """Tests for ExtractionPipeline."""

    def test_deduplicates_across_files(self, make_docx):
        """Test that the same citation in two files is merged."""
        first = make_docx("one.docx", payloads=[SINGLE_ITEM_CSL, MULTI_ITEM_CSL])
        second = make_docx("two.docx", payloads=[SINGLE_ITEM_CSL, BIBLIOGRAPHY_CSL])

        result = run_extraction([first, second], max_workers=2)

        assert result.stats.total_citations == 5
        assert result.stats.unique_items == 4
        assert result.stats.duplicates_removed == 1
        assert result.stats.files_processed == 2
        assert result.stats.errors == 0
        assert [r.author[0].family for r in result.items] == ["Davis", "Johnson", "Smith", "Williams"]

    def test_order_independent_of_workers(self, make_docx):
        """Test that concurrency does not change the result."""
        paths = [make_docx(f"doc{i}.docx", payloads=[SINGLE_ITEM_CSL, MULTI_ITEM_CSL]) for i in range(4)]

        serial = run_extraction(paths, max_workers=1)
        parallel = run_extraction(paths, max_workers=4)

        assert [r.to_csl() for r in serial.items] == [r.to_csl() for r in parallel.items]

    def test_bad_file_does_not_abort(self, make_docx, tmp_path):
        """Test that a corrupt file is reported while others succeed."""
        good = make_docx(payloads=[SINGLE_ITEM_CSL])
        bad = tmp_path / "bad.docx"
        bad.write_bytes(b"not a zip")

        result = run_extraction([bad, good])

        assert len(result.items) == 1
        assert result.stats.errors == 1
        assert result.errors[0].error_type == "ArchiveError"
        assert "bad.docx" in str(result.errors[0])
        assert result.stats.files_processed == 1

    def test_unsupported_file(self, tmp_path):
        """Test that unknown extensions are reported as errors."""
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        result = run_extraction([path])
        assert result.errors[0].error_type == "UnsupportedFileError"
        assert result.is_empty

    def test_pdf_skipped_without_grobid(self, tmp_path):
        """Test that PDFs are skipped with a warning when no service is configured."""
        pdf = tmp_path / "paper.pdf"
        pdf.write_bytes(b"%PDF-1.4")

        result = run_extraction([pdf])

        assert result.errors == []
        assert "Skipping PDF" in result.warnings[0]
        assert result.stats.files_processed == 0

    def test_pdf_service_unavailable(self, make_docx, tmp_path):
        """Test that an unavailable service fails only the PDF."""
        pdf = tmp_path / "paper.pdf"
        pdf.write_bytes(b"%PDF-1.4")
        docx = make_docx(payloads=[SINGLE_ITEM_CSL])
        client = mock.Mock(spec=GrobidClient)
        client.ensure_alive.side_effect = ParsingServiceUnavailableError("http://grobid:8070")

        result = ExtractionPipeline(client=client).run([pdf, docx])

        assert len(result.items) == 1
        assert result.errors[0].error_type == "ParsingServiceUnavailableError"
        assert "docker run" in result.errors[0].message

    def test_relaxed_policy(self, make_docx):
        """Test that the relaxed policy knob is passed to validation."""
        payload = {"citationItems": [{"itemData": {"type": "book", "title": "Draft", "author": "bad"}}]}
        path = make_docx(payloads=[payload])

        assert len(run_extraction([path], relaxed=True).items) == 1
        assert run_extraction([path], relaxed=False).items == []


class TestFileUtils:
    """Tests for input expansion and output writing."""

    def test_expand_input_paths(self, tmp_path):
        """Test directory expansion, de-duplication, and missing inputs."""
        (tmp_path / "sub").mkdir()
        a = tmp_path / "a.docx"
        b = tmp_path / "sub" / "b.DOCX"
        lock = tmp_path / "~$a.docx"
        pdf = tmp_path / "c.pdf"
        for path in (a, b, lock, pdf):
            path.write_bytes(b"x")
        log = mock.Mock()

        files = expand_input_paths([tmp_path, a, tmp_path / "missing.docx"], extensions=[".docx"], log=log)

        assert files == sorted([a.resolve(), b.resolve()])
        log.warning.assert_called_once()

    def test_output_to_directory(self, tmp_path):
        """Test the default file name inside a directory."""
        assert resolve_output_path(tmp_path, "ris") == tmp_path / "references.ris"
        assert resolve_output_path(tmp_path, "bibtex") == tmp_path / "references.bib"

        written = write_output("[]", tmp_path, "csl")
        assert written == tmp_path / "references.json"
        assert written.read_text(encoding="utf-8") == "[]"

    def test_output_missing_parent(self, tmp_path):
        """Test that a missing parent directory is an error."""
        with pytest.raises(OutputError):
            resolve_output_path(tmp_path / "nope" / "out.bib", "bibtex")


class TestCli:
    """Tests for the command-line entry point."""

    def test_stdout_csl(self, make_docx, capsys):
        """Test default CSL output on stdout."""
        path = make_docx(payloads=[SINGLE_ITEM_CSL])

        exit_code = cli.main([str(path), "--log-level", "silent"])

        captured = capsys.readouterr()
        assert exit_code == 0
        items = json.loads(captured.out)
        assert items[0]["DOI"] == "10.1234/test.2023.001"

    def test_output_file(self, make_docx, tmp_path):
        """Test writing BibTeX into a directory."""
        path = make_docx(payloads=[SINGLE_ITEM_CSL])
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        exit_code = cli.main([str(path), "-f", "bibtex", "-o", str(out_dir), "--log-level", "silent"])

        assert exit_code == 0
        assert (out_dir / "references.bib").read_text(encoding="utf-8").startswith("@article{Smith2023Test,")

    def test_fail_on_empty(self, make_docx):
        """Test that an empty result fails only with --fail-on-empty."""
        path = make_docx(extra_body="<w:r><w:t>No fields</w:t></w:r>")

        assert cli.main([str(path), "--log-level", "silent"]) == 0
        assert cli.main([str(path), "--fail-on-empty", "--log-level", "silent"]) == 1

    def test_no_inputs(self, tmp_path):
        """Test that missing inputs fail."""
        assert cli.main([str(tmp_path / "missing.docx"), "--log-level", "silent"]) == 1

    def test_summary_printed(self, make_docx, capsys):
        """Test that statistics go to stderr, not stdout."""
        path = make_docx(payloads=[SINGLE_ITEM_CSL, SINGLE_ITEM_CSL])

        cli.main([str(path), "--log-level", "info"])

        captured = capsys.readouterr()
        assert "Duplicates removed: 1" in captured.err
        assert "Duplicates removed" not in captured.out

    def test_invalid_grobid_url(self, make_docx):
        """Test that a malformed service URL fails before any file is read."""
        path = make_docx(payloads=[SINGLE_ITEM_CSL])
        assert cli.main([str(path), "--pdf-via-grobid", "grobid:8070", "--log-level", "silent"]) == 1
