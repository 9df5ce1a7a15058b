"""Batch extraction across many input files.

Files are extracted concurrently. Normalization then runs once, on a single
thread, over the combined result, because deduplication shares one key map
across all files.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from tqdm import tqdm

from .config.settings import get_settings
from .document_processing.docx_extractor import extract_from_docx
from .document_processing.grobid_client import GrobidClient
from .document_processing.pdf_extractor import extract_from_pdf
from .normalization.normalizer import normalize_records
from .utils.errors import RefExtractError, UnsupportedFileError
from .utils.logging import get_logger
from .utils.types import BibliographicRecord, ExtractedRecord, FilePath, InputKind

logger = get_logger(__name__)


@dataclass
class FileError:
    """A failure that stopped one input file from being processed."""

    path: str
    message: str
    error_type: str

    def __str__(self) -> str:
        return f"{Path(self.path).name}: {self.message}"


@dataclass
class ExtractionStats:
    """Counts reported after a batch run."""

    total_citations: int = 0
    unique_items: int = 0
    duplicates_removed: int = 0
    files_processed: int = 0
    errors: int = 0


@dataclass
class FileOutcome:
    """What one input file produced."""

    path: str
    records: List[ExtractedRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[FileError] = None
    processed: bool = False


@dataclass
class ExtractionResult:
    """Normalized records plus diagnostics for a whole batch."""

    records: List[ExtractedRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[FileError] = field(default_factory=list)
    stats: ExtractionStats = field(default_factory=ExtractionStats)

    @property
    def items(self) -> List[BibliographicRecord]:
        return [extracted.record for extracted in self.records]

    @property
    def is_empty(self) -> bool:
        return not self.records


class ExtractionPipeline:
    """Extract, validate, and normalize references from DOCX and PDF files."""

    def __init__(
        self,
        grobid_url: Optional[str] = None,
        full_text: bool = False,
        max_workers: Optional[int] = None,
        relaxed: Optional[bool] = None,
        client: Optional[GrobidClient] = None,
        show_progress: bool = False,
        log: Optional[logging.Logger] = None,
    ):
        """Initialize the pipeline.

        Args:
            grobid_url: GROBID base URL; PDFs are skipped when neither this nor
                ``client`` is given
            full_text: Use GROBID's full-text endpoint for PDFs
            max_workers: Number of files processed concurrently
            relaxed: Whether citation items may be salvaged after failing
                strict validation
            client: Preconfigured GROBID client
            show_progress: Display a progress bar on stderr
            log: Logger for progress and diagnostics
        """
        settings = get_settings()

        self.log = log or logger
        self.full_text = full_text
        self.max_workers = max(1, max_workers or settings.extraction.max_workers)
        self.relaxed = settings.extraction.relaxed_validation if relaxed is None else relaxed
        self.client = client or (GrobidClient(base_url=grobid_url) if grobid_url else None)
        self.show_progress = show_progress

    def process_file(self, path: FilePath) -> FileOutcome:
        """Extract records from one file.

        Raises:
            RefExtractError: If the file cannot be processed
        """
        path = str(path)
        outcome = FileOutcome(path=path)
        kind = InputKind.from_extension(Path(path).suffix)

        if kind is InputKind.DOCX:
            result = extract_from_docx(path, relaxed=self.relaxed, log=self.log)
        elif kind is InputKind.PDF:
            if self.client is None:
                warning = f"Skipping PDF (use --pdf-via-grobid to enable): {Path(path).name}"
                self.log.warning(warning)
                outcome.warnings.append(warning)
                return outcome
            result = extract_from_pdf(path, self.client, full_text=self.full_text, log=self.log)
        else:
            raise UnsupportedFileError(path, Path(path).suffix or "(none)")

        outcome.records = result.records
        outcome.warnings = result.warnings
        outcome.processed = True
        return outcome

    def _process_safely(self, path: FilePath) -> FileOutcome:
        try:
            return self.process_file(path)
        except RefExtractError as e:
            self.log.error(f"Error processing {path}: {e.message}")
            return FileOutcome(path=str(path), error=FileError(str(path), e.message, type(e).__name__))
        except Exception as e:
            self.log.error(f"Unexpected error processing {path}: {str(e)}", exc_info=e)
            return FileOutcome(path=str(path), error=FileError(str(path), str(e), type(e).__name__))

    def run(self, paths: Sequence[FilePath]) -> ExtractionResult:
        """Process every file, then normalize the combined records.

        A failure in one file is recorded and does not stop the others.

        Args:
            paths: Input files

        Returns:
            ExtractionResult: Normalized records, warnings, errors, and stats
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            outcomes = list(tqdm(
                executor.map(self._process_safely, paths),
                total=len(paths),
                desc="Extracting references",
                disable=not self.show_progress,
            ))

        result = ExtractionResult()
        extracted: List[ExtractedRecord] = []
        for outcome in outcomes:
            extracted.extend(outcome.records)
            result.warnings.extend(outcome.warnings)
            if outcome.error:
                result.errors.append(outcome.error)
            if outcome.processed:
                result.stats.files_processed += 1

        normalized = normalize_records(extracted, log=self.log)
        result.records = normalized.records
        result.stats.total_citations = len(extracted)
        result.stats.unique_items = len(normalized.records)
        result.stats.duplicates_removed = normalized.duplicates_removed
        result.stats.errors = len(result.errors)
        return result


def run_extraction(paths: Sequence[FilePath], **kwargs) -> ExtractionResult:
    """Run an :class:`ExtractionPipeline` with the given options."""
    return ExtractionPipeline(**kwargs).run(paths)
