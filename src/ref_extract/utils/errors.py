"""Error types for ref-extract."""

from typing import Any, Dict, Optional

from .types import FilePath

GROBID_DOCKER_IMAGE = "lfoppiano/grobid:0.8.0"


def _truncate(text: Optional[str], limit: int = 200) -> str:
    if not text:
        return ""
    return text[:limit]


class RefExtractError(Exception):
    """Base exception class for ref-extract."""

    def __init__(self, message: str = "An error occurred", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(RefExtractError):
    """Raised when there's an issue with configuration settings."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(f"Configuration error: {message}")


class FileReadError(RefExtractError):
    """Raised when an input file cannot be read."""

    def __init__(self, path: FilePath, reason: str = "unreadable"):
        self.path = str(path)
        super().__init__(
            f"Failed to read {self.path}: {reason}",
            details={"path": self.path, "reason": reason},
        )


class ArchiveError(RefExtractError):
    """Raised when a DOCX container is corrupt or holds no citation source parts."""

    def __init__(self, path: FilePath, reason: str = "invalid archive"):
        self.path = str(path)
        self.reason = reason
        super().__init__(
            f"Archive error for {self.path}: {reason}",
            details={"path": self.path, "reason": reason},
        )


class PayloadError(RefExtractError):
    """Raised when an embedded citation payload is not valid JSON."""

    def __init__(self, context: str, reason: str, raw_text: Optional[str] = None):
        self.context = context
        self.reason = reason
        self.raw_text = _truncate(raw_text)
        super().__init__(
            f"Invalid citation payload in {context}: {reason}",
            details={"context": context, "reason": reason, "raw": self.raw_text},
        )


class ParsingServiceUnavailableError(RefExtractError):
    """Raised when the GROBID service cannot be reached."""

    def __init__(self, url: str, reason: str = "service not responding"):
        self.url = url
        self.reason = reason
        message = (
            f"GROBID service unavailable at {url}: {reason}\n"
            "To process PDFs, start GROBID locally:\n"
            f"  docker run -t --rm -p 8070:8070 {GROBID_DOCKER_IMAGE}\n"
            "Then retry with:\n"
            "  --pdf-via-grobid http://localhost:8070"
        )
        super().__init__(message, details={"url": url, "reason": reason})


class ParsingServiceError(RefExtractError):
    """Raised when GROBID answers a processing request with an error."""

    def __init__(
        self,
        path: FilePath,
        reason: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.path = str(path)
        self.status_code = status_code
        self.body = _truncate(body)
        super().__init__(
            f"GROBID processing failed for {self.path}: {reason}",
            details={"path": self.path, "status": status_code, "body": self.body},
        )


class UnsupportedFileError(RefExtractError):
    """Raised for input files with an extension the pipeline cannot process."""

    def __init__(self, path: FilePath, extension: str):
        self.path = str(path)
        super().__init__(
            f"Unsupported file type '{extension}': {self.path}",
            details={"path": self.path, "extension": extension},
        )


class OutputError(RefExtractError):
    """Raised when converted output cannot be written."""

    def __init__(self, message: str = "Failed to write output"):
        super().__init__(f"Output error: {message}")


class DiagnosticMessages:
    """User-facing warning texts for empty extraction results."""

    @staticmethod
    def no_citation_fields(path: FilePath) -> str:
        return (
            f"No Zotero/Mendeley citation fields found in {path}.\n"
            "Possible reasons:\n"
            "  - Citations were inserted as plain text (not linked)\n"
            "  - Citations were converted to static text with 'Unlink Citations'\n"
            "Solutions:\n"
            "  - For plain text citations: try AnyStyle (https://anystyle.io) or Zotero's RTF Scan\n"
            "  - Convert the document to PDF and retry with --pdf-via-grobid"
        )

    @staticmethod
    def word_native_citations(path: FilePath) -> str:
        return (
            f"Word bookmark-style citations detected in {path}.\n"
            "This document uses Word's built-in citation feature, not Zotero/Mendeley.\n"
            "To extract references:\n"
            "  1. Open the document in Word\n"
            "  2. Go to References > Manage Sources\n"
            "  3. Export the bibliography"
        )

    @staticmethod
    def parser_empty_result(path: FilePath) -> str:
        return (
            f"GROBID returned no references for {path}.\n"
            "The PDF may not contain a parseable bibliography section.\n"
            "Try:\n"
            "  - Ensuring the PDF has a clear \"References\" section\n"
            "  - Using a higher-quality PDF scan\n"
            "  - Manual extraction with AnyStyle"
        )
