"""ref-extract: bibliographic references from DOCX citation fields and PDFs."""

__version__ = "0.1.0"

from .conversion.format_converter import FormatConverter, convert_records
from .document_processing.docx_extractor import extract_from_docx
from .document_processing.grobid_client import GrobidClient
from .document_processing.pdf_extractor import extract_from_pdf
from .normalization.normalizer import generate_cite_key, normalize_records
from .pipeline import ExtractionPipeline, ExtractionResult, run_extraction
from .utils.types import BibliographicRecord, ExtractedRecord, OutputFormat, RecordSource
