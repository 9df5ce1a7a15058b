"""Citation extraction from DOCX files and GROBID-parsed PDFs."""

from .docx_extractor import DocxExtractionResult, extract_from_docx
from .grobid_client import GrobidClient
from .pdf_extractor import PdfExtractionResult, extract_from_pdf
from .record_validator import ValidationResult, ValidationStatus, decode_citation_payload, validate_record
