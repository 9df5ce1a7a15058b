"""Output format conversion."""

from .format_converter import FormatConverter, convert_records
