"""Utility functions for ref-extract."""

from .logging import get_logger, setup_logging
from .errors import RefExtractError
