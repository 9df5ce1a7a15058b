"""Record normalization."""

from .normalizer import NormalizationResult, dedupe_key, generate_cite_key, normalize_records
