"""Configuration settings for the ref-extract application."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file if it exists
load_dotenv()


def clean_env_value(value, default=None):
    """Remove comments from environment variable values.

    Args:
        value: The environment variable value
        default: Default value if the environment variable is not set

    Returns:
        The cleaned value or default
    """
    if value is None:
        return default

    # Remove comments (anything after #)
    if "#" in value:
        value = value.split("#")[0].strip()

    return value


def env_flag(name: str, default: str = "false") -> bool:
    """Read a boolean environment variable."""
    return clean_env_value(os.getenv(name), default).lower() in ("true", "1", "yes")


class LogConfig(BaseModel):
    """Configuration settings for logging."""

    level: str = Field(
        default=clean_env_value(os.getenv("LOG_LEVEL"), "info"),
        description="Logging level (silent, info, debug)"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    file: Optional[str] = Field(
        default=clean_env_value(os.getenv("LOG_FILE")),
        description="Log file path (if None, logs to stderr only)"
    )


class GrobidConfig(BaseModel):
    """Configuration settings for the GROBID reference parsing service."""

    url: str = Field(
        default=clean_env_value(os.getenv("GROBID_URL"), "http://localhost:8070"),
        description="GROBID service base URL"
    )
    probe_timeout: float = Field(
        default=float(clean_env_value(os.getenv("GROBID_PROBE_TIMEOUT"), 5)),
        description="Timeout for the liveness probe in seconds"
    )
    timeout: float = Field(
        default=float(clean_env_value(os.getenv("GROBID_TIMEOUT"), 60)),
        description="Timeout for reference processing requests in seconds"
    )
    consolidate: bool = Field(
        default=env_flag("GROBID_CONSOLIDATE", "true"),
        description="Ask GROBID to consolidate citations against external metadata"
    )


class ExtractionConfig(BaseModel):
    """Configuration settings for citation extraction."""

    max_workers: int = Field(
        default=int(clean_env_value(os.getenv("MAX_WORKERS"), 4)),
        description="Number of input files processed concurrently"
    )
    relaxed_validation: bool = Field(
        default=env_flag("RELAXED_VALIDATION", "true"),
        description="Accept citation items that only carry a type when strict validation fails"
    )


class OutputConfig(BaseModel):
    """Configuration settings for converted output."""

    format: str = Field(
        default=clean_env_value(os.getenv("OUTPUT_FORMAT"), "csl"),
        description="Output format (csl, biblatex, bibtex, ris)"
    )
    minify: bool = Field(
        default=env_flag("OUTPUT_MINIFY"),
        description="Write CSL-JSON without whitespace"
    )


class Settings(BaseModel):
    """Main application settings."""

    logging: LogConfig = Field(
        default_factory=LogConfig,
        description="Logging configuration"
    )
    grobid: GrobidConfig = Field(
        default_factory=GrobidConfig,
        description="GROBID configuration"
    )
    extraction: ExtractionConfig = Field(
        default_factory=ExtractionConfig,
        description="Extraction configuration"
    )
    output: OutputConfig = Field(
        default_factory=OutputConfig,
        description="Output configuration"
    )


# Create global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings: The application settings
    """
    return settings
