"""Configuration for ref-extract."""

from .settings import Settings, get_settings
