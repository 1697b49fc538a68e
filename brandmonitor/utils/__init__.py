"""Utility modules for Brand Monitor."""

from .config import PipelineConfig, Settings, get_settings
from .domain import (
    is_excluded_platform,
    normalize_domain,
    normalize_name,
    normalize_url,
    strip_legal_suffix,
)

__all__ = [
    "Settings",
    "get_settings",
    "PipelineConfig",
    # Normalization
    "normalize_url",
    "normalize_domain",
    "normalize_name",
    "strip_legal_suffix",
    "is_excluded_platform",
]
