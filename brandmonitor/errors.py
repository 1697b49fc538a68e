"""
Brand Monitor Errors

Error taxonomy for the analysis pipeline:
- ValidationError: bad caller input, rejected before any stage runs
- ConfigurationError: no usable AI providers
- ScrapeError: company website could not be scraped
- ProviderError / ProviderTimeout: a single provider call failed
- UnexpectedError: any other fault during orchestration
"""

from typing import Any, Dict, Optional


class BrandMonitorError(Exception):
    """Base exception for all brand monitor errors."""


class ValidationError(BrandMonitorError):
    """Caller input is missing or malformed."""

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields = fields or {}


class ConfigurationError(BrandMonitorError):
    """The service is not configured to run an analysis."""


class ScrapeError(BrandMonitorError):
    """Company website could not be scraped."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class ProviderError(BrandMonitorError):
    """An AI provider call failed."""

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        status_code: int = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code
        self.response = response


class ProviderTimeout(ProviderError):
    """An AI provider call exceeded its deadline."""


class UnexpectedError(BrandMonitorError):
    """Uncaught fault during orchestration, surfaced as a terminal error event."""
