"""
Domain and Name Normalization

Shared normalization used for company input, competitor de-duplication
and web-search filtering:
- URLs are normalized to https:// with the original path
- Domains are lower-case hosts without scheme, www. or path
- Names are compared case-insensitively without punctuation or legal suffixes
"""

import logging
import re
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


# =============================================================================
# EXCLUDED NAMES - platforms that web search returns but are never competitors
# =============================================================================

EXCLUDED_PLATFORMS = {
    # Social media
    "facebook", "twitter", "x", "instagram", "linkedin", "tiktok", "pinterest",
    "reddit", "youtube",
    # Reference & review sites
    "wikipedia", "g2", "capterra", "trustpilot", "gartner", "forrester",
    "crunchbase", "producthunt", "quora", "medium",
    # Generic search/AI
    "google", "bing", "chatgpt", "perplexity",
}

LEGAL_SUFFIXES = (
    "inc", "incorporated", "llc", "ltd", "limited", "corp", "corporation",
    "co", "company", "gmbh", "ab", "sa", "plc", "oy", "as", "bv",
)

_LEGAL_SUFFIX_RE = re.compile(
    r"(?:[\s,]+(?:" + "|".join(LEGAL_SUFFIXES) + r")\.?)+$",
    re.IGNORECASE,
)


def normalize_url(url: Optional[str]) -> str:
    """
    Ensure a URL has a scheme.

    Examples:
        "acme.com"            -> "https://acme.com"
        "http://acme.com/a"   -> "http://acme.com/a"
    """
    url = (url or "").strip()
    if not url:
        return ""
    if not re.match(r"^https?://", url, flags=re.IGNORECASE):
        url = f"https://{url}"
    return url


def normalize_domain(url: Optional[str]) -> str:
    """
    Reduce a URL to its bare host.

    Examples:
        "https://www.Acme.com/pricing" -> "acme.com"
        "acme.com"                     -> "acme.com"
    """
    url = normalize_url(url)
    if not url:
        return ""

    host = urlparse(url).netloc or ""
    host = host.split("@")[-1].split(":")[0].lower().strip().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def strip_legal_suffix(name: str) -> str:
    """Remove trailing legal entity suffixes ("Acme Inc." -> "Acme")."""
    stripped = _LEGAL_SUFFIX_RE.sub("", name.strip())
    return stripped or name.strip()


def normalize_name(name: Optional[str]) -> str:
    """
    Canonical key for comparing company names.

    Case-folds, drops legal suffixes and every character that is not a
    letter or digit in any script, so "Acme, Inc." and "ACME" compare
    equal and "Яндекс" keeps a non-empty key.
    """
    if not name:
        return ""
    base = strip_legal_suffix(name)
    return re.sub(r"[\W_]+", "", base.casefold())


def is_excluded_platform(name: Optional[str]) -> bool:
    """
    Check if a discovered name is a platform rather than a competitor.

    Args:
        name: Company name or domain (e.g., "Reddit", "g2.com")

    Returns:
        True if the name should be dropped from discovered competitors
    """
    if not name:
        return True

    key = name.lower().strip()
    if "." in key:
        key = normalize_domain(key).split(".")[0]

    excluded = normalize_name(key) in EXCLUDED_PLATFORMS
    if excluded:
        logger.debug(f"Excluded platform from competitors: {name}")
    return excluded
