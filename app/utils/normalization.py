"""Input normalization for names, emails and free-text search."""

import re
from typing import Optional


SEARCH_MAX_LENGTH = 200

# LIKE wildcards/escape plus characters we never want in a search term
_SEARCH_STRIP_PATTERN = re.compile(r"[%_\\<>'\";`]")


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Returns None for empty input.
    """
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Strip and collapse internal whitespace. Returns None if empty."""
    if not name:
        return None
    collapsed = " ".join(name.split())
    return collapsed or None


def normalize_optional_text(value: Optional[str]) -> Optional[str]:
    """Trim a free-text value; blank becomes None."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def sanitize_search_input(value: Optional[str]) -> str:
    """
    Make a user search term safe for ILIKE.

    - Remove LIKE wildcards (% and _) and backslashes
    - Remove quote/markup characters
    - Trim and cap at 200 characters
    """
    if not value:
        return ""
    cleaned = _SEARCH_STRIP_PATTERN.sub("", value).strip()
    return cleaned[:SEARCH_MAX_LENGTH]

