"""Input validation utilities for URLs, dates and date ranges."""

import re
from datetime import date
from urllib.parse import urlparse

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_url(url: str) -> tuple[bool, str]:
    """Validate an API base URL.

    Args:
        url: The URL to validate.

    Returns:
        Tuple of (is_valid, error_message).  error_message is empty on success.
    """
    if not url or not isinstance(url, str):
        return False, "URL is empty or not a string."
    url = url.strip()
    try:
        parsed = urlparse(url)
    except Exception as exc:
        return False, f"URL parse error: {exc}"
    if parsed.scheme not in ("http", "https"):
        return False, f"Invalid scheme: {parsed.scheme!r}. Must be http or https."
    if not parsed.netloc:
        return False, "URL has no network location (domain)."
    return True, ""


def validate_iso_date(value: str) -> tuple[bool, str]:
    """Validate a ``YYYY-MM-DD`` calendar date.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not value or not isinstance(value, str):
        return False, "Date is empty or not a string."
    value = value.strip()
    if not _ISO_DATE.match(value):
        return False, f"Date {value!r} is not in YYYY-MM-DD format."
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        return False, f"Invalid date {value!r}: {exc}"
    return True, ""


def clamp_range(date_from: str, date_to: str) -> tuple[str, str]:
    """Keep a date range ordered.

    When *date_from* falls after *date_to* the start snaps to the end, so
    the range collapses to a single day instead of being rejected.
    Empty bounds are left untouched.

    Examples:
        >>> clamp_range("2025-03-10", "2025-03-01")
        ('2025-03-01', '2025-03-01')
    """
    if not date_from or not date_to:
        return date_from, date_to
    if date.fromisoformat(date_from) > date.fromisoformat(date_to):
        return date_to, date_to
    return date_from, date_to
