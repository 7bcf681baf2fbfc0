"""General-purpose helper utilities for the analytics dashboard."""

import math
import re
import unicodedata
from datetime import date, datetime, time, tzinfo
from typing import Any, Iterable, Optional

_SPACE_VARIANTS = re.compile(r"[\s\u00a0\u202f\u2007]+")


def slugify(text: str, max_length: int = 75) -> str:
    """Convert text to a filename-safe slug.

    Args:
        text: Input text to slugify.
        max_length: Maximum slug length.

    Returns:
        Lowercase hyphen-separated slug.

    Examples:
        >>> slugify("Ferme du Lac")
        'ferme-du-lac'
        >>> slugify("  Épicerie (Nord)!  ")
        'epicerie-nord'
    """
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text).strip("-")
    if len(text) > max_length:
        text = text[:max_length].rsplit("-", 1)[0]
    return text


def as_num(value: Any, default: float = 0.0) -> float:
    """Coerce a loosely typed JSON value to a float.

    ``None``, empty strings, non-numeric strings and NaN all yield *default*.

    Examples:
        >>> as_num("12.5")
        12.5
        >>> as_num(None, 1)
        1
        >>> as_num("abc")
        0.0
    """
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


def first_present(row: dict, *keys: str, default: Any = None) -> Any:
    """Return the first value in *row* that is not ``None`` for *keys*."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return default


def normalize_value(value: Any) -> str:
    """Normalize a displayed cell value for exact filter matching.

    Trims, and collapses every run of whitespace (including the
    non-breaking variants used by French number formatting) to one space.
    Case is preserved.
    """
    if value is None:
        return ""
    return _SPACE_VARIANTS.sub(" ", str(value)).strip()


def as_name_list(value: Any) -> list[str]:
    """Return a clean list of names from a list, a comma string or a scalar."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items: Iterable[Any] = value
    else:
        items = [value]
    out = []
    for item in items:
        if item is None:
            continue
        name = str(item).strip()
        if name:
            out.append(name)
    return out


def parse_timestamp(value: Any, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Parse an API timestamp and express it in the viewer's time zone.

    Naive values are taken as already local.  Returns ``None`` for missing
    or unparseable input instead of raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if tz is None:
        return parsed
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def format_eur(value: float) -> str:
    """Format an amount the way the storefront shows it.

    Examples:
        >>> format_eur(12)
        '12.00€'
    """
    return f"{value:.2f}€"


def format_datetime_fr(value: Any, tz: Optional[tzinfo] = None) -> str:
    """Render a timestamp as ``dd/mm/yyyy hh:mm:ss`` or an empty string."""
    parsed = parse_timestamp(value, tz)
    if parsed is None:
        return ""
    return parsed.strftime("%d/%m/%Y %H:%M:%S")


def format_date_fr(value: Any) -> str:
    """Render a date as ``dd/mm/yyyy`` or an empty string."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return ""
    return parsed.strftime("%d/%m/%Y")
