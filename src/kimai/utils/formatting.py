"""Locale aware formatting of money, durations, countries and titles."""

from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, Union

from babel import Locale
from babel.dates import format_date
from babel.numbers import format_currency, get_currency_symbol

from kimai.utils.duration import format_duration
from kimai.utils.file_helper import convert_to_ascii_filename

DEFAULT_DURATION_FORMAT = "%h:%m h"
DISPOSITION_INLINE = "inline"
DISPOSITION_ATTACHMENT = "attachment"

# babel separates groups and symbols with (narrow) no-break spaces
_SPACES = {"\xa0": " ", "\u202f": " "}


def _normalize_spaces(value: str) -> str:
    for special, plain in _SPACES.items():
        value = value.replace(special, plain)
    return value


def duration(value: Any, pattern: str = DEFAULT_DURATION_FORMAT) -> Optional[str]:
    """Format seconds (or a timesheet's duration) for display.

    Returns ``?`` for negative values and None for None.
    """
    if value is None:
        return None

    seconds = value.duration if hasattr(value, "duration") else int(value)
    if seconds < 0:
        return "?"
    return format_duration(seconds, pattern)


def money(amount: Optional[float], currency: str = "EUR", locale: str = "en") -> str:
    """Format an amount with its currency symbol.

    Example:
        >>> money(2345, "EUR", "de")
        '2.345,00 €'
    """
    formatted = format_currency(amount or 0, currency, locale=locale)
    return _normalize_spaces(formatted)


def currency(code: str, locale: str = "en") -> str:
    return get_currency_symbol(code, locale=locale)


def country(code: str, locale: str = "en") -> str:
    territories: dict[str, str] = Locale.parse(locale).territories
    return territories.get(code.upper(), code)


def locales(codes: list[str]) -> list[dict[str, str]]:
    """Return each locale with its name written in its own language."""
    return [
        {"code": code, "name": Locale.parse(code).get_display_name(code) or code}
        for code in codes
    ]


def date_short(value: Union[date, datetime, None], locale: str = "en") -> str:
    if value is None:
        return ""
    return format_date(value, format="short", locale=locale)


def get_title(
    prefix: Optional[str] = None, delimiter: str = " – ", branding: str = "Kimai"
) -> str:
    return f"{prefix or ''}{branding}{delimiter}Time Tracking"


def content_disposition(filename: str, inline: bool = False) -> str:
    """Build a Content-Disposition header value with an ASCII filename."""
    path = Path(filename)
    safe = convert_to_ascii_filename(path.stem) + path.suffix
    disposition = DISPOSITION_INLINE if inline else DISPOSITION_ATTACHMENT
    return f'{disposition}; filename="{safe}"'
