"""Parsing and formatting of durations.

Durations are always stored as whole seconds. User input comes in four
notations:

- seconds: ``3600``
- decimal hours: ``1.5`` or ``1,5``
- colon: ``H:MM`` or ``H:MM:SS`` (minutes and seconds may exceed 59)
- natural: ``2h38m17s`` (every unit optional, values may overflow)
"""

import re
from typing import Optional, Union

from kimai.core.exceptions import InvalidDurationError

FORMAT_COLON = "colon"
FORMAT_NATURAL = "natural"
FORMAT_DECIMAL = "decimal"
FORMAT_SECONDS = "seconds"

FORMAT_NO_SECONDS = "%h:%m"
FORMAT_WITH_SECONDS = "%h:%m:%s"

_COLON_PATTERN = re.compile(r"^(\d+):(\d+)(?::(\d+))?$")
_NATURAL_PATTERN = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$", re.IGNORECASE)
_DECIMAL_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")

DurationValue = Union[str, int, float, None]


def format_duration(seconds: Optional[int], pattern: str = FORMAT_NO_SECONDS) -> Optional[str]:
    """Format seconds as ``HH:MM`` (or a custom ``%h``/``%m``/``%s`` pattern).

    Hours are not wrapped at 24 and are zero-padded to two digits.

    Example:
        >>> format_duration(9494)
        '02:38'
        >>> format_duration(9494, FORMAT_WITH_SECONDS)
        '02:38:14'
    """
    if seconds is None:
        return None

    sign = "-" if seconds < 0 else ""
    seconds = abs(int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)

    formatted = (
        pattern.replace("%h", f"{hours:02d}")
        .replace("%m", f"{minutes:02d}")
        .replace("%s", f"{secs:02d}")
    )
    return sign + formatted


def format_decimal_hours(seconds: Optional[int], precision: int = 2) -> float:
    if not seconds:
        return 0.0
    return round(seconds / 3600, precision)


def parse_duration_string(duration: str) -> int:
    """Parse a duration, detecting the notation from its characters.

    A colon selects the colon notation, a dot or comma and plain integers are
    read as (decimal) hours, everything else as natural notation.

    Raises:
        InvalidDurationError: If the string is not a valid duration
    """
    value = str(duration).strip()

    if ":" in value:
        return parse_duration(value, FORMAT_COLON)
    if "." in value or "," in value or value.isdigit():
        return parse_duration(value, FORMAT_DECIMAL)
    return parse_duration(value, FORMAT_NATURAL)


def parse_duration(duration: DurationValue, mode: str) -> int:
    """Parse a duration in the given notation into seconds.

    Empty values are zero in every notation.

    Raises:
        InvalidDurationError: Unknown mode or invalid input
    """
    if mode not in (FORMAT_COLON, FORMAT_NATURAL, FORMAT_DECIMAL, FORMAT_SECONDS):
        raise InvalidDurationError(f"Unsupported duration format: {mode!r}")

    if duration is None or duration == "" or duration == 0:
        return 0

    if mode == FORMAT_SECONDS:
        return _parse_seconds(duration)
    if mode == FORMAT_DECIMAL:
        return _parse_decimal(duration)
    if mode == FORMAT_COLON:
        return _parse_colon(str(duration).strip())
    return _parse_natural(duration)


def _parse_seconds(duration: Union[str, int, float]) -> int:
    try:
        seconds = int(float(str(duration).strip()))
    except ValueError:
        raise InvalidDurationError(f"Invalid duration in seconds: {duration!r}")
    return max(0, seconds)


def _parse_decimal(duration: Union[str, int, float]) -> int:
    value = str(duration).strip().replace(",", ".")
    if not _DECIMAL_PATTERN.match(value):
        raise InvalidDurationError(f"Invalid decimal duration: {duration!r}")
    return int(round(float(value) * 3600))


def _parse_colon(duration: str) -> int:
    match = _COLON_PATTERN.match(duration)
    if match is None:
        raise InvalidDurationError(f"Invalid duration format, expected H:MM[:SS]: {duration!r}")

    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds or 0)


def _parse_natural(duration: Union[str, int, float]) -> int:
    # Plain numbers carry no unit
    if not isinstance(duration, str):
        raise InvalidDurationError(f"Invalid natural duration: {duration!r}")

    value = duration.strip().replace(" ", "")
    match = _NATURAL_PATTERN.match(value)
    if match is None or not any(match.groups()):
        raise InvalidDurationError(f"Invalid natural duration: {duration!r}")

    hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds
