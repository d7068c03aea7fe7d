"""Render datetimes with the custom date format tokens used in archive names.

Archive file names are configured with patterns such as ``yyyyMMdd`` or
``yyyy-MM-dd HH.mm.ss.fff``. A single character names a standard pattern
(``d`` short date, ``s`` sortable, ...) with invariant culture names. A
pattern containing ``%`` is treated as a plain ``strftime`` format instead.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime
from typing import Callable, Dict, Optional

DEFAULT_FORMAT = "yyyy-MM-dd HH:mm:ss"

_TOKEN_PATTERN = re.compile(
    r"yyyy|yy|MMMM|MMM|MM|M|dddd|ddd|dd|d|HH|H|hh|h|mm|m|ss|s|fffffff|fff|ff|f|tt"
    r"|'[^']*'|\"[^\"]*\"|\\.|.",
    re.DOTALL,
)


def _hour12(value: datetime) -> int:
    return value.hour % 12 or 12


_RENDERERS: Dict[str, Callable[[datetime], str]] = {
    "yyyy": lambda v: f"{v.year:04d}",
    "yy": lambda v: f"{v.year % 100:02d}",
    "MMMM": lambda v: calendar.month_name[v.month],
    "MMM": lambda v: calendar.month_abbr[v.month],
    "MM": lambda v: f"{v.month:02d}",
    "M": lambda v: str(v.month),
    "dddd": lambda v: calendar.day_name[v.weekday()],
    "ddd": lambda v: calendar.day_abbr[v.weekday()],
    "dd": lambda v: f"{v.day:02d}",
    "d": lambda v: str(v.day),
    "HH": lambda v: f"{v.hour:02d}",
    "H": lambda v: str(v.hour),
    "hh": lambda v: f"{_hour12(v):02d}",
    "h": lambda v: str(_hour12(v)),
    "mm": lambda v: f"{v.minute:02d}",
    "m": lambda v: str(v.minute),
    "ss": lambda v: f"{v.second:02d}",
    "s": lambda v: str(v.second),
    "fffffff": lambda v: f"{v.microsecond * 10:07d}",
    "fff": lambda v: f"{v.microsecond // 1000:03d}",
    "ff": lambda v: f"{v.microsecond // 10000:02d}",
    "f": lambda v: str(v.microsecond // 100000),
    "tt": lambda v: "AM" if v.hour < 12 else "PM",
}


_STANDARD_FORMATS: Dict[str, str] = {
    "d": "MM/dd/yyyy",
    "D": "dddd, dd MMMM yyyy",
    "f": "dddd, dd MMMM yyyy HH:mm",
    "F": "dddd, dd MMMM yyyy HH:mm:ss",
    "g": "MM/dd/yyyy HH:mm",
    "G": "MM/dd/yyyy HH:mm:ss",
    "m": "MMMM dd",
    "M": "MMMM dd",
    "o": "yyyy-MM-dd'T'HH:mm:ss.fffffff",
    "O": "yyyy-MM-dd'T'HH:mm:ss.fffffff",
    "r": "ddd, dd MMM yyyy HH:mm:ss 'GMT'",
    "R": "ddd, dd MMM yyyy HH:mm:ss 'GMT'",
    "s": "yyyy-MM-dd'T'HH:mm:ss",
    "t": "HH:mm",
    "T": "HH:mm:ss",
    "u": "yyyy-MM-dd HH:mm:ss'Z'",
    "y": "yyyy MMMM",
    "Y": "yyyy MMMM",
}


def format_datetime(value: datetime, fmt: Optional[str] = None) -> str:
    """Format ``value`` with a custom date pattern (or strftime if it has ``%``)."""
    fmt = fmt or DEFAULT_FORMAT
    fmt = _STANDARD_FORMATS.get(fmt, fmt)
    if "%" in fmt:
        return value.strftime(fmt)

    parts = []
    for token in _TOKEN_PATTERN.findall(fmt):
        renderer = _RENDERERS.get(token)
        if renderer is not None:
            parts.append(renderer(value))
        elif len(token) >= 2 and token[0] == token[-1] and token[0] in "'\"":
            parts.append(token[1:-1])
        elif token.startswith("\\") and len(token) == 2:
            parts.append(token[1])
        else:
            parts.append(token)
    return "".join(parts)
