"""
Duration parsing and formatting.

Durations are written as a sequence of ``<number><unit>`` terms, e.g.
``1mo``, ``2w``, ``5d3h`` or ``-1.5h``.  Terms may repeat and need not be
ordered.  Supported units::

    ns  us µs μs  ms  s  m  h  d  w  mo

A month is 30 days.  Values are exact ``timedelta``s, so anything below
a microsecond truncates toward zero.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import timedelta

_SECOND = 1_000_000_000  # nanoseconds

UNITS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,   # U+00B5 micro sign
    "μs": 1_000,   # U+03BC greek mu
    "ms": 1_000_000,
    "s": _SECOND,
    "m": 60 * _SECOND,
    "h": 3600 * _SECOND,
    "d": 24 * 3600 * _SECOND,
    "w": 7 * 24 * 3600 * _SECOND,
    "mo": 30 * 24 * 3600 * _SECOND,
}

# Longer unit names first so "mo" wins over "m" and "ms" over "m".
_UNIT_ALTERNATION = "|".join(sorted(map(re.escape, UNITS), key=len, reverse=True))
_TERM_RE = re.compile(rf"(\d+(?:\.\d*)?|\.\d+)({_UNIT_ALTERNATION})")


def parse_duration(text: str) -> timedelta:
    """Parse a duration string.

    Raises:
        ValueError: if ``text`` is empty or not a sequence of terms.
    """
    original = text
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if not text:
        raise ValueError(f"invalid duration: {original!r}")
    if text == "0":
        return timedelta(0)

    nanoseconds = 0.0
    pos = 0
    while pos < len(text):
        match = _TERM_RE.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration: {original!r}")
        number, unit = match.groups()
        nanoseconds += float(number) * UNITS[unit]
        pos = match.end()

    # timedelta resolution is one microsecond; truncate toward zero.
    return timedelta(microseconds=sign * int(nanoseconds // 1_000))


def duration_formatter(units: list[str]) -> Callable[[timedelta], str]:
    """Build a formatter that spells a duration in the given units.

    Units are used largest first, zero terms are omitted, and a
    zero duration formats as "".

    Raises:
        ValueError: from the formatter when a remainder is left below
            the smallest unit.
    """
    for unit in units:
        if unit not in UNITS:
            raise ValueError(f"unknown unit: {unit}")
    ordered = sorted(units, key=UNITS.__getitem__, reverse=True)
    smallest = ordered[-1] if ordered else "ns"

    def fmt(value: timedelta) -> str:
        remaining = (
            (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
        ) * 1_000
        parts: list[str] = []
        for unit in ordered:
            count = remaining // UNITS[unit]
            if count > 0:
                parts.append(f"{count}{unit}")
                remaining -= count * UNITS[unit]
        if remaining > 0:
            raise ValueError(f"units smaller than {smallest} are not supported")
        return "".join(parts)

    return fmt


format_hms = duration_formatter(["h", "m", "s"])
