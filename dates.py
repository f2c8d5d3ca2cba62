"""Best-effort parsing of the date strings found in RSS/Atom feeds."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Tuple

from errors import DateUnparseable

__all__ = ["parse_date_guess", "format_timestamp"]

DateLayout = Callable[[str], datetime]

# RFC 822 zone names. Other alphabetic abbreviations are read as UTC.
_ZONE_OFFSETS = {
    "GMT": 0,
    "UTC": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
    "UT": 0,
    "Z": 0,
}
_ZONE_NAME = re.compile(r"[A-Z]{3,5}|UT|Z")
_RFC3339 = re.compile(
    r"(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?(Z|[+-]\d{2}:\d{2})\Z"
)
_CDATA_PREFIX = "<![CDATA["
_CDATA_SUFFIX = "]]>"


def _named_zone(fmt: str) -> DateLayout:
    """Layout ending in a zone abbreviation such as ``GMT`` or ``PST``."""

    def parse(value: str) -> datetime:
        head, sep, zone = value.rpartition(" ")
        if not sep or not _ZONE_NAME.fullmatch(zone):
            raise ValueError(f"missing zone name in {value!r}")
        offset = timedelta(hours=_ZONE_OFFSETS.get(zone, 0))
        return datetime.strptime(head, fmt).replace(tzinfo=timezone(offset))

    return parse


def _numeric_zone(fmt: str) -> DateLayout:
    def parse(value: str) -> datetime:
        return datetime.strptime(value, fmt + " %z")

    return parse


def _naive_utc(fmt: str) -> DateLayout:
    def parse(value: str) -> datetime:
        return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)

    return parse


def _rfc3339(value: str) -> datetime:
    """RFC 3339 with optional fractional seconds (nanosecond precision is truncated)."""
    match = _RFC3339.match(value)
    if not match:
        raise ValueError(f"not RFC 3339: {value!r}")
    day, clock, fraction, zone = match.groups()
    parsed = datetime.strptime(f"{day}T{clock}", "%Y-%m-%dT%H:%M:%S")
    if fraction:
        parsed = parsed.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    if zone == "Z":
        return parsed.replace(tzinfo=timezone.utc)
    offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
    if zone[0] == "-":
        offset = -offset
    return parsed.replace(tzinfo=timezone(offset))


_rfc1123 = _named_zone("%a, %d %b %Y %H:%M:%S")

_LAYOUTS: List[Tuple[str, DateLayout]] = [
    ("RFC1123", _rfc1123),
    ("RFC1123Z", _numeric_zone("%a, %d %b %Y %H:%M:%S")),
    ("RFC822", _named_zone("%d %b %y %H:%M")),
    ("RFC822Z", _numeric_zone("%d %b %y %H:%M")),
    ("RFC3339", _rfc3339),
    ("datetime", _naive_utc("%Y-%m-%d %H:%M:%S")),
    ("date", _naive_utc("%d %b %Y")),
]


def _strip_cdata(value: str) -> str:
    text = value.strip()
    if text.startswith(_CDATA_PREFIX):
        text = text[len(_CDATA_PREFIX):]
    if text.endswith(_CDATA_SUFFIX):
        text = text[: -len(_CDATA_SUFFIX)]
    return text.strip()


def parse_date_guess(value: str) -> datetime:
    """Parse ``value`` against the known feed date layouts, in order.

    The first layout that matches wins and the result is normalized to UTC.
    When nothing matches, the string is retried once as an RFC 1123 date
    missing its ``GMT`` suffix. Raises :class:`DateUnparseable` if that
    fails too; callers treat it as "no date available".
    """
    text = _strip_cdata(value)
    for _name, layout in _LAYOUTS:
        try:
            return layout(text).astimezone(timezone.utc)
        except (ValueError, OverflowError):
            continue
    try:
        return _rfc1123(text + " GMT").astimezone(timezone.utc)
    except (ValueError, OverflowError):
        raise DateUnparseable(f"unparseable date: {value!r}") from None


def format_timestamp(moment: datetime) -> str:
    """Render as RFC 3339 in UTC, second precision."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
