"""
Resolution of iCalendar DATE and DATE-TIME values into points in time.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone, tzinfo
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calparse.lib.error import DateResolutionError

log = logging.getLogger("calparse")

DATE_LAYOUT = "%Y%m%d"
DATETIME_LAYOUT = "%Y%m%dT%H%M%S"
DATETIME_LAYOUT_UTC = "%Y%m%dT%H%M%SZ"

## strptime accepts single-digit fields, the wire format does not
DATE_LENGTH = len("19980119")
DATETIME_LENGTH = len("19980119T070000")
DATETIME_UTC_LENGTH = DATETIME_LENGTH + 1

## strptime also skips blanks in front of a field, so the digits are checked up front
DIGITS = {
    DATE_LAYOUT: re.compile(r"[0-9]{8}"),
    DATETIME_LAYOUT: re.compile(r"[0-9]{8}T[0-9]{6}"),
    DATETIME_LAYOUT_UTC: re.compile(r"[0-9]{8}T[0-9]{6}Z"),
}


def get_zone(name: str) -> tzinfo:
    """Looks up an IANA zone name, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.debug(f"unknown time zone {name!r}, using UTC")
        return timezone.utc


def get_location(location: tzinfo | str | None = None) -> tzinfo:
    """
    Normalises the caller supplied default location: a tzinfo is used
    as is, a string is looked up as a zone name and None means the
    local zone of the running system.
    """
    if location is None:
        import tzlocal

        return tzlocal.get_localzone()
    if isinstance(location, str):
        return get_zone(location)
    return location


def _first_value(params: Mapping, name: str) -> str | None:
    for key, param in params.items():
        if key.upper() == name:
            values = getattr(param, "values", param)
            if isinstance(values, str):
                return values
            return values[0] if values else None
    return None


def _strptime(value: str, layout: str, length: int) -> datetime:
    if len(value) != length or not DIGITS[layout].fullmatch(value):
        raise DateResolutionError(
            f"{value!r} does not match layout {layout!r}"
        )
    try:
        return datetime.strptime(value, layout)
    except ValueError as e:
        raise DateResolutionError(
            f"{value!r} does not match layout {layout!r}: {e}"
        ) from e


def resolve_datetime(
    value: str, params: Mapping | None = None, location: tzinfo | str | None = None
) -> datetime:
    """Maps a raw DATE / DATE-TIME value into a timezone-aware datetime.

    The first matching rule wins:

    1. A value ending with ``Z`` is a UTC date-time.
    2. With a ``TZID`` parameter the value is a local date-time in that
       zone.  Unknown zones are treated as UTC.
    3. An 8 character value is a date, midnight in ``location``.
    4. ``VALUE=DATE`` selects the date layout, unless the value has the
       length of a date-time.  ``VALUE=DATE-TIME`` or no ``VALUE`` at
       all selects the date-time layout.
    5. The value is parsed with the selected layout in ``location``.

    Args:
        value: the raw property value
        params: parameter name to Param (or list of values)
        location: default zone, see :func:`get_location`

    Returns:
        An aware datetime.

    Raises:
        DateResolutionError: if the value does not fit the selected layout.
    """
    params = params or {}
    value = value.strip()

    if value.endswith("Z"):
        return _strptime(value, DATETIME_LAYOUT_UTC, DATETIME_UTC_LENGTH).replace(
            tzinfo=timezone.utc
        )

    tzid = _first_value(params, "TZID")
    if tzid is not None:
        return _strptime(value, DATETIME_LAYOUT, DATETIME_LENGTH).replace(
            tzinfo=get_zone(tzid)
        )

    loc = get_location(location)

    if len(value) == DATE_LENGTH:
        return _strptime(value, DATE_LAYOUT, DATE_LENGTH).replace(tzinfo=loc)

    layout, length = DATETIME_LAYOUT, DATETIME_LENGTH
    value_type = _first_value(params, "VALUE")
    if (
        value_type is not None
        and value_type.upper() == "DATE"
        and len(value) != DATETIME_LENGTH
    ):
        layout, length = DATE_LAYOUT, DATE_LENGTH

    return _strptime(value, layout, length).replace(tzinfo=loc)


def to_utc_string(ts: datetime) -> str:
    """Formats a timestamp as an iCalendar UTC date-time."""
    if ts.tzinfo is None:
        ## naive timestamps are taken as local time
        ts = ts.astimezone()
    return ts.astimezone(timezone.utc).strftime(DATETIME_LAYOUT_UTC)
