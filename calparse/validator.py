"""
Per-component validation.

The validators run over the raw properties of a finished component,
copy recognised values into the typed fields and enforce the
cardinality rules of RFC5545 for the properties this library models.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

import icalendar

from calparse.lib.dates import resolve_datetime
from calparse.lib.error import DateResolutionError, SemanticError
from calparse.types import Alarm, Calendar, Event, Property

log = logging.getLogger("calparse")

EVENT_UNIQUE = (
    "UID",
    "DTSTAMP",
    "DTSTART",
    "DTEND",
    "DURATION",
    "SUMMARY",
    "DESCRIPTION",
)

DEFAULT_EVENT_LENGTH = timedelta(hours=24)


def _count(properties: Iterable[Property]) -> Counter:
    return Counter(prop.name.upper() for prop in properties)


def _check_once(counts: Counter, names: Iterable[str], component: str) -> None:
    for name in names:
        if counts[name] > 1:
            raise SemanticError(
                f'"{name}" property must not occur more than once in {component}'
            )


def _check_required(counts: Counter, names: Iterable[str], component: str) -> None:
    missing = [name for name in names if not counts[name]]
    if missing:
        raise SemanticError(
            "missing required propert%s %s in %s"
            % ("y" if len(missing) == 1 else "ies", " / ".join(missing), component)
        )


def validate_calendar(calendar: Calendar) -> None:
    """
    PRODID and VERSION are required exactly once, CALSCALE and METHOD
    may appear at most once.
    """
    counts = _count(calendar.properties)
    _check_required(counts, ("PRODID", "VERSION"), "VCALENDAR")
    _check_once(counts, ("PRODID", "VERSION", "CALSCALE", "METHOD"), "VCALENDAR")

    for prop in calendar.properties:
        name = prop.name.upper()
        if name == "PRODID":
            calendar.prodid = prop.value
        elif name == "VERSION":
            calendar.version = prop.value
        elif name == "CALSCALE":
            calendar.calscale = prop.value
        elif name == "METHOD":
            calendar.method = prop.value


def _resolve(
    prop: Property, location: tzinfo | str | None, strict: bool
) -> Optional[datetime]:
    try:
        return resolve_datetime(prop.value, prop.params, location)
    except DateResolutionError as e:
        if strict:
            raise SemanticError(f"invalid {prop.name} value: {e.reason}") from e
        log.warning(f"ignoring unresolvable {prop.name} value {prop.value!r}: {e.reason}")
        return None


def _duration(prop: Property, strict: bool) -> Optional[timedelta]:
    try:
        return icalendar.vDuration.from_ical(prop.value)
    except ValueError as e:
        if strict:
            raise SemanticError(f"invalid DURATION value {prop.value!r}") from e
        log.warning(f"ignoring unparsable DURATION value {prop.value!r}")
        return None


def validate_event(
    event: Event,
    calendar: Calendar,
    location: tzinfo | str | None = None,
    strict: bool = False,
) -> None:
    """
    Fills in the typed fields of ``event`` and enforces:

    * UID and DTSTART exactly once
    * DTSTAMP exactly once, unless the calendar carries a METHOD
    * DTEND and DURATION never together
    * none of UID, DTSTAMP, DTSTART, DTEND, DURATION, SUMMARY and
      DESCRIPTION more than once

    Without DTEND, the end date is the start date plus 24 hours.

    Date values that cannot be resolved leave the field at None and are
    logged, unless ``strict`` is set, in which case they are a
    :class:`SemanticError` as well.
    """
    counts = _count(event.properties)

    if counts["DTEND"] and counts["DURATION"]:
        raise SemanticError('either "DTEND" or "DURATION" may appear in VEVENT, not both')

    required = ["UID", "DTSTART"]
    if not calendar.method:
        required.insert(1, "DTSTAMP")
    _check_required(counts, required, "VEVENT")
    _check_once(counts, EVENT_UNIQUE, "VEVENT")

    for prop in event.properties:
        name = prop.name.upper()
        if name == "UID":
            event.uid = prop.value
        elif name == "DTSTAMP":
            event.timestamp = _resolve(prop, location, strict)
        elif name == "DTSTART":
            event.start_date = _resolve(prop, location, strict)
        elif name == "DTEND":
            event.end_date = _resolve(prop, location, strict)
        elif name == "DURATION":
            event.duration = _duration(prop, strict)
        elif name == "SUMMARY":
            event.summary = prop.value
        elif name == "DESCRIPTION":
            event.description = prop.value

    if not counts["DTEND"] and event.start_date is not None:
        ## elapsed time, not wall clock time, across DST transitions
        start = event.start_date
        event.end_date = (start.astimezone(timezone.utc) + DEFAULT_EVENT_LENGTH).astimezone(
            start.tzinfo
        )


def validate_alarm(alarm: Alarm) -> None:
    """ACTION and TRIGGER are required exactly once."""
    counts = _count(alarm.properties)
    _check_required(counts, ("ACTION", "TRIGGER"), "VALARM")
    _check_once(counts, ("ACTION", "TRIGGER"), "VALARM")

    for prop in alarm.properties:
        name = prop.name.upper()
        if name == "ACTION":
            alarm.action = prop.value
        elif name == "TRIGGER":
            alarm.trigger = prop.value
