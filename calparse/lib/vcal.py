#!/usr/bin/env python
import logging
import re
from typing import List
from typing import Optional

from icalendar.parser import foldline

from calparse.lib.dates import to_utc_string
from calparse.lib.python_utilities import to_crlf
from calparse.scanner import CRLF
from calparse.types import Alarm
from calparse.types import Calendar
from calparse.types import Event
from calparse.types import Property

## Global counter.  We don't want to be too verbose on the users
fixup_error_loggings = 0


def fix(ical):
    """This function receives some ical text, checks for breakages
    with the standard that are known to occur in the wild, and attempts
    to fix them up:

    1) Trailing white space on content lines is removed.  Some
    producers pad lines (X-APPLE-STRUCTURED-EVENT, among others).

    2) iCloud apparently duplicates the DTSTAMP property sometimes -
    keep the first DTSTAMP encountered.

    3) Zimbra can create events with both DTEND and DURATION set,
    which is forbidden according to the RFC.  The one that comes last
    is dropped.

    The returned text is CRLF terminated.
    """
    ical = to_crlf(ical)
    lines = ical.split(CRLF)
    if lines and lines[-1] == "":
        lines.pop()

    ## 1) trailing whitespace probably never makes sense, unless the
    ## line is continued on the next one
    lines = [
        line if i + 1 < len(lines) and lines[i + 1][:1] in (" ", "\t") else line.rstrip(" \t")
        for i, line in enumerate(lines)
    ]

    ## 2) and 3)
    fixed = CRLF.join(filter(LineFilterDiscardingDuplicates(), lines)) + CRLF

    if fixed != ical:
        ## The power-of-two check rate-limits the warnings to
        ## 1, 2, 4, 8, 16 ... occurrences.
        global fixup_error_loggings
        fixup_error_loggings += 1
        is_power_of_two = lambda n: not (n & (n - 1))
        if is_power_of_two(fixup_error_loggings):
            log = logging.getLogger("calparse").warning
        else:
            log = logging.getLogger("calparse").debug

        log(
            "Ical data was modified to avoid compatibility issues "
            "(the producer breaks the icalendar standard).  "
            f"(error count: {fixup_error_loggings} - this error is ratelimited)"
        )

    return fixed


class LineFilterDiscardingDuplicates:
    """Needs to be a class because it keeps track of whether a certain
    group of date line was already encountered within a component.
    This must be called line by line in order on the complete text, at
    least comprising the complete component.
    Folded continuation lines share the fate of the line they continue.
    """

    def __init__(self) -> None:
        ## one set of seen line groups per open component
        self.seen = [set()]
        self.kept = True

    def __call__(self, line):
        if line[:1] in (" ", "\t"):
            return self.kept
        self.kept = self._keep(line)
        return self.kept

    def _keep(self, line):
        if line.startswith("BEGIN:V"):
            self.seen.append(set())
            return True

        if line.startswith("END:V"):
            if len(self.seen) > 1:
                self.seen.pop()
            return True

        match = re.match("(DURATION|DTEND|DTSTAMP)[:;]", line, re.IGNORECASE)
        if match:
            group = "stamped" if match.group(1).upper() == "DTSTAMP" else "ended"
            if group in self.seen[-1]:
                return False
            self.seen[-1].add(group)

        return True


def _set_properties(
    props: List[Property], new_props: List[Property]
) -> List[Property]:
    """
    Returns a copy of props where a property sharing its name with one
    of new_props is replaced in place, and the remaining new_props
    appended in order.
    """
    by_name = {prop.name.upper(): prop for prop in new_props}
    ret = []
    for prop in props:
        name = prop.name.upper()
        if name in by_name:
            ret.append(by_name.pop(name))
        else:
            ret.append(prop)
    ret.extend(prop for prop in new_props if prop.name.upper() in by_name)
    return ret


def _typed(name: str, value: Optional[str]) -> List[Property]:
    if not value:
        return []
    return [Property(name=name, value=value)]


def format_property(prop: Property) -> str:
    line = [prop.name]
    for name, param in prop.params.items():
        line.append(";%s=%s" % (name, ",".join('"%s"' % v for v in param.values)))
    line.append(":")
    line.append(prop.value)
    return foldline("".join(line)) + CRLF


def _format_component(name: str, props: List[Property], children: List[str]) -> str:
    return (
        "BEGIN:%s%s" % (name, CRLF)
        + "".join(format_property(prop) for prop in props)
        + "".join(children)
        + "END:%s%s" % (name, CRLF)
    )


def format_alarm(alarm: Alarm) -> str:
    props = _typed("ACTION", alarm.action) + _typed("TRIGGER", alarm.trigger)
    return _format_component("VALARM", _set_properties(alarm.properties, props), [])


def format_event(event: Event) -> str:
    has_duration = any(p.name.upper() == "DURATION" for p in event.properties)
    props = _typed("UID", event.uid)
    ## TODO: keep TZID and write local time when the start carries a zone
    for name, ts in (
        ("DTSTAMP", event.timestamp),
        ("DTSTART", event.start_date),
        ("DTEND", None if has_duration else event.end_date),
    ):
        if ts is not None:
            props.append(Property(name=name, value=to_utc_string(ts)))
    props += _typed("SUMMARY", event.summary)
    props += _typed("DESCRIPTION", event.description)
    return _format_component(
        "VEVENT",
        _set_properties(event.properties, props),
        [format_alarm(alarm) for alarm in event.alarms],
    )


def format_calendar(calendar: Calendar) -> str:
    """
    Serializes a calendar back into iCalendar text.  The typed fields
    win over raw properties of the same name; the calendar itself is
    not modified.
    """
    props = (
        _typed("PRODID", calendar.prodid)
        + _typed("VERSION", calendar.version)
        + _typed("CALSCALE", calendar.calscale)
        + _typed("METHOD", calendar.method)
    )
    return _format_component(
        "VCALENDAR",
        _set_properties(calendar.properties, props),
        [format_event(event) for event in calendar.events],
    )


def write_calendar(fp, calendar: Calendar) -> None:
    """Writes the calendar to a text file object opened with newline=''."""
    fp.write(format_calendar(calendar))
