"""
Object graph produced by the parser.

Every component keeps the raw properties in the order they were read,
next to the typed fields the validator fills in.  Components own their
properties and sub-components exclusively; nothing is shared between
calendars.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass
class Param:
    """Ordered, non-empty list of values for one property parameter."""

    values: list[str] = field(default_factory=list)

    @property
    def value(self) -> str | None:
        """The first value, which is all most parameters ever carry."""
        return self.values[0] if self.values else None


@dataclass
class Property:
    """
    An unparsed content line.

    Attributes:
        name: property name, case as written
        params: parameter name (case as written) to Param
        value: the raw value text
    """

    name: str
    params: dict[str, Param] = field(default_factory=dict)
    value: str = ""

    def param(self, name: str) -> Param | None:
        """Case-insensitive parameter lookup."""
        if name in self.params:
            return self.params[name]
        name = name.upper()
        for key, param in self.params.items():
            if key.upper() == name:
                return param
        return None


@dataclass
class Alarm:
    """A VALARM component."""

    properties: list[Property] = field(default_factory=list)
    action: str = ""
    trigger: str = ""


@dataclass
class Event:
    """A VEVENT component."""

    properties: list[Property] = field(default_factory=list)
    alarms: list[Alarm] = field(default_factory=list)
    uid: str = ""
    timestamp: datetime | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    summary: str = ""
    description: str = ""
    duration: timedelta | None = None


@dataclass
class Calendar:
    """A VCALENDAR component, the root of the graph."""

    properties: list[Property] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    prodid: str = ""
    version: str = ""
    calscale: str = "GREGORIAN"
    method: str = ""
