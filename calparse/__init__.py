#!/usr/bin/env python
import logging

__version__ = "0.3.0"

from .lib.error import DateResolutionError
from .lib.error import ICalError
from .lib.error import ICalSyntaxError
from .lib.error import LexicalError
from .lib.error import SemanticError
from .lib.vcal import format_calendar
from .lib.vcal import write_calendar
from .parser import parse
from .parser import Parser
from .scanner import Scanner
from .types import Alarm
from .types import Calendar
from .types import Event
from .types import Param
from .types import Property

# Silence notification of no default logging handler
log = logging.getLogger("calparse")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "parse",
    "format_calendar",
    "write_calendar",
    "Parser",
    "Scanner",
    "Calendar",
    "Event",
    "Alarm",
    "Property",
    "Param",
    "ICalError",
    "LexicalError",
    "ICalSyntaxError",
    "SemanticError",
    "DateResolutionError",
]
