#!/usr/bin/env python
import logging
import os
from typing import Optional

## one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_CALPARSE_DEBUGMODE", "PRODUCTION")

log = logging.getLogger("calparse")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


class ICalError(Exception):
    """
    Base class for everything that can go wrong while turning
    iCalendar text into a Calendar.  ``position`` is the character
    offset in the (unfolded) input, ``line`` the 1-based line number.
    """

    reason: str = "no reason"
    position: Optional[int] = None
    line: Optional[int] = None

    def __init__(
        self,
        reason: Optional[str] = None,
        position: Optional[int] = None,
        line: Optional[int] = None,
    ) -> None:
        if reason:
            self.reason = reason
        if position is not None:
            self.position = position
        if line is not None:
            self.line = line
        super().__init__(self.reason)

    def __str__(self) -> str:
        if self.position is None:
            return "%s, reason %s" % (self.__class__.__name__, self.reason)
        return "%s at line %s (offset %s), reason %s" % (
            self.__class__.__name__,
            self.line,
            self.position,
            self.reason,
        )


class LexicalError(ICalError):
    """
    Unrecognized character, unterminated quoted value or malformed
    line terminator.  Raised when the scanner hands out an error token.
    """

    pass


class ICalSyntaxError(ICalError):
    """
    The token sequence does not follow the content-line or component
    grammar.
    """

    pass


class SemanticError(ICalError):
    """
    Missing required property, cardinality violation, DTEND/DURATION
    conflict or illegal component nesting.
    """

    pass


class DateResolutionError(ICalError, ValueError):
    """
    A DATE or DATE-TIME value could not be resolved.  Not fatal by
    itself, the validator decides what to do about it.
    """

    pass
