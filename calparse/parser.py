"""
Recursive descent parser building the Calendar object graph.

The parser pulls tokens from a :class:`~calparse.scanner.Scanner` with
one token of lookahead, keeps a stack of the components currently open
(calendar, event, alarm) and hands every finished component to the
validator.  It either returns a complete Calendar or raises; there is
no partial result and no error recovery.
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Optional, Union

from calparse.lib.error import ICalSyntaxError, LexicalError, SemanticError
from calparse.lib.python_utilities import to_crlf, to_normal_str, unfold
from calparse.scanner import CRLF, Scanner, Token, TokenKind
from calparse.types import Alarm, Calendar, Event, Param, Property
from calparse.validator import validate_alarm, validate_calendar, validate_event

log = logging.getLogger("calparse")

Component = Union[Calendar, Event, Alarm]


class Parser:
    """
    Parses one unfolded iCalendar string.

    A parser instance is good for a single call to :meth:`parse`.

    Args:
        text: CRLF terminated, already unfolded iCalendar text
        location: default zone for floating dates, see
            :func:`calparse.lib.dates.get_location`
        strict: treat unresolvable date values as errors
    """

    def __init__(
        self,
        text: str,
        location: tzinfo | str | None = None,
        strict: bool = False,
    ) -> None:
        self.scanner = Scanner(text)
        self.location = location
        self.strict = strict
        self.calendar = Calendar()
        self.stack: list[Component] = [self.calendar]
        ## the one token that may be pushed back
        self._token: Optional[Token] = None
        self._pushed = False

    ## token stream

    def next(self) -> Token:
        """Returns the next token, raising LexicalError on an error token."""
        if self._pushed:
            self._pushed = False
        else:
            self._token = self.scanner.next_token()
        token = self._token
        if token.kind == TokenKind.ERROR:
            raise LexicalError(token.value, token.pos, token.line)
        return token

    def backup(self) -> None:
        """Pushes the last token back.  Only once per call to next."""
        if self._token is None or self._pushed:
            raise RuntimeError("only the last token read can be pushed back, and only once")
        self._pushed = True

    def peek(self) -> Token:
        token = self.next()
        self.backup()
        return token

    def expect(self, kind: TokenKind, what: Optional[str] = None) -> Token:
        token = self.next()
        if token.kind != kind:
            raise ICalSyntaxError(
                f"found {token}, expected {what or kind.value}", token.pos, token.line
            )
        return token

    @property
    def current(self) -> Component:
        return self.stack[-1]

    ## grammar

    def parse(self) -> Calendar:
        self.expect(TokenKind.BEGIN_VCALENDAR)
        self.expect(TokenKind.LINE_END, "CRLF")

        while True:
            token = self.next()
            if token.kind.is_delimiter:
                if self.scan_delimiter(token):
                    break
                continue
            self.backup()
            self.current.properties.append(self.scan_content_line())

        log.debug(
            f"parsed calendar {self.calendar.prodid!r} with {len(self.calendar.events)} event(s)"
        )
        return self.calendar

    def scan_delimiter(self, delim: Token) -> bool:
        """
        Opens or closes a component.  Returns True when the calendar
        itself was closed.
        """
        kind = delim.kind
        current = self.current

        if kind == TokenKind.BEGIN_VEVENT:
            if not isinstance(current, Calendar):
                self._nesting_error(delim, current)
            self._validate(validate_calendar, delim, self.calendar)
            self.stack.append(Event())

        elif kind == TokenKind.END_VEVENT:
            if not isinstance(current, Event):
                self._nesting_error(delim, current)
            self._validate(
                validate_event, delim, current, self.calendar, self.location, self.strict
            )
            self.stack.pop()
            self.calendar.events.append(current)
            log.debug(f"closed event {current.uid!r}")

        elif kind == TokenKind.BEGIN_VALARM:
            if not isinstance(current, Event):
                self._nesting_error(delim, current)
            self.stack.append(Alarm())

        elif kind == TokenKind.END_VALARM:
            if not isinstance(current, Alarm):
                self._nesting_error(delim, current)
            self._validate(validate_alarm, delim, current)
            self.stack.pop()
            self.current.alarms.append(current)

        elif kind == TokenKind.END_VCALENDAR:
            if not isinstance(current, Calendar):
                self._nesting_error(delim, current)
            self._validate(validate_calendar, delim, self.calendar)

        elif kind == TokenKind.BEGIN_VCALENDAR:
            self._nesting_error(delim, current)

        self.expect(TokenKind.LINE_END, "CRLF")
        return kind == TokenKind.END_VCALENDAR

    def _validate(self, validator, delim: Token, *args) -> None:
        try:
            validator(*args)
        except SemanticError as e:
            ## position of the delimiter that triggered the validation
            if e.position is None:
                e.position, e.line = delim.pos, delim.line
            raise

    def _nesting_error(self, delim: Token, current: Component) -> None:
        expected = {
            Calendar: "END:VCALENDAR",
            Event: "END:VEVENT",
            Alarm: "END:VALARM",
        }[type(current)]
        raise SemanticError(
            f"found {delim} inside {type(current).__name__}, expected {expected}",
            delim.pos,
            delim.line,
        )

    def scan_content_line(self) -> Property:
        """content-line := name params? ':' value line-end"""
        name = self.expect(TokenKind.NAME, 'a "name" token')
        prop = Property(name=name.value)

        self.scan_params(prop)
        self.expect(TokenKind.COLON, '":"')
        prop.value = self.expect(TokenKind.VALUE, "a value").value
        self.expect(TokenKind.LINE_END, "CRLF")
        return prop

    def scan_params(self, prop: Property) -> None:
        """params := (';' param-name '=' param-value (',' param-value)*)*"""
        while True:
            if self.next().kind != TokenKind.SEMICOLON:
                self.backup()
                return
            param_name = self.expect(TokenKind.PARAM_NAME, "a param-name")
            self.expect(TokenKind.EQUAL, '"="')
            prop.params[param_name.value] = self.scan_values()

    def scan_values(self) -> Param:
        """Parses the list of at least one value of a param."""
        param = Param()
        param.values.append(self.expect(TokenKind.PARAM_VALUE, "a param-value").value)
        while True:
            if self.next().kind != TokenKind.COMMA:
                self.backup()
                return param
            param.values.append(self.expect(TokenKind.PARAM_VALUE, "a param-value").value)


def parse(
    source,
    location: tzinfo | str | None = None,
    strict: bool = False,
    fixups: bool = False,
) -> Calendar:
    """Parses iCalendar data into a :class:`~calparse.types.Calendar`.

    Args:
        source: str, bytes, or a readable file object.  The caller is
            responsible for closing a file object.
        location: default zone for dates without zone information.
            None means the local zone of the running system.
        strict: raise SemanticError for DTSTAMP/DTSTART/DTEND values
            that cannot be resolved instead of leaving the field unset.
        fixups: work around known breakage in ical data from various
            producers before parsing, see :func:`calparse.lib.vcal.fix`.

    Returns:
        The complete Calendar.

    Raises:
        LexicalError, ICalSyntaxError, SemanticError.  Bytes that are not
        valid UTF-8 are a LexicalError.
    """
    if hasattr(source, "read"):
        source = source.read()
    try:
        text = to_crlf(to_normal_str(source))
    except UnicodeDecodeError as e:
        line = e.object[: e.start].count(b"\n") + 1
        raise LexicalError(f"invalid UTF-8: {e.reason}", e.start, line) from e
    if not text.endswith(CRLF):
        text += CRLF
    if fixups:
        from calparse.lib.vcal import fix

        text = fix(text)
    return Parser(unfold(text), location=location, strict=strict).parse()
