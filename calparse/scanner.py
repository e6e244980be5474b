"""
Character level scanner for unfolded iCalendar text.

The scanner is a state machine in the style of a classic hand written
lexer: every state is a method that consumes characters, yields the
tokens it recognised and returns the next state.  Iterating over a
:class:`Scanner` drives the machine one token at a time, so nothing is
scanned before the parser asks for it.

Grammar covered (RFC5545 section 3.1)::

    contentline = name *(";" param) ":" value CRLF
    param       = param-name "=" param-value *("," param-value)
    param-value = paramtext / quoted-string
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generator, Iterator, Optional

log = logging.getLogger("calparse")

CRLF = "\r\n"


class TokenKind(Enum):
    """Kinds of tokens handed out by the scanner."""

    ERROR = "error"
    EOF = "end-of-input"
    LINE_END = "line-end"

    NAME = "name"
    PARAM_NAME = "param-name"
    PARAM_VALUE = "param-value"
    VALUE = "value"

    COLON = ":"
    SEMICOLON = ";"
    EQUAL = "="
    COMMA = ","

    BEGIN_VCALENDAR = "BEGIN:VCALENDAR"
    END_VCALENDAR = "END:VCALENDAR"
    BEGIN_VEVENT = "BEGIN:VEVENT"
    END_VEVENT = "END:VEVENT"
    BEGIN_VALARM = "BEGIN:VALARM"
    END_VALARM = "END:VALARM"

    @property
    def is_delimiter(self) -> bool:
        return self in DELIMITER_KINDS


## literal text at the start of a line to the delimiter token it stands for
DELIMITERS = {
    "BEGIN:VCALENDAR": TokenKind.BEGIN_VCALENDAR,
    "END:VCALENDAR": TokenKind.END_VCALENDAR,
    "BEGIN:VEVENT": TokenKind.BEGIN_VEVENT,
    "END:VEVENT": TokenKind.END_VEVENT,
    "BEGIN:VALARM": TokenKind.BEGIN_VALARM,
    "END:VALARM": TokenKind.END_VALARM,
}

DELIMITER_KINDS = frozenset(DELIMITERS.values())


@dataclass(frozen=True)
class Token:
    """
    A token or error message produced by the scanner.

    Attributes:
        kind: what was recognised
        value: the matched text, or the message of an ERROR token
        pos: character offset of the token start in the input
        line: 1-based line number of the token start
    """

    kind: TokenKind
    value: str
    pos: int
    line: int

    def __str__(self) -> str:
        if self.kind == TokenKind.EOF:
            return "EOF"
        if self.kind == TokenKind.ERROR:
            return self.value
        if self.kind == TokenKind.LINE_END:
            return "CRLF"
        if self.kind.is_delimiter:
            return f"<{self.value}>"
        if len(self.value) > 10:
            return f"{self.value[:10]!r}..."
        return repr(self.value)


## rune helpers


def is_name_char(ch: str) -> bool:
    return ch.isalpha() or ch.isdigit() or ch == "-"


def is_control(ch: str) -> bool:
    """C0 and C1 control characters and DEL"""
    code = ord(ch)
    return code < 0x20 or 0x7F <= code <= 0x9F


def is_qsafe_char(ch: str) -> bool:
    """QSAFE-CHAR: any character except CONTROL and DQUOTE"""
    return not is_control(ch) and ch != '"'


def is_safe_char(ch: str) -> bool:
    """SAFE-CHAR: any character except CONTROL, DQUOTE, ";", ":" and ","."""
    return is_qsafe_char(ch) and ch not in ";:,"


def is_value_char(ch: str) -> bool:
    """VALUE-CHAR: WSP, %x21-7E or NON-US-ASCII, that is anything but CONTROL"""
    return ch == "\t" or not is_control(ch)


StateFn = Callable[[], Generator[Token, None, Optional["StateFn"]]]


class Scanner:
    """
    Turns a single unfolded input string into a lazy, finite sequence
    of tokens.

    The sequence ends after an EOF token or after the first ERROR token.
    A scanner cannot be restarted; create a new one for a new input.
    """

    def __init__(self, text: str) -> None:
        self.input = text
        ## start of the pending token
        self.start = 0
        ## current position in the input
        self.pos = 0
        self.line = 1
        self._start_line = 1
        self._tokens = self._run()

    def __iter__(self) -> Iterator[Token]:
        return self

    def __next__(self) -> Token:
        return next(self._tokens)

    def next_token(self) -> Token:
        """
        Returns the next token.  Once the sequence is over, an EOF token
        at the end of the input is returned forever.
        """
        try:
            return next(self._tokens)
        except StopIteration:
            return Token(TokenKind.EOF, "", len(self.input), self.line)

    def _run(self) -> Iterator[Token]:
        state: Optional[StateFn] = self.scan_name
        while state is not None:
            state = yield from state()

    ## primitives

    def peek(self) -> str:
        """Returns but does not consume the next character, '' at the end."""
        return self.input[self.pos : self.pos + 1]

    def next(self) -> str:
        ch = self.peek()
        self.pos += len(ch)
        return ch

    def accept_run(self, valid: Callable[[str], bool]) -> None:
        """Consumes characters for as long as they are valid."""
        while self.pos < len(self.input) and valid(self.input[self.pos]):
            self.pos += 1

    def emit(self, kind: TokenKind) -> Token:
        token = Token(kind, self.input[self.start : self.pos], self.start, self._start_line)
        self.ignore()
        return token

    def ignore(self) -> None:
        """Skips over the pending input before this point."""
        self.start = self.pos
        self._start_line = self.line

    def error(self, message: str) -> Token:
        log.debug(f"lexical error at offset {self.start}: {message}")
        return Token(TokenKind.ERROR, message, self.start, self._start_line)

    def describe(self, ch: str) -> str:
        if not ch:
            return "end of input"
        return f"U+{ord(ch):04X} {ch!r}"

    ## states

    def scan_name(self):
        """
        Start of a content line: either one of the component delimiters
        or a property name.

        name = iana-token / x-name
        """
        for literal, kind in DELIMITERS.items():
            if self.input.startswith(literal, self.pos):
                self.pos += len(literal)
                yield self.emit(kind)
                return self.scan_line_end

        self.accept_run(is_name_char)
        if self.pos == self.start:
            yield self.error(
                f"expected a property name, got {self.describe(self.peek())}"
            )
            return None
        yield self.emit(TokenKind.NAME)
        return self.scan_content_line

    def scan_content_line(self):
        ch = self.next()
        if ch == ";":
            yield self.emit(TokenKind.SEMICOLON)
            return self.scan_param_name
        if ch == ":":
            yield self.emit(TokenKind.COLON)
            return self.scan_value
        if ch == ",":
            yield self.emit(TokenKind.COMMA)
            return self.scan_param_value
        yield self.error(f"unrecognized character in content line: {self.describe(ch)}")
        return None

    def scan_param_name(self):
        """param-name = iana-token / x-name"""
        self.accept_run(is_name_char)
        if self.pos == self.start:
            yield self.error(
                f"expected a param name, got {self.describe(self.peek())}"
            )
            return None
        yield self.emit(TokenKind.PARAM_NAME)

        ch = self.next()
        if ch != "=":
            yield self.error(f'missing "=" sign after param name, got {self.describe(ch)}')
            return None
        yield self.emit(TokenKind.EQUAL)
        return self.scan_param_value

    def scan_param_value(self):
        """
        param-value   = paramtext / quoted-string
        paramtext     = *SAFE-CHAR
        quoted-string = DQUOTE *QSAFE-CHAR DQUOTE
        """
        if self.peek() == '"':
            self.next()
            self.ignore()
            self.accept_run(is_qsafe_char)
            token = self.emit(TokenKind.PARAM_VALUE)
            if self.next() != '"':
                yield self.error('missing " for closing quoted param value')
                return None
            self.ignore()
            yield token
        else:
            self.accept_run(is_safe_char)
            yield self.emit(TokenKind.PARAM_VALUE)
        return self.scan_content_line

    def scan_value(self):
        """value = *VALUE-CHAR"""
        self.accept_run(is_value_char)
        yield self.emit(TokenKind.VALUE)
        return self.scan_line_end

    def scan_line_end(self):
        if not self.input.startswith(CRLF, self.pos):
            yield self.error(
                f'unable to find end of line "CRLF", got {self.describe(self.peek())}'
            )
            return None
        self.pos += len(CRLF)
        token = self.emit(TokenKind.LINE_END)
        self.line += 1
        self.ignore()
        yield token

        if self.pos >= len(self.input):
            yield self.emit(TokenKind.EOF)
            return None
        return self.scan_name
