import re

FOLD = re.compile(r"\r\n[ \t]")


def to_wire(text):
    """
    Returns the text as bytes with every line terminated by CRLF, the
    way RFC5545 wants it on the wire.
    """
    if text is None:
        return None
    if isinstance(text, str):
        text = bytes(text, "utf-8")
    text = text.replace(b"\n", b"\r\n")
    text = text.replace(b"\r\r\n", b"\r\n")
    return text


def to_normal_str(text):
    """
    Make sure we get a str back, no matter if bytes or str is given.
    Line endings are left untouched.
    """
    if text is None:
        return text
    if not isinstance(text, str):
        text = text.decode("utf-8")
    return text


def to_crlf(text):
    """str counterpart of to_wire"""
    if text is None:
        return None
    return to_wire(text).decode("utf-8")


def unfold(text):
    """
    Joins folded content lines: a CRLF immediately followed by a single
    space or horizontal tab is removed together with that whitespace
    character (RFC5545 section 3.1).
    """
    return FOLD.sub("", text)
