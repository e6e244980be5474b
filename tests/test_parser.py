"""
Tests for the parser and the validation it triggers.

All input is inline; there is no file or network access.
"""

import io
import logging
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from zoneinfo import ZoneInfo

import pytest

import calparse
from calparse import ICalSyntaxError
from calparse import LexicalError
from calparse import parse
from calparse import Parser
from calparse import SemanticError
from calparse.scanner import TokenKind

utc = timezone.utc


def crlf(text):
    return text.replace("\n", "\r\n")


simple = crlf(
    """BEGIN:VCALENDAR
PRODID:-//Test//EN
VERSION:2.0
BEGIN:VEVENT
UID:1@test
DTSTAMP:20200101T000000Z
DTSTART:20200101T100000Z
SUMMARY:Hi
END:VEVENT
END:VCALENDAR
"""
)

with_alarm = crlf(
    """BEGIN:VCALENDAR
PRODID:-//ABC Corporation//NONSGML My Product//EN
VERSION:2.0
X-WR-CALNAME:Work
BEGIN:VEVENT
UID:19970901T130000Z-123403@example.com
DTSTAMP:19970901T130000Z
DTSTART;TZID=America/New_York:19970903T163000
DTEND;TZID=America/New_York:19970903T190000
SUMMARY:Annual Employee Review
DESCRIPTION:Project xyz Review Meeting
ATTENDEE;ROLE=REQ-PARTICIPANT;DELEGATED-FROM="mailto:a@example.com","mailto:b@example.com":mailto:c@example.com
BEGIN:VALARM
ACTION:DISPLAY
TRIGGER;RELATED=START:-PT15M
DESCRIPTION:Reminder
END:VALARM
END:VEVENT
BEGIN:VEVENT
UID:second@example.com
DTSTAMP:19970901T130000Z
DTSTART;VALUE=DATE:19971102
END:VEVENT
END:VCALENDAR
"""
)


def event_calendar(*event_lines, calendar_lines=("PRODID:-//Test//EN", "VERSION:2.0")):
    lines = (
        ["BEGIN:VCALENDAR"]
        + list(calendar_lines)
        + ["BEGIN:VEVENT"]
        + list(event_lines)
        + ["END:VEVENT", "END:VCALENDAR"]
    )
    return "\r\n".join(lines) + "\r\n"


class TestParse:
    def test_end_to_end(self):
        cal = parse(simple, location=utc)
        assert cal.prodid == "-//Test//EN"
        assert cal.version == "2.0"
        assert cal.calscale == "GREGORIAN"
        assert cal.method == ""
        assert len(cal.events) == 1
        event = cal.events[0]
        assert event.uid == "1@test"
        assert event.timestamp == datetime(2020, 1, 1, tzinfo=utc)
        assert event.start_date == datetime(2020, 1, 1, 10, tzinfo=utc)
        assert event.end_date == datetime(2020, 1, 2, 10, tzinfo=utc)
        assert event.summary == "Hi"
        assert event.description == ""
        assert event.alarms == []

    def test_components_and_properties(self):
        cal = parse(with_alarm, location=utc)
        assert [p.name for p in cal.properties] == ["PRODID", "VERSION", "X-WR-CALNAME"]
        assert len(cal.events) == 2

        first, second = cal.events
        assert first.summary == "Annual Employee Review"
        assert first.description == "Project xyz Review Meeting"
        new_york = ZoneInfo("America/New_York")
        assert first.start_date == datetime(1997, 9, 3, 16, 30, tzinfo=new_york)
        assert first.end_date == datetime(1997, 9, 3, 19, 0, tzinfo=new_york)

        attendee = [p for p in first.properties if p.name == "ATTENDEE"][0]
        assert list(attendee.params) == ["ROLE", "DELEGATED-FROM"]
        assert attendee.params["ROLE"].values == ["REQ-PARTICIPANT"]
        assert attendee.params["DELEGATED-FROM"].values == [
            "mailto:a@example.com",
            "mailto:b@example.com",
        ]
        assert attendee.value == "mailto:c@example.com"

        assert len(first.alarms) == 1
        alarm = first.alarms[0]
        assert alarm.action == "DISPLAY"
        assert alarm.trigger == "-PT15M"
        assert [p.name for p in alarm.properties] == ["ACTION", "TRIGGER", "DESCRIPTION"]
        assert alarm.properties[1].param("related").value == "START"
        ## the alarm description does not leak into the event
        assert [p.value for p in first.properties if p.name == "DESCRIPTION"] == [
            "Project xyz Review Meeting"
        ]

        assert second.start_date == datetime(1997, 11, 2, tzinfo=utc)
        assert second.end_date == datetime(1997, 11, 3, tzinfo=utc)
        assert second.alarms == []

    def test_default_location(self):
        cal = parse(event_calendar("UID:x", "DTSTAMP:20200101T000000Z", "DTSTART:20200101T100000"), location="Europe/Oslo")
        assert cal.events[0].start_date == datetime(2020, 1, 1, 9, tzinfo=utc)

    def test_source_types(self):
        for source in (
            simple.encode("utf-8"),
            simple.replace("\r\n", "\n"),
            io.StringIO(simple),
            io.BytesIO(simple.encode("utf-8")),
        ):
            cal = parse(source, location=utc)
            assert cal.events[0].uid == "1@test"

    def test_unfolding(self):
        text = event_calendar(
            "UID:x",
            "DTSTAMP:20200101T000000Z",
            "DTSTART:20200101T100000Z",
            "DESCRIPTION:This is a lo\r\n ng description\r\n\t that spans lines",
        )
        cal = parse(text, location=utc)
        assert cal.events[0].description == "This is a long description that spans lines"

    def test_calendar_without_events(self):
        cal = parse(crlf("BEGIN:VCALENDAR\nPRODID:x\nVERSION:2.0\nMETHOD:PUBLISH\nEND:VCALENDAR\n"))
        assert cal.events == []
        assert cal.method == "PUBLISH"

    def test_other_components_are_kept_raw(self):
        text = crlf(
            """BEGIN:VCALENDAR
PRODID:x
VERSION:2.0
BEGIN:VTIMEZONE
TZID:Europe/Brussels
END:VTIMEZONE
END:VCALENDAR
"""
        )
        cal = parse(text)
        assert [(p.name, p.value) for p in cal.properties][2:] == [
            ("BEGIN", "VTIMEZONE"),
            ("TZID", "Europe/Brussels"),
            ("END", "VTIMEZONE"),
        ]

    def test_nothing_read_after_end(self):
        parser = Parser(simple + "BEGIN:VCALENDAR\r\nthis is ; not ical")
        parser.parse()
        assert parser.scanner.pos == len(simple)

    def test_concurrent_parsers_are_independent(self):
        first = Parser(simple, location=utc)
        second = Parser(with_alarm, location=utc)
        assert first.next().kind == TokenKind.BEGIN_VCALENDAR
        assert len(second.parse().events) == 2
        first.backup()
        assert first.parse().events[0].uid == "1@test"

    @pytest.mark.parametrize("summary", ["Café\u00a0Noir", "会議\u3000東京"])
    def test_unicode_spaces_in_summary(self, summary):
        cal = parse(simple.replace("SUMMARY:Hi", "SUMMARY:" + summary).encode("utf-8"))
        assert cal.events[0].summary == summary


class TestPushback:
    def test_peek_and_backup(self):
        parser = Parser(simple)
        token = parser.peek()
        assert token.kind == TokenKind.BEGIN_VCALENDAR
        assert parser.next() is token
        assert parser.next().kind == TokenKind.LINE_END
        parser.backup()
        assert parser.next().kind == TokenKind.LINE_END
        assert parser.next().kind == TokenKind.NAME

    def test_backup_only_once(self):
        parser = Parser(simple)
        with pytest.raises(RuntimeError):
            parser.backup()
        parser.next()
        parser.backup()
        with pytest.raises(RuntimeError):
            parser.backup()


class TestSyntaxErrors:
    def test_missing_begin(self):
        with pytest.raises(ICalSyntaxError) as excinfo:
            parse("PRODID:x\r\n")
        assert "expected BEGIN:VCALENDAR" in str(excinfo.value)
        assert excinfo.value.line == 1
        assert excinfo.value.position == 0

    def test_premature_end_of_input(self):
        with pytest.raises(ICalSyntaxError) as excinfo:
            parse("BEGIN:VCALENDAR\r\nPRODID:x\r\n")
        assert "found EOF" in str(excinfo.value)

    def test_lexical_error_propagates(self):
        with pytest.raises(LexicalError) as excinfo:
            parse(crlf("BEGIN:VCALENDAR\nPRODID:x\nVERSION 2.0\nEND:VCALENDAR\n"))
        assert excinfo.value.line == 3
        assert "line 3" in str(excinfo.value)

    def test_unterminated_quote(self):
        with pytest.raises(LexicalError):
            parse(event_calendar('ATTENDEE;CN="Jane:mailto:jane@example.com'))

    @pytest.mark.parametrize("wrap", [bytes, io.BytesIO])
    def test_invalid_utf8(self, wrap):
        data = simple.encode("utf-8").replace(b"SUMMARY:Hi", b"SUMMARY:H\xffi")
        with pytest.raises(LexicalError) as excinfo:
            parse(wrap(data))
        assert "invalid UTF-8" in str(excinfo.value)
        assert excinfo.value.position == data.index(b"\xff")
        assert excinfo.value.line == 8

    def test_errors_share_a_base(self):
        for error in (LexicalError, ICalSyntaxError, calparse.SemanticError):
            assert issubclass(error, calparse.ICalError)


class TestSemanticErrors:
    def test_missing_prodid_and_version(self):
        text = crlf(
            """BEGIN:VCALENDAR
BEGIN:VEVENT
UID:x
DTSTAMP:20200101T000000Z
DTSTART:20200101T100000Z
END:VEVENT
END:VCALENDAR
"""
        )
        with pytest.raises(SemanticError) as excinfo:
            parse(text)
        assert excinfo.value.line == 2
        assert "PRODID" in str(excinfo.value)

    @pytest.mark.parametrize("missing", ["PRODID", "VERSION"])
    def test_missing_without_events(self, missing):
        lines = {"PRODID": "PRODID:x", "VERSION": "VERSION:2.0"}
        del lines[missing]
        text = "BEGIN:VCALENDAR\r\n" + "".join(l + "\r\n" for l in lines.values()) + "END:VCALENDAR\r\n"
        with pytest.raises(SemanticError, match=missing):
            parse(text)

    def test_duplicate_version(self):
        with pytest.raises(SemanticError, match="VERSION"):
            parse(event_calendar("UID:x", calendar_lines=("PRODID:x", "VERSION:2.0", "VERSION:2.0")))

    def test_dtend_and_duration(self):
        text = event_calendar(
            "UID:x",
            "DTSTAMP:20200101T000000Z",
            "DTSTART:20200101T100000Z",
            "DTEND:20200101T110000Z",
            "DURATION:PT1H",
        )
        with pytest.raises(SemanticError, match="DURATION"):
            parse(text)

    @pytest.mark.parametrize(
        "lines,fragment",
        [
            (("DTSTAMP:20200101T000000Z", "DTSTART:20200101T100000Z"), "UID"),
            (("UID:x", "DTSTAMP:20200101T000000Z"), "DTSTART"),
            (("UID:x", "DTSTART:20200101T100000Z"), "DTSTAMP"),
        ],
    )
    def test_missing_event_property(self, lines, fragment):
        with pytest.raises(SemanticError, match=fragment):
            parse(event_calendar(*lines))

    @pytest.mark.parametrize(
        "name", ["UID", "DTSTAMP", "DTSTART", "DTEND", "DURATION", "SUMMARY", "DESCRIPTION"]
    )
    def test_repeated_event_property(self, name):
        values = {
            "UID": "x",
            "DTSTAMP": "20200101T000000Z",
            "DTSTART": "20200101T100000Z",
            "DTEND": "20200101T110000Z",
            "DURATION": "PT1H",
            "SUMMARY": "s",
            "DESCRIPTION": "d",
        }
        lines = [f"{n}:{values[n]}" for n in ("UID", "DTSTAMP", "DTSTART")]
        lines += [f"{name}:{values[name]}"] * (1 if name in ("UID", "DTSTAMP", "DTSTART") else 2)
        with pytest.raises(SemanticError, match=f'"{name}" property must not occur more than once'):
            parse(event_calendar(*lines))

    def test_dtstamp_optional_with_method(self):
        cal = parse(
            event_calendar(
                "UID:x",
                "DTSTART:20200101T100000Z",
                calendar_lines=("PRODID:x", "VERSION:2.0", "METHOD:REQUEST"),
            )
        )
        assert cal.events[0].timestamp is None

    def test_property_names_are_case_insensitive(self):
        cal = parse(event_calendar("uid:x", "dtstamp:20200101T000000Z", "DtStart:20200101T100000Z"))
        assert cal.events[0].uid == "x"
        assert cal.events[0].start_date == datetime(2020, 1, 1, 10, tzinfo=utc)


class TestAlarms:
    def alarm_calendar(self, *alarm_lines):
        return event_calendar(
            "UID:x",
            "DTSTAMP:20200101T000000Z",
            "DTSTART:20200101T100000Z",
            "BEGIN:VALARM",
            *alarm_lines,
            "END:VALARM",
        )

    def test_alarm(self):
        cal = parse(self.alarm_calendar("ACTION:AUDIO", "TRIGGER:-PT5M"))
        alarm = cal.events[0].alarms[0]
        assert (alarm.action, alarm.trigger) == ("AUDIO", "-PT5M")

    @pytest.mark.parametrize(
        "lines,fragment",
        [
            (("ACTION:AUDIO",), "TRIGGER"),
            (("TRIGGER:-PT5M",), "ACTION"),
            (("ACTION:AUDIO", "ACTION:DISPLAY", "TRIGGER:-PT5M"), "ACTION"),
            (("ACTION:AUDIO", "TRIGGER:-PT5M", "TRIGGER:-PT1M"), "TRIGGER"),
        ],
    )
    def test_invalid_alarm(self, lines, fragment):
        with pytest.raises(SemanticError, match=fragment):
            parse(self.alarm_calendar(*lines))


class TestNesting:
    @pytest.mark.parametrize(
        "text",
        [
            ## END:VEVENT with an open alarm
            event_calendar("UID:x", "DTSTART:20200101T100000Z", "BEGIN:VALARM", "ACTION:AUDIO", "TRIGGER:-PT5M"),
            ## alarm outside of an event
            crlf("BEGIN:VCALENDAR\nPRODID:x\nVERSION:2.0\nBEGIN:VALARM\nEND:VALARM\nEND:VCALENDAR\n"),
            ## END:VALARM without an alarm
            event_calendar("UID:x", "DTSTART:20200101T100000Z", "END:VALARM"),
            ## nested events
            event_calendar("UID:x", "BEGIN:VEVENT"),
            ## END:VEVENT at calendar level
            crlf("BEGIN:VCALENDAR\nPRODID:x\nVERSION:2.0\nEND:VEVENT\nEND:VCALENDAR\n"),
            ## calendar closed with an open event
            crlf("BEGIN:VCALENDAR\nPRODID:x\nVERSION:2.0\nBEGIN:VEVENT\nEND:VCALENDAR\n"),
            ## nested calendars
            crlf("BEGIN:VCALENDAR\nPRODID:x\nVERSION:2.0\nBEGIN:VCALENDAR\n"),
        ],
    )
    def test_illegal_nesting(self, text):
        with pytest.raises(SemanticError, match="found <"):
            parse(text)


class TestDateLeniency:
    text = event_calendar("UID:x", "DTSTAMP:20200101T000000Z", "DTSTART:not-a-date")

    def test_lenient_by_default(self, caplog):
        with caplog.at_level(logging.WARNING, logger="calparse"):
            cal = parse(self.text)
        event = cal.events[0]
        assert event.start_date is None
        assert event.end_date is None
        assert event.timestamp == datetime(2020, 1, 1, tzinfo=utc)
        assert "DTSTART" in caplog.text

    def test_strict(self):
        with pytest.raises(SemanticError, match="DTSTART") as excinfo:
            parse(self.text, strict=True)
        assert excinfo.value.line is not None

    def test_duration(self):
        cal = parse(
            event_calendar("UID:x", "DTSTAMP:20200101T000000Z", "DTSTART:20200101T100000Z", "DURATION:PT1H30M"),
            location=utc,
        )
        event = cal.events[0]
        assert event.duration == timedelta(hours=1, minutes=30)
        ## without DTEND the end date is always one day after the start
        assert event.end_date == datetime(2020, 1, 2, 10, tzinfo=utc)

    def test_end_is_elapsed_time(self):
        ## 2020-03-08 is the day daylight saving time starts in New York
        cal = parse(
            event_calendar(
                "UID:x",
                "DTSTAMP:20200101T000000Z",
                "DTSTART;TZID=America/New_York:20200308T000000",
            )
        )
        event = cal.events[0]
        assert event.end_date.astimezone(utc) - event.start_date.astimezone(utc) == timedelta(
            hours=24
        )
        assert event.end_date.hour == 1
        assert event.end_date.astimezone(utc) == datetime(2020, 3, 9, 5, tzinfo=utc)
