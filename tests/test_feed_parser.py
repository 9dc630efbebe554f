"""Unit tests for FeedParser."""
import json
from datetime import datetime

import pytest

from processor.feed_parser import FeedParser, extract_course_code, parse_feed_datetime
from processor.models import Calendar


SAMPLE_FEED = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//KTH//Social//EN\r\n"
    "BEGIN:VEVENT\r\n"
    "DTSTART;VALUE=DATE-TIME:20210830T080000Z\r\n"
    "DTEND;VALUE=DATE-TIME:20210830T100000Z\r\n"
    "SUMMARY:Linear Algebra (SF1624)\r\n"
    "URL:https://www.kth.se/social/course/SF1624/\r\n"
    "LOCATION:Q2\r\n"
    "DESCRIPTION:https://www.kth.se/social/course/SF1624/event/1/\\nLecture 1\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "DTSTART;VALUE=DATE-TIME:20210831T130000Z\r\n"
    "DTEND;VALUE=DATE-TIME:20210831T150000Z\r\n"
    "SUMMARY:Programming Project\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)


class TestParseFeedDatetime:
    """Test cases for the fixed-format timestamp parser."""

    def test_applies_fixed_offset(self):
        """Test the hour field is shifted by two hours."""
        assert parse_feed_datetime("20210830T143000") == datetime(2021, 8, 30, 16, 30)

    def test_offset_rolls_over_midnight(self):
        """Test a late hour rolls into the next day."""
        assert parse_feed_datetime("20211231T230000Z") == datetime(2022, 1, 1, 1, 0)

    def test_malformed_value_raises(self):
        """Test a value of the wrong shape raises ValueError."""
        with pytest.raises(ValueError):
            parse_feed_datetime("tomorrow")


class TestExtractCourseCode:
    """Test cases for course code extraction."""

    def test_trailing_group(self):
        assert extract_course_code("Linear Algebra (SF1624)") == "SF1624"

    def test_only_last_group_counts(self):
        assert extract_course_code("Lab (part 1) (DD1337)") == "DD1337"

    def test_no_group(self):
        assert extract_course_code("Programming Project") is None
        assert extract_course_code(None) is None


class TestFeedParser:
    """Test cases for FeedParser class."""

    def test_parse_events_in_order(self):
        """Test events and their fields are parsed in feed order."""
        calendar = FeedParser().parse(SAMPLE_FEED)

        assert len(calendar.events) == 2
        first, second = calendar.events

        assert first.start_time == datetime(2021, 8, 30, 10, 0)
        assert first.end_time == datetime(2021, 8, 30, 12, 0)
        assert first.summary == "Linear Algebra (SF1624)"
        assert first.url == "https://www.kth.se/social/course/SF1624/"
        assert first.location == "Q2"
        assert first.description == (
            "https://www.kth.se/social/course/SF1624/event/1/\\nLecture 1"
        )
        assert first.code == "SF1624"

        assert second.summary == "Programming Project"
        assert second.location is None
        assert second.code is None

    def test_calendar_level_keys_are_ignored(self):
        """Test keys before the first event do not create events."""
        calendar = FeedParser().parse("BEGIN:VCALENDAR\nVERSION:2.0\nEND:VCALENDAR\n")
        assert calendar.events == []

    def test_folded_lines_are_joined(self):
        """Test a continuation line is collapsed into the previous line."""
        raw = "BEGIN:VEVENT\r\nSUMMARY:Long t\r\n itle\r\nEND:VEVENT\r\n"
        calendar = FeedParser().parse(raw)
        assert calendar.events[0].summary == "Long title"

    def test_unknown_keys_and_bare_lines_ignored(self):
        """Test arbitrary text does not raise."""
        raw = "garbage\nBEGIN:VEVENT\nX-CUSTOM:1\nno colon here\nSUMMARY:Kept\n"
        calendar = FeedParser().parse(raw)
        assert len(calendar.events) == 1
        assert calendar.events[0].summary == "Kept"

    def test_malformed_timestamp_left_unset(self):
        """Test a bad DTSTART leaves start_time empty."""
        raw = "BEGIN:VEVENT\nDTSTART;VALUE=DATE-TIME:soon\nSUMMARY:x\n"
        calendar = FeedParser().parse(raw)
        assert calendar.events[0].start_time is None

    def test_empty_input(self):
        assert FeedParser().parse("").events == []

    def test_update_time_is_set(self):
        calendar = FeedParser().parse(SAMPLE_FEED)
        assert calendar.update_time > 0

    def test_round_trip_through_json(self):
        """Test serialized and reloaded events keep their feed fields and order."""
        calendar = FeedParser().parse(SAMPLE_FEED)

        reloaded = Calendar.from_dict(json.loads(json.dumps(calendar.to_dict())))

        assert [e.identity_key() for e in reloaded.events] == [
            e.identity_key() for e in calendar.events
        ]
        assert [e.url for e in reloaded.events] == [e.url for e in calendar.events]
        assert reloaded.update_time == calendar.update_time
