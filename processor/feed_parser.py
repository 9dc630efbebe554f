"""Parser turning raw iCalendar feed text into a Calendar."""
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from processor.models import Calendar, Event

logger = logging.getLogger(__name__)

# A line break followed by whitespace continues the previous line
FOLDED_LINE = re.compile(r'\r?\n[ \t]')
LINE_BREAK = re.compile(r'\r?\n')
COURSE_CODE = re.compile(r'\(([^()]*)\)\s*$')


def parse_feed_datetime(value: str) -> datetime:
    """
    Parse a feed timestamp of the form YYYYMMDDTHHMMSS.

    Fields are sliced at fixed offsets and the hour is shifted by the
    feed's fixed +2h offset. Seconds are not used.

    Args:
        value: Raw DTSTART/DTEND value

    Returns:
        Naive datetime holding the shifted wall time

    Raises:
        ValueError: If the value does not have the expected shape
    """
    year = int(value[0:4])
    month = int(value[4:6])
    day = int(value[6:8])
    hour = int(value[9:11])
    minute = int(value[11:13])
    return datetime(year, month, day, hour, minute) + timedelta(hours=2)


def extract_course_code(summary: Optional[str]) -> Optional[str]:
    """Return the trailing parenthesized group of a summary, if any."""
    if not summary:
        return None
    match = COURSE_CODE.search(summary)
    if not match:
        return None
    return match.group(1).strip() or None


class FeedParser:
    """Fixed-format parser for the calendar feed."""

    DATETIME_KEYS = {
        'DTSTART;VALUE=DATE-TIME': 'start_time',
        'DTSTART': 'start_time',
        'DTEND;VALUE=DATE-TIME': 'end_time',
        'DTEND': 'end_time',
    }
    TEXT_KEYS = {
        'VERSION': 'version',
        'URL': 'url',
        'SUMMARY': 'summary',
        'LOCATION': 'location',
        'DESCRIPTION': 'description',
    }

    def parse(self, raw: str) -> Calendar:
        """
        Parse feed text into a Calendar.

        Unknown keys and lines without a colon are ignored, so any string
        yields a Calendar.

        Args:
            raw: Raw feed text

        Returns:
            Calendar with events in feed order
        """
        calendar = Calendar()
        current = None

        for line in LINE_BREAK.split(FOLDED_LINE.sub('', raw)):
            key, sep, value = line.partition(':')
            if not sep:
                continue

            if key == 'BEGIN':
                if value.strip() == 'VEVENT':
                    current = Event()
                    calendar.events.append(current)
                continue

            if current is None:
                continue

            if key in self.TEXT_KEYS:
                setattr(current, self.TEXT_KEYS[key], value)
            elif key in self.DATETIME_KEYS:
                try:
                    setattr(current, self.DATETIME_KEYS[key], parse_feed_datetime(value))
                except ValueError:
                    logger.warning(f"Ignoring malformed timestamp {key}:{value}")

        for event in calendar.events:
            event.code = extract_course_code(event.summary)

        logger.info(f"Parsed {len(calendar.events)} events from feed")
        return calendar
