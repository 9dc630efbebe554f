"""Local cache of the raw feed and the enriched calendar."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from processor.calendar_updater import CalendarUpdater
from processor.event_enricher import EventEnricher
from processor.exceptions import ParseError
from processor.feed_parser import FeedParser
from processor.models import Calendar
from scraper.http_client import HttpClient

logger = logging.getLogger(__name__)


class CacheStore:
    """Read-through cache for the enriched calendar."""

    RAW_FEED_FILE = 'rawCalendar.ics'
    CALENDAR_FILE = 'calendar.json'

    def __init__(
        self,
        cache_dir: Path,
        feed_url: str,
        http_client: HttpClient,
        enricher: EventEnricher,
        parser: FeedParser = None,
        updater: CalendarUpdater = None
    ):
        """
        Initialize the cache store.

        Args:
            cache_dir: Directory holding the cached artifacts
            feed_url: URL of the calendar feed
            http_client: Client used to fetch the feed
            enricher: Enricher used for cold starts and new events
            parser: Feed parser (default: FeedParser())
            updater: Incremental updater (default: built around enricher)
        """
        self.cache_dir = Path(cache_dir)
        self.feed_url = feed_url
        self.http_client = http_client
        self.enricher = enricher
        self.parser = parser or FeedParser()
        self.updater = updater or CalendarUpdater(enricher)

    @property
    def raw_feed_path(self) -> Path:
        return self.cache_dir / self.RAW_FEED_FILE

    @property
    def calendar_path(self) -> Path:
        return self.cache_dir / self.CALENDAR_FILE

    async def get_or_build(self) -> Calendar:
        """
        Return the cached calendar, building and persisting it on a miss.

        A missing or unreadable cache file counts as a miss.

        Raises:
            NetworkError: If the feed cannot be fetched on a miss
        """
        try:
            calendar = await asyncio.to_thread(self.load_calendar)
        except ParseError as e:
            logger.warning(f"Ignoring unreadable calendar cache: {e}")
            calendar = None

        if calendar is not None:
            logger.info(f"Serving cached calendar with {len(calendar.events)} events")
            return calendar

        logger.info("Calendar cache miss, building from feed")
        calendar = await self.enricher.enrich(await self.fetch_and_parse())
        await asyncio.to_thread(self.save_calendar, calendar)
        return calendar

    async def refresh(self, previous: Optional[Calendar] = None) -> Calendar:
        """
        Re-fetch the feed and update the calendar incrementally.

        Args:
            previous: Calendar to diff against; the cached one is used when omitted

        Returns:
            The updated calendar, also persisted

        Raises:
            NetworkError: If the feed cannot be fetched
        """
        if previous is None:
            try:
                previous = await asyncio.to_thread(self.load_calendar)
            except ParseError as e:
                logger.warning(f"Ignoring unreadable calendar cache: {e}")

        fresh = await self.fetch_and_parse()
        calendar = await self.updater.update(previous, fresh)
        await asyncio.to_thread(self.save_calendar, calendar)
        return calendar

    async def fetch_and_parse(self) -> Calendar:
        """Fetch the feed, persist the raw text and parse it."""
        logger.info(f"Fetching calendar feed from {self.feed_url}")
        raw = await self.http_client.fetch(self.feed_url)
        logger.info(f"Fetched {len(raw)} characters of feed")
        await asyncio.to_thread(self.save_raw_feed, raw)
        return self.parser.parse(raw)

    def load_calendar(self) -> Optional[Calendar]:
        """
        Read the persisted calendar.

        Returns:
            Calendar, or None if no cache file exists

        Raises:
            ParseError: If the file is not a valid calendar document
        """
        if not self.calendar_path.exists():
            return None
        try:
            data = json.loads(self.calendar_path.read_text(encoding='utf-8'))
            return Calendar.from_dict(data)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError,
                KeyError, TypeError, ValueError, AttributeError) as e:
            raise ParseError(str(self.calendar_path), str(e)) from e

    def save_calendar(self, calendar: Calendar) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.calendar_path.write_text(
            json.dumps(calendar.to_dict(), indent=2, ensure_ascii=False),
            encoding='utf-8'
        )
        logger.info(f"Saved calendar with {len(calendar.events)} events to {self.calendar_path}")

    def load_raw_feed(self) -> Optional[str]:
        if not self.raw_feed_path.exists():
            return None
        return self.raw_feed_path.read_bytes().decode('utf-8')

    def save_raw_feed(self, raw: str) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.raw_feed_path.write_bytes(raw.encode('utf-8'))
