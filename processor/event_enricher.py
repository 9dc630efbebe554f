"""Enrichment of events with data scraped from their detail pages."""
import asyncio
import logging
import re
from typing import List, Optional
from urllib.parse import urljoin

from processor.exceptions import LocationResolutionError
from processor.feed_parser import extract_course_code
from processor.models import Calendar, Event
from scraper.detail_page import parse_detail_page
from scraper.http_client import HttpClient
from storage.location_cache import LocationCache

logger = logging.getLogger(__name__)

# Descriptions keep the feed's escaped "\n" sequences
DESCRIPTION_LINE_BREAK = re.compile(r'\\n|\r?\n')


def detail_page_url(description: Optional[str]) -> Optional[str]:
    """
    Derive the detail-page URL from an event description.

    Args:
        description: Feed description text

    Returns:
        First line of the description if it is an http(s) URL, else None
    """
    if not description:
        return None
    first_line = DESCRIPTION_LINE_BREAK.split(description, maxsplit=1)[0].strip()
    if not first_line.startswith(('http://', 'https://')):
        return None
    return first_line


class EventEnricher:
    """Fetches detail pages for events and attaches the scraped fields."""

    def __init__(self, http_client: HttpClient, location_cache: LocationCache):
        """
        Initialize the enricher.

        Args:
            http_client: Client used to fetch detail pages
            location_cache: Shared cache resolving location pages to coordinates
        """
        self.http_client = http_client
        self.location_cache = location_cache

    async def enrich(self, calendar: Calendar) -> Calendar:
        """Enrich every event of a calendar in place and return it."""
        await self.enrich_events(calendar.events)
        return calendar

    async def enrich_events(self, events: List[Event]) -> List[Event]:
        """
        Enrich events concurrently.

        All detail-page fetches are started together and joined before
        returning, whether they succeed or fail. Events keep their order.

        Args:
            events: Events to enrich in place

        Returns:
            The same list of events
        """
        if not events:
            return events

        logger.info(f"Enriching {len(events)} events")
        results = await asyncio.gather(
            *(self.enrich_event(event) for event in events),
            return_exceptions=True
        )

        failed = 0
        for event, result in zip(events, results):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(f"Failed to enrich event '{event.summary}': {result}")

        logger.info(
            f"Enriched {len(events) - failed} events, {failed} failed"
        )
        return events

    async def enrich_event(self, event: Event) -> Event:
        """
        Enrich a single event.

        Args:
            event: Event to enrich in place

        Returns:
            The event

        Raises:
            NetworkError: If the detail page cannot be fetched
        """
        if event.code is None:
            event.code = extract_course_code(event.summary)

        url = detail_page_url(event.description)
        if url is None:
            return event

        html = await self.http_client.fetch(url)
        event.url = url
        details = parse_detail_page(html)

        if details.type:
            event.type = details.type
        if details.location2:
            event.location2 = details.location2
        if details.location_url:
            event.location_url = urljoin(url, details.location_url)
            try:
                event.location_coordinates = await self.location_cache.get_location(
                    event.location_url
                )
            except LocationResolutionError as e:
                logger.warning(str(e))

        return event
