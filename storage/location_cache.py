"""Persistent map from location-page URL to coordinates."""
import asyncio
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from processor.exceptions import LocationResolutionError, NetworkError
from processor.models import Coordinates
from scraper.detail_page import extract_coordinates
from scraper.http_client import HttpClient

logger = logging.getLogger(__name__)


class LocationCache:
    """
    Location URL to coordinates cache backed by a JSON file.

    The map is read from disk on first access and written back after
    every new resolution. Entries are never evicted.
    """

    def __init__(self, path: Path, http_client: HttpClient):
        """
        Initialize the location cache.

        Args:
            path: JSON file holding {url: {lat, lng}}
            http_client: Client used to fetch location pages
        """
        self.path = Path(path)
        self.http_client = http_client
        self._locations: Optional[Dict[str, Coordinates]] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._version = 0
        self._written_version = 0
        self._write_lock = threading.Lock()

    def load(self) -> Dict[str, Coordinates]:
        """
        Load the map from disk once; later calls return the same instance.

        A missing or unreadable file yields an empty map, which the next
        save overwrites.
        """
        if self._locations is not None:
            return self._locations

        locations = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding='utf-8'))
                locations = {
                    url: Coordinates.from_dict(value)
                    for url, value in data.items()
                }
            except (OSError, json.JSONDecodeError, UnicodeDecodeError,
                    AttributeError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring unreadable location cache {self.path}: {e}")
                locations = {}

        logger.info(f"Loaded {len(locations)} cached locations from {self.path}")
        self._locations = locations
        return self._locations

    def save(self) -> None:
        """Write the whole map to disk."""
        self._write(*self._snapshot())

    async def save_async(self) -> None:
        """Write the whole map to disk without blocking the event loop."""
        await asyncio.to_thread(self._write, *self._snapshot())

    def _snapshot(self):
        payload = {url: coords.to_dict() for url, coords in self.load().items()}
        self._version += 1
        return self._version, json.dumps(payload, indent=2, ensure_ascii=False)

    def _write(self, version: int, text: str) -> None:
        # Snapshots may reach the writer out of order; never overwrite a newer one
        with self._write_lock:
            if version <= self._written_version:
                return
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(text, encoding='utf-8')
            self._written_version = version

    async def get_location(self, url: str) -> Coordinates:
        """
        Return coordinates for a location page, resolving it on a miss.

        Concurrent calls for the same URL share one resolution.

        Args:
            url: Location page URL

        Returns:
            Coordinates for the location

        Raises:
            LocationResolutionError: If the page cannot be fetched or has no map link
        """
        locations = self.load()
        if url in locations:
            return locations[url]

        pending = self._pending.get(url)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve(url))
            self._pending[url] = pending
            pending.add_done_callback(lambda _: self._pending.pop(url, None))
        return await pending

    async def _resolve(self, url: str) -> Coordinates:
        try:
            html = await self.http_client.fetch(url)
        except NetworkError as e:
            raise LocationResolutionError(url, e) from e

        coordinates = extract_coordinates(html)
        if coordinates is None:
            raise LocationResolutionError(url)

        self._locations[url] = coordinates
        await self.save_async()
        logger.info(f"Resolved location {url} to {coordinates.lat},{coordinates.lng}")
        return coordinates
