"""Unit tests for LocationCache."""
import asyncio
import json

import pytest
import responses
from requests.exceptions import ConnectionError

from processor.exceptions import LocationResolutionError
from processor.models import Coordinates
from scraper.http_client import HttpClient
from storage.location_cache import LocationCache


ROOM_URL = "https://www.kth.se/places/room/id/q2"
ROOM_HTML = """
<html>
    <body>
        <h1>Q2</h1>
        <a href="https://maps.google.com/maps?q=59.3500,18.0667">Show on map</a>
    </body>
</html>
"""


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "locations.json"


@pytest.fixture
def location_cache(cache_path):
    return LocationCache(cache_path, HttpClient(timeout=5))


class TestLocationCache:
    """Test cases for LocationCache class."""

    def test_load_missing_file_returns_empty(self, location_cache):
        assert location_cache.load() == {}

    def test_load_existing_file(self, cache_path):
        """Test entries persisted earlier are loaded."""
        cache_path.write_text(
            json.dumps({ROOM_URL: {"lat": "59.35", "lng": "18.06"}}),
            encoding="utf-8"
        )
        cache = LocationCache(cache_path, HttpClient())

        assert cache.load() == {ROOM_URL: Coordinates(lat="59.35", lng="18.06")}
        assert ROOM_URL in cache.load()

    def test_load_happens_once(self, cache_path, location_cache):
        """Test later loads reuse the in-memory map instead of the file."""
        first = location_cache.load()
        cache_path.write_text(
            json.dumps({ROOM_URL: {"lat": "1", "lng": "2"}}),
            encoding="utf-8"
        )

        assert location_cache.load() is first
        assert ROOM_URL not in location_cache.load()

    def test_load_corrupt_file_starts_empty(self, cache_path):
        """Test an unreadable file is treated as an empty map."""
        cache_path.write_text("{not json", encoding="utf-8")
        cache = LocationCache(cache_path, HttpClient())

        assert cache.load() == {}

    @responses.activate
    def test_corrupt_file_is_repaired_on_resolution(self, cache_path):
        """Test resolution still works and rewrites an unreadable file."""
        cache_path.write_text("{broken", encoding="utf-8")
        responses.add(responses.GET, ROOM_URL, body=ROOM_HTML, status=200)
        cache = LocationCache(cache_path, HttpClient())

        coordinates = asyncio.run(cache.get_location(ROOM_URL))

        assert coordinates == Coordinates(lat="59.3500", lng="18.0667")
        assert json.loads(cache_path.read_text(encoding="utf-8")) == {
            ROOM_URL: {"lat": "59.3500", "lng": "18.0667"}
        }

    def test_stale_snapshot_does_not_overwrite_newer_one(self, cache_path, location_cache):
        """Test a write that arrives late keeps the newer file contents."""
        location_cache.load()["a"] = Coordinates(lat="1", lng="2")
        older = location_cache._snapshot()
        location_cache.load()["b"] = Coordinates(lat="3", lng="4")
        location_cache.save()

        location_cache._write(*older)

        assert set(json.loads(cache_path.read_text(encoding="utf-8"))) == {"a", "b"}

    @responses.activate
    def test_resolve_and_persist(self, cache_path, location_cache):
        """Test a miss fetches the page, stores the result and writes the file."""
        responses.add(responses.GET, ROOM_URL, body=ROOM_HTML, status=200)

        coordinates = asyncio.run(location_cache.get_location(ROOM_URL))

        assert coordinates == Coordinates(lat="59.3500", lng="18.0667")
        assert json.loads(cache_path.read_text(encoding="utf-8")) == {
            ROOM_URL: {"lat": "59.3500", "lng": "18.0667"}
        }
        assert len(responses.calls) == 1

    @responses.activate
    def test_hit_makes_no_request(self, location_cache):
        """Test a cached URL is served without network access."""
        responses.add(responses.GET, ROOM_URL, body=ROOM_HTML, status=200)

        asyncio.run(location_cache.get_location(ROOM_URL))
        asyncio.run(location_cache.get_location(ROOM_URL))

        assert len(responses.calls) == 1

    @responses.activate
    def test_concurrent_lookups_share_one_fetch(self, location_cache):
        """Test concurrent lookups of one URL trigger a single request."""
        responses.add(responses.GET, ROOM_URL, body=ROOM_HTML, status=200)

        async def lookup_twice():
            return await asyncio.gather(
                location_cache.get_location(ROOM_URL),
                location_cache.get_location(ROOM_URL)
            )

        first, second = asyncio.run(lookup_twice())

        assert first == second
        assert len(responses.calls) == 1

    @responses.activate
    def test_page_without_map_link(self, cache_path, location_cache):
        """Test a page without coordinates fails and leaves the cache untouched."""
        responses.add(responses.GET, ROOM_URL, body="<p>No map</p>", status=200)

        with pytest.raises(LocationResolutionError):
            asyncio.run(location_cache.get_location(ROOM_URL))

        assert ROOM_URL not in location_cache.load()
        assert not cache_path.exists()

    @responses.activate
    def test_unreachable_page(self, location_cache):
        responses.add(
            responses.GET,
            ROOM_URL,
            body=ConnectionError("Connection refused")
        )

        with pytest.raises(LocationResolutionError):
            asyncio.run(location_cache.get_location(ROOM_URL))

        assert location_cache.load() == {}
