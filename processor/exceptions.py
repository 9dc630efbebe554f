"""Exception types raised while fetching, parsing and enriching the calendar."""
from typing import Optional


class CalendarSyncError(Exception):
    """Base class for calendar sync failures."""


class NetworkError(CalendarSyncError):
    """Transport or connection failure on an outbound fetch."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Failed to fetch {url}: {message}")
        self.url = url


class ParseError(CalendarSyncError):
    """Persisted JSON document could not be decoded."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Invalid cache file {path}: {message}")
        self.path = path


class LocationResolutionError(CalendarSyncError):
    """Location page unreachable or carries no map coordinates."""

    def __init__(self, url: str, cause: Optional[Exception] = None):
        reason = str(cause) if cause else "no map coordinates found"
        super().__init__(f"Could not resolve location {url}: {reason}")
        self.url = url
