"""Data models for calendar processing."""
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class Coordinates:
    """Geographic coordinates as scraped from a map link."""
    lat: str
    lng: str

    def to_dict(self) -> dict:
        return {'lat': self.lat, 'lng': self.lng}

    @classmethod
    def from_dict(cls, data: dict) -> 'Coordinates':
        return cls(lat=str(data['lat']), lng=str(data['lng']))


@dataclass
class Event:
    """
    One calendar item.

    Feed-declared fields come from the iCalendar text. The enrichment
    fields (code, type, location_url, location2, location_coordinates, and
    the overwritten url) are derived later and never take part in identity.
    """
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    summary: str = ''
    version: Optional[str] = None
    url: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    location_url: Optional[str] = None
    location2: Optional[str] = None
    location_coordinates: Optional[Coordinates] = None

    def identity_key(self) -> Tuple:
        """
        Comparison key over the feed-declared fields only.

        The feed carries no stable identifier, so two events are the same
        event when this key matches.
        """
        return (
            self.start_time,
            self.end_time,
            self.summary,
            self.version,
            self.location,
            self.description,
        )

    def to_dict(self) -> dict:
        """Serialize with camelCase keys, omitting absent fields."""
        data = {
            'startTime': self.start_time.isoformat() if self.start_time else None,
            'endTime': self.end_time.isoformat() if self.end_time else None,
            'summary': self.summary,
            'version': self.version,
            'url': self.url,
            'location': self.location,
            'description': self.description,
            'code': self.code,
            'type': self.type,
            'locationUrl': self.location_url,
            'location2': self.location2,
            'locationCoordinates': (
                self.location_coordinates.to_dict()
                if self.location_coordinates else None
            ),
        }
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_dict(cls, data: dict) -> 'Event':
        coordinates = data.get('locationCoordinates')
        return cls(
            start_time=_parse_iso(data.get('startTime')),
            end_time=_parse_iso(data.get('endTime')),
            summary=data.get('summary', ''),
            version=data.get('version'),
            url=data.get('url'),
            location=data.get('location'),
            description=data.get('description'),
            code=data.get('code'),
            type=data.get('type'),
            location_url=data.get('locationUrl'),
            location2=data.get('location2'),
            location_coordinates=(
                Coordinates.from_dict(coordinates) if coordinates else None
            ),
        )


@dataclass
class Calendar:
    """Ordered events plus the wall-clock time (ms since epoch) they were parsed."""
    events: List[Event] = field(default_factory=list)
    update_time: int = field(default_factory=lambda: current_millis())

    def to_dict(self) -> dict:
        return {
            'updateTime': self.update_time,
            'events': [event.to_dict() for event in self.events],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Calendar':
        return cls(
            events=[Event.from_dict(item) for item in data['events']],
            update_time=int(data['updateTime']),
        )


@dataclass
class SyncResult:
    """Result of an incremental update."""
    kept: int
    added: int
    removed: int


def current_millis() -> int:
    return int(time.time() * 1000)


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
