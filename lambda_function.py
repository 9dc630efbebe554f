"""AWS Lambda handler serving the enriched calendar."""
import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from processor.event_enricher import EventEnricher
from processor.exceptions import LocationResolutionError, NetworkError
from processor.models import Calendar
from scraper.http_client import HttpClient
from storage.cache_store import CacheStore
from storage.location_cache import LocationCache

DEFAULT_CALENDAR_URL = (
    "https://www.kth.se/social/user/282379/icalendar/"
    "b5167b5d6e589f7c7bc356529c66bcdf6721b93c"
)
LOCATIONS_FILE = 'locations.json'

logger = logging.getLogger(__name__)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class Settings:
    calendar_url: str
    cache_dir: Path
    timeout_seconds: int
    log_level: str


def load_settings() -> Settings:
    """Read configuration from environment variables."""
    return Settings(
        calendar_url=os.environ.get('CALENDAR_URL', DEFAULT_CALENDAR_URL),
        cache_dir=Path(os.environ.get('CACHE_DIR', '/tmp/calendar-cache')),
        timeout_seconds=int(os.environ.get('TIMEOUT_SECONDS', '30')),
        log_level=os.environ.get('LOG_LEVEL', 'INFO')
    )


def build_cache_store(settings: Settings) -> CacheStore:
    """Wire the HTTP client, location cache, enricher and cache store together."""
    http_client = HttpClient(timeout=settings.timeout_seconds)
    location_cache = LocationCache(settings.cache_dir / LOCATIONS_FILE, http_client)
    enricher = EventEnricher(http_client, location_cache)
    return CacheStore(
        cache_dir=settings.cache_dir,
        feed_url=settings.calendar_url,
        http_client=http_client,
        enricher=enricher
    )


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _error(status_code: int, message: str, error: Exception, duration: float) -> Dict[str, Any]:
    return _response(status_code, {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(duration, 2)
    })


async def _get_calendar(store: CacheStore, arguments: Dict[str, Any]) -> Dict[str, Any]:
    calendar = await store.get_or_build()
    return calendar.to_dict()


async def _update_calendar(store: CacheStore, arguments: Dict[str, Any]) -> Dict[str, Any]:
    calendar = await store.refresh(arguments.get('previous'))
    result = store.updater.last_result
    logger.info(
        "Calendar updated",
        extra={
            'events_kept': result.kept,
            'events_added': result.added,
            'events_removed': result.removed
        }
    )
    return calendar.to_dict()


async def _get_location(store: CacheStore, arguments: Dict[str, Any]) -> Dict[str, Any]:
    coordinates = await store.enricher.location_cache.get_location(arguments['url'])
    return coordinates.to_dict()


def _parse_arguments(command: str, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract and validate the arguments of a command.

    Raises:
        ValueError: If a required argument is missing or malformed
    """
    if command == 'getLocation':
        if not event.get('url'):
            raise ValueError('getLocation requires a url')
        return {'url': event['url']}

    if command == 'updateCalendar' and event.get('previous') is not None:
        try:
            return {'previous': Calendar.from_dict(event['previous'])}
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValueError(f'Invalid previous calendar: {e}') from e

    return {}


COMMANDS = {
    'getCalendar': _get_calendar,
    'updateCalendar': _update_calendar,
    'getLocation': _get_location,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler dispatching calendar commands.

    Args:
        event: Payload with a 'command' key ('getCalendar', 'updateCalendar'
            or 'getLocation'); 'getLocation' also needs 'url' and
            'updateCalendar' accepts an optional 'previous' calendar
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    settings = load_settings()

    setup_logging(settings.log_level)

    start_time = time.time()

    command = (event or {}).get('command')
    if not command:
        return _response(400, {'message': 'No command specified'})
    if command not in COMMANDS:
        return _response(400, {'message': f'Unknown command: {command}'})
    try:
        arguments = _parse_arguments(command, event)
    except ValueError as e:
        return _response(400, {'message': str(e)})

    logger.info(
        f"Lambda execution started: {command}",
        extra={
            'calendar_url': settings.calendar_url,
            'cache_dir': str(settings.cache_dir),
            'timeout_seconds': settings.timeout_seconds
        }
    )

    try:
        store = build_cache_store(settings)
        body = asyncio.run(COMMANDS[command](store, arguments))

    except NetworkError as e:
        logger.error(
            f"Failed to fetch calendar feed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error(502, 'Failed to fetch calendar feed', e, time.time() - start_time)

    except LocationResolutionError as e:
        logger.warning(f"Location lookup failed: {str(e)}")
        return _error(404, 'Location could not be resolved', e, time.time() - start_time)

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error(500, 'Command failed', e, duration)

    duration = time.time() - start_time
    logger.info(
        f"Lambda execution completed successfully",
        extra={'duration_seconds': round(duration, 2)}
    )
    return _response(200, body)
