"""HTTP client used for the feed, detail pages and location pages."""
import asyncio
import logging

import requests

from processor.exceptions import NetworkError

logger = logging.getLogger(__name__)


class HttpClient:
    """Single-shot GET client returning the full response body as text."""

    def __init__(self, timeout: int = 30):
        """
        Initialize the HTTP client.

        Args:
            timeout: Request timeout in seconds, imposed by the caller (default: 30)
        """
        self.timeout = timeout

    def get_text(self, url: str) -> str:
        """
        Fetch a URL and return its body.

        No retries are attempted.

        Args:
            url: Absolute URL to fetch

        Returns:
            Response body as string

        Raises:
            NetworkError: On connection failure, timeout or error status
        """
        logger.debug(f"GET {url}")
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(url, str(e)) from e
        return response.text

    async def fetch(self, url: str) -> str:
        """Fetch a URL without blocking the event loop."""
        return await asyncio.to_thread(self.get_text, url)
