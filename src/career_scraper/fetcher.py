"""HTML fetch used for platform and language detection."""

import logging
from typing import Optional

import requests

from career_scraper.deadline import CancellationToken
from career_scraper.strategies.base import USER_AGENTS

logger = logging.getLogger(__name__)

DETECTION_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


class FetchError(Exception):
    """Raised when no user agent produced a usable page."""


class HtmlFetcher:
    """
    Fetch a page's HTML, rotating user agents on 403/429 responses.

    A response counts only when it is a 200 with a body longer than ``min_length``.
    """

    def __init__(self, timeout: float = 10.0, min_length: int = 500):
        self.timeout = timeout
        self.min_length = min_length

    def fetch(self, url: str, cancel_token: Optional[CancellationToken] = None) -> str:
        """
        Fetch HTML for detection.

        Args:
            url: Page URL
            cancel_token: Optional cancellation token checked between attempts

        Returns:
            The page HTML

        Raises:
            FetchError: When every user agent failed
        """
        last_error: Optional[Exception] = None

        for attempt, user_agent in enumerate(USER_AGENTS, start=1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            try:
                response = requests.get(
                    url,
                    headers={"User-Agent": user_agent, **DETECTION_HEADERS},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                logger.debug(f"Detection fetch attempt {attempt} failed: {e}")
                last_error = e
                continue

            if response.status_code == 200 and len(response.text or "") > self.min_length:
                logger.debug(f"HTML fetched for detection ({len(response.text)} chars)")
                return response.text

            if response.status_code in (403, 429):
                logger.debug(f"HTTP {response.status_code} received, trying a different user agent")
                continue

            last_error = FetchError(
                f"HTTP {response.status_code}, {len(response.text or '')} chars"
            )

        raise FetchError(f"All HTML fetch attempts failed for {url}: {last_error}")
