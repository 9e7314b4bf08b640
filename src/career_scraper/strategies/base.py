"""Base strategy class for all career page extraction strategies."""

import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from career_scraper.dictionaries import Dictionary, DictionaryProvider
from career_scraper.exceptions import StrategyError
from career_scraper.models import JobLink, ScrapeResult
from career_scraper.utils.url_utils import absolute_url

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

# Strategy kinds used by candidate filtering and config derivation
KIND_LIGHTWEIGHT = "lightweight"
KIND_HEADLESS = "headless"
KIND_IFRAME = "iframe"
KIND_WORDPRESS = "wordpress"
KIND_PLATFORM = "platform"


class BaseStrategy(ABC):
    """Abstract base class for extraction strategies.

    A strategy receives the target URL and an options dict built by the
    orchestrator. Recognized option keys:

        timeout (float): Seconds allowed for this execution
        cancel_token (CancellationToken): Checked between network calls
        dictionary (Dictionary): Session dictionary for the detected language
        detected_platform (str): Platform detected for the page, if any
        detected_language (str): Session language code
        html_content (str): HTML fetched for platform detection, if any
        previous_result (ScrapeResult): Partial result of an earlier strategy
        search_query (str): Optional keyword filter
        attempt (int): Attempt number within the call

    plus the strategy-specific keys derived by the planner.
    """

    name: str = "base"
    priority: int = 100
    default_timeout: float = 20.0
    kind: str = KIND_LIGHTWEIGHT
    headless: bool = False

    # Per-request timeout cap for HTTP strategies
    request_timeout: float = 10.0

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        dictionaries: Optional[DictionaryProvider] = None,
    ):
        """Initialize the strategy with optional configuration."""
        self.config = config or {}
        self.dictionaries = dictionaries or DictionaryProvider()

    def is_applicable(self, url: str, context: Dict[str, Any]) -> bool:
        """
        Check whether this strategy should run for the URL.

        Args:
            url: Target URL
            context: Step context (detected platform, html content, language, ...)

        Returns:
            True if the strategy can handle the page
        """
        return True

    @abstractmethod
    def scrape(self, url: str, options: Dict[str, Any]) -> Optional[ScrapeResult]:
        """
        Extract content from the page.

        Args:
            url: Target URL
            options: Execution options (see class docstring)

        Returns:
            ScrapeResult, or None when nothing usable was found

        Raises:
            StrategyError: On network or page-structure failures
            ScrapeCancelled: When the call was cancelled
        """
        pass

    def is_result_valid(self, result: Optional[ScrapeResult]) -> bool:
        """
        Strategy-local sanity check.

        Requires text of at least 100 characters, at least one link and no
        blocking content (captcha, access denied pages).
        """
        if result is None or not result.url or not result.text:
            return False
        if len(result.text) < 100:
            return False
        if not result.links:
            return False
        if self.has_blocking_content(result.text):
            logger.debug(f"Blocking content detected for {result.url}")
            return False
        return True

    def close(self) -> None:
        """Release resources held by the strategy."""
        pass

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def check_cancelled(options: Optional[Dict[str, Any]]) -> None:
        """Raise ScrapeCancelled if the call's cancellation token has fired."""
        token = (options or {}).get("cancel_token")
        if token is not None:
            token.raise_if_cancelled()

    def get_dictionary(self, options: Optional[Dict[str, Any]]) -> Dictionary:
        options = options or {}
        dictionary = options.get("dictionary")
        if dictionary is not None:
            return dictionary
        return self.dictionaries.get(options.get("detected_language"))

    def has_blocking_content(self, text: str, dictionary: Optional[Dictionary] = None) -> bool:
        dictionary = dictionary or self.dictionaries.get()
        text_lower = (text or "").lower()
        return any(marker in text_lower for marker in dictionary.blocking_text())

    def _timeout(self, options: Optional[Dict[str, Any]]) -> float:
        timeout = (options or {}).get("timeout") or self.default_timeout
        return max(1.0, min(float(timeout), self.request_timeout))

    def _headers(self, accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8") -> Dict[str, str]:
        return {
            "User-Agent": random.choice(USER_AGENTS),
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.9",
        }

    def fetch(
        self,
        url: str,
        options: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        **kwargs: Any,
    ) -> requests.Response:
        """
        Perform one HTTP request, honoring cancellation and the step timeout.

        Raises:
            StrategyError: On connection failures and HTTP error statuses
        """
        self.check_cancelled(options)
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(accept),
                timeout=self._timeout(options),
                **kwargs,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise StrategyError(f"{method} {url} failed: {e}", self.name) from e
        self.check_cancelled(options)
        return response

    def parse_html(
        self, html: str, base_url: str, dictionary: Optional[Dictionary] = None
    ) -> Dict[str, Any]:
        """
        Extract title, visible text and links from an HTML document.

        Returns:
            Dict with ``title``, ``text`` and ``links`` (list of JobLink)
        """
        soup = BeautifulSoup(html, "html.parser")

        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        title = soup.title.get_text(strip=True) if soup.title else ""
        body = soup.body or soup
        text = " ".join(body.get_text(" ", strip=True).split())

        links: List[JobLink] = []
        seen = set()
        for anchor in soup.find_all("a", href=True):
            href = absolute_url(anchor["href"], base_url)
            label = anchor.get_text(" ", strip=True)
            if not href or not label or href in seen:
                continue
            seen.add(href)
            links.append(self.make_link(href, label, dictionary))

        return {"title": title, "text": text, "links": links}

    def make_link(
        self,
        url: str,
        text: str,
        dictionary: Optional[Dictionary] = None,
        **extra: Any,
    ) -> JobLink:
        """Build a JobLink, flagging it as a posting when its URL matches a job pattern."""
        dictionary = dictionary or self.dictionaries.get()
        is_job = any(pattern.search(url) for pattern in dictionary.job_url_patterns())
        return JobLink(
            url=url,
            text=text,
            is_job_posting=extra.pop("is_job_posting", is_job),
            confidence=extra.pop("confidence", 0.8 if is_job else 0.3),
            **extra,
        )

    def matches_search(self, title: str, options: Optional[Dict[str, Any]]) -> bool:
        """True when there is no search query or the title contains it."""
        query = ((options or {}).get("search_query") or "").strip().lower()
        return not query or query in (title or "").lower()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, priority={self.priority})"
