"""Plain HTTP strategy that tries the page and a handful of URL variants.

Many career pages expose the same listing as JSON, a feed, or a print/AMP
version that is easier to parse than the main page. This strategy fetches the
original URL plus those variants and merges whatever job content it finds.
"""

import json
import logging
import re
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from career_scraper.dictionaries import Dictionary
from career_scraper.exceptions import StrategyError
from career_scraper.models import JobLink, ScrapeResult
from career_scraper.strategies.base import KIND_LIGHTWEIGHT, BaseStrategy
from career_scraper.utils.url_utils import absolute_url

logger = logging.getLogger(__name__)


class LightweightStrategy(BaseStrategy):
    """Fetch the page and URL variants over HTTP and combine job content.

    Usage:
        strategy = LightweightStrategy()
        result = strategy.scrape("https://example.com/careers", {"timeout": 15})
    """

    name = "lightweight-variants"
    priority = 2
    default_timeout = 15.0
    kind = KIND_LIGHTWEIGHT

    MIN_VARIANT_LENGTH = 50

    def generate_variants(self, url: str) -> List[Dict[str, str]]:
        """Build the list of URL variants to try, original first."""
        parsed = urlparse(url)
        base = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
        stripped = url.rstrip("/")

        return [
            {"name": "original", "url": url},
            {"name": "json", "url": stripped + ".json"},
            {"name": "api", "url": stripped + "/api"},
            {"name": "feed", "url": stripped + "/feed"},
            {"name": "xml", "url": stripped + ".xml"},
            {"name": "print", "url": base + "?print=1"},
            {"name": "amp", "url": base.rstrip("/") + "/amp"},
        ]

    def scrape(self, url: str, options: Dict[str, Any]) -> Optional[ScrapeResult]:
        """Try each variant within the step timeout and merge the useful ones."""
        dictionary = self.get_dictionary(options)
        max_variants = options.get("max_variants") or len(self.generate_variants(url))
        budget = float(options.get("timeout") or self.default_timeout)
        started = time.monotonic()

        results = []
        for variant in self.generate_variants(url)[:max_variants]:
            self.check_cancelled(options)
            if time.monotonic() - started >= budget:
                logger.debug(f"Variant budget exhausted for {url}")
                break

            try:
                parsed = self._fetch_variant(variant, url, options, dictionary)
            except StrategyError as e:
                logger.debug(f"Variant {variant['name']} failed: {e}")
                continue

            if parsed and self._is_useful(parsed, dictionary):
                results.append(parsed)

        if not results:
            logger.info(f"No usable content from any variant of {url}")
            return None

        logger.info(f"✓ Found content in {len(results)} variant(s) of {url}")
        return self._combine(url, results, options)

    def _fetch_variant(
        self,
        variant: Dict[str, str],
        page_url: str,
        options: Dict[str, Any],
        dictionary: Dictionary,
    ) -> Optional[Dict[str, Any]]:
        # The detection fetch already downloaded the original page
        if variant["name"] == "original" and options.get("html_content"):
            parsed = self.parse_html(options["html_content"], page_url, dictionary)
            parsed["variant"] = "original"
            return parsed

        response = self.fetch(variant["url"], options, accept="*/*")
        content_type = response.headers.get("content-type", "")

        if "json" in content_type:
            parsed = self._parse_json(response.text, page_url, dictionary)
        elif "xml" in content_type:
            parsed = self._parse_xml(response.text)
        else:
            parsed = self.parse_html(response.text, page_url, dictionary)

        if parsed is not None:
            parsed["variant"] = variant["name"]
        return parsed

    def _parse_json(
        self, body: str, page_url: str, dictionary: Dictionary
    ) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(body)
        except ValueError:
            return None

        texts: List[str] = []
        links: List[JobLink] = []
        self._walk_json(data, texts, links, page_url, dictionary)
        return {"title": "", "text": " ".join(texts), "links": links}

    def _walk_json(
        self,
        node: Any,
        texts: List[str],
        links: List[JobLink],
        page_url: str,
        dictionary: Dictionary,
    ) -> None:
        if isinstance(node, str):
            texts.append(node)
        elif isinstance(node, list):
            for item in node:
                self._walk_json(item, texts, links, page_url, dictionary)
        elif isinstance(node, dict):
            label = node.get("title") or node.get("name") or ""
            for key, value in node.items():
                key_lower = str(key).lower()
                if isinstance(value, str) and (
                    any(marker in key_lower for marker in ("url", "link", "href"))
                    or value.startswith("http")
                ):
                    href = absolute_url(value, page_url)
                    if href:
                        links.append(self.make_link(href, str(label or key), dictionary))
                self._walk_json(value, texts, links, page_url, dictionary)

    def _parse_xml(self, body: str) -> Dict[str, Any]:
        soup = BeautifulSoup(body, "html.parser")
        return {"title": "", "text": " ".join(soup.get_text(" ", strip=True).split()), "links": []}

    def _is_useful(self, parsed: Dict[str, Any], dictionary: Dictionary) -> bool:
        text = parsed.get("text") or ""
        if len(text) < self.MIN_VARIANT_LENGTH:
            return False
        if any(link.is_job_posting for link in parsed.get("links", [])):
            return True

        text_lower = text.lower()
        return any(
            re.search(rf"\b{re.escape(term.lower())}\b", text_lower)
            for term in dictionary.job_terms()
        )

    def _combine(
        self, url: str, results: List[Dict[str, Any]], options: Dict[str, Any]
    ) -> ScrapeResult:
        seen = set()
        links: List[JobLink] = []
        for parsed in results:
            for link in parsed.get("links", []):
                if link.url in seen or not self.matches_search(link.text, options):
                    continue
                seen.add(link.url)
                links.append(link)

        title = next((r["title"] for r in results if r.get("title")), "")
        return ScrapeResult(
            url=url,
            title=title,
            text=" ".join(r["text"] for r in results),
            links=links,
            detected_language=options.get("detected_language"),
            method=self.name,
            interaction_count=len(results),
        )
