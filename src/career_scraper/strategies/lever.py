"""Lever postings strategy (public postings API)."""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from career_scraper.models import ScrapeResult
from career_scraper.strategies.base import KIND_PLATFORM, BaseStrategy

logger = logging.getLogger(__name__)

API_HOSTS = {
    "jobs.lever.co": "https://api.lever.co/v0/postings/{company}",
    "jobs.eu.lever.co": "https://api.eu.lever.co/v0/postings/{company}",
}

_EMBED_COMPANY = re.compile(r"(jobs(?:\.eu)?\.lever\.co)/([\w-]+)", re.I)


class LeverStrategy(BaseStrategy):
    """Fetch postings from the Lever postings API."""

    name = "lever-api"
    priority = 8
    default_timeout = 15.0
    kind = KIND_PLATFORM

    def extract_company(self, url: str, html: Optional[str] = None) -> Optional[tuple]:
        """
        Return (host, company) for a Lever board.

        Examples:
            https://jobs.lever.co/acme -> ("jobs.lever.co", "acme")
        """
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        if host in API_HOSTS:
            segments = [s for s in parsed.path.split("/") if s]
            if segments:
                return host, segments[0]

        if html:
            match = _EMBED_COMPANY.search(html)
            if match:
                return match.group(1).lower(), match.group(2)

        return None

    def is_applicable(self, url: str, context: Dict[str, Any]) -> bool:
        return self.extract_company(url, context.get("html_content")) is not None

    def scrape(self, url: str, options: Dict[str, Any]) -> Optional[ScrapeResult]:
        found = self.extract_company(url, options.get("html_content"))
        if not found:
            return None
        host, company = found

        dictionary = self.get_dictionary(options)
        response = self.fetch(
            API_HOSTS[host].format(company=company),
            options,
            accept="application/json",
            params={"mode": "json"},
        )
        postings = response.json()
        if not isinstance(postings, list):
            return None

        links = []
        lines = []
        for posting in postings:
            try:
                title = posting.get("text", "")
                if not self.matches_search(title, options):
                    continue
                categories = posting.get("categories") or {}
                links.append(
                    self.make_link(
                        posting["hostedUrl"],
                        title,
                        dictionary,
                        is_job_posting=True,
                        confidence=1.0,
                        link_type="job_posting",
                        location=categories.get("location"),
                        department=categories.get("team"),
                        job_type=categories.get("commitment"),
                    )
                )
                lines.append(
                    " - ".join(
                        part
                        for part in (title, categories.get("location"), categories.get("team"))
                        if part
                    )
                )
            except (KeyError, AttributeError, TypeError) as e:
                logger.warning(f"Failed to parse Lever posting: {e}")
                continue

        logger.info(f"Lever board {company}: {len(links)} postings")
        if not links:
            return None

        return ScrapeResult(
            url=url,
            title=f"{company} jobs",
            text=f"Open positions at {company} ({len(links)} jobs): " + ". ".join(lines),
            links=links,
            detected_platform="Lever",
            detected_language=options.get("detected_language"),
            method=self.name,
            jobs_found=len(links),
        )
