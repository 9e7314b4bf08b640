"""Greenhouse job board strategy.

Greenhouse exposes a public JSON API per board token:
https://boards-api.greenhouse.io/v1/boards/{token}/jobs
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

from career_scraper.models import ScrapeResult
from career_scraper.strategies.base import KIND_PLATFORM, BaseStrategy

logger = logging.getLogger(__name__)

API_URL = "https://boards-api.greenhouse.io/v1/boards/{token}/jobs"

_EMBED_TOKEN = re.compile(r"greenhouse\.io/(?:embed/job_board(?:/js)?\?for=|v1/boards/)([\w-]+)", re.I)


class GreenhouseStrategy(BaseStrategy):
    """Fetch postings from the Greenhouse board API."""

    name = "greenhouse-api"
    priority = 2
    default_timeout = 15.0
    kind = KIND_PLATFORM

    def extract_board_token(self, url: str, html: Optional[str] = None) -> Optional[str]:
        """
        Find the board token in a board URL, an embed URL, or embed markup.

        Examples:
            https://boards.greenhouse.io/acme -> acme
            https://job-boards.greenhouse.io/acme/jobs/123 -> acme
            https://boards.greenhouse.io/embed/job_board?for=acme -> acme
        """
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()

        if host.endswith("greenhouse.io"):
            query_token = parse_qs(parsed.query).get("for")
            if query_token:
                return query_token[0]
            segments = [s for s in parsed.path.split("/") if s]
            if segments and segments[0] != "embed":
                return segments[0]

        if html:
            match = _EMBED_TOKEN.search(html)
            if match:
                return match.group(1)

        return None

    def is_applicable(self, url: str, context: Dict[str, Any]) -> bool:
        return self.extract_board_token(url, context.get("html_content")) is not None

    def scrape(self, url: str, options: Dict[str, Any]) -> Optional[ScrapeResult]:
        token = self.extract_board_token(url, options.get("html_content"))
        if not token:
            return None

        dictionary = self.get_dictionary(options)
        response = self.fetch(
            API_URL.format(token=token), options, accept="application/json", params={"content": "false"}
        )
        jobs = response.json().get("jobs", [])

        links = []
        lines = []
        for job in jobs:
            try:
                title = job.get("title", "")
                if not self.matches_search(title, options):
                    continue
                location = (job.get("location") or {}).get("name")
                departments = job.get("departments") or []
                department = departments[0].get("name") if departments else None

                links.append(
                    self.make_link(
                        job["absolute_url"],
                        title,
                        dictionary,
                        is_job_posting=True,
                        confidence=1.0,
                        link_type="job_posting",
                        location=location,
                        department=department,
                    )
                )
                lines.append(" - ".join(part for part in (title, location, department) if part))
            except (KeyError, AttributeError, TypeError) as e:
                logger.warning(f"Failed to parse Greenhouse job: {e}")
                continue

        logger.info(f"Greenhouse board {token}: {len(links)} jobs")
        if not links:
            return None

        return ScrapeResult(
            url=url,
            title=f"{token} jobs",
            text=f"Open positions at {token} ({len(links)} jobs): " + ". ".join(lines),
            links=links,
            detected_platform="Greenhouse",
            detected_language=options.get("detected_language"),
            method=self.name,
            jobs_found=len(links),
        )
