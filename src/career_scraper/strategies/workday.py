"""Workday ATS strategy.

Workday is a popular enterprise ATS. Career sites live on
{tenant}.wd{N}.myworkdayjobs.com/{locale}/{site} and are rendered client-side,
but the listing comes from a public JSON endpoint:
https://{tenant}.wd{N}.myworkdayjobs.com/wday/cxs/{tenant}/{site}/jobs
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from career_scraper.models import JobLink, ScrapeResult
from career_scraper.strategies.base import KIND_PLATFORM, BaseStrategy

logger = logging.getLogger(__name__)

WORKDAY_HOST_SUFFIXES = ("myworkdayjobs.com", "myworkdaysite.com")

# Locale path segments such as en-US or fr-FR precede the site id
_LOCALE_SEGMENT = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")

PAGE_SIZE = 20  # Workday caps page size at 20


class WorkdayStrategy(BaseStrategy):
    """Strategy for Workday-powered career sites.

    Usage:
        strategy = WorkdayStrategy()
        result = strategy.scrape(
            "https://atlassian.wd1.myworkdayjobs.com/en-US/Atlassian", {"timeout": 30}
        )
    """

    name = "workday-api"
    priority = 2
    default_timeout = 30.0
    kind = KIND_PLATFORM
    request_timeout = 15.0

    def parse_site(self, url: str) -> Optional[Dict[str, str]]:
        """Extract host, tenant and site id from a Workday career URL.

        Args:
            url: Workday career site URL

        Returns:
            Dict with host, tenant and site_id, or None for non-Workday URLs
        """
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        if not host.endswith(WORKDAY_HOST_SUFFIXES):
            return None

        segments = [s for s in parsed.path.split("/") if s]
        if segments and _LOCALE_SEGMENT.match(segments[0]):
            segments = segments[1:]
        if not segments:
            return None

        return {"host": host, "tenant": host.split(".")[0], "site_id": segments[0]}

    def is_applicable(self, url: str, context: Dict[str, Any]) -> bool:
        return self.parse_site(url) is not None

    def scrape(self, url: str, options: Dict[str, Any]) -> Optional[ScrapeResult]:
        """Fetch all postings with pagination.

        Returns:
            ScrapeResult with one link per posting, or None if the site has none.
        """
        site = self.parse_site(url)
        if not site:
            return None

        api_url = f"https://{site['host']}/wday/cxs/{site['tenant']}/{site['site_id']}/jobs"
        max_pages = int(options.get("max_pages") or 10)
        dictionary = self.get_dictionary(options)

        links: List[JobLink] = []
        lines: List[str] = []
        offset = 0
        pages = 0

        logger.info(f"Fetching jobs from Workday: {site['tenant']}/{site['site_id']}")

        while pages < max_pages:
            payload = {
                "appliedFacets": {},
                "limit": PAGE_SIZE,
                "offset": offset,
                "searchText": options.get("search_query") or "",
            }
            response = self.fetch(api_url, options, method="POST", accept="application/json", json=payload)
            data = response.json()
            job_list = data.get("jobPostings", [])
            pages += 1

            if not job_list:
                break

            logger.debug(f"Fetched {len(job_list)} jobs (offset: {offset})")

            for job_data in job_list:
                link = self.parse_job(job_data, site, dictionary)
                if link:
                    links.append(link)
                    lines.append(" - ".join(p for p in (link.text, link.location) if p))

            offset += len(job_list)
            if offset >= data.get("total", 0):
                break

        logger.info(f"Total jobs found from Workday {site['tenant']}: {len(links)}")
        if not links:
            return None

        return ScrapeResult(
            url=url,
            title=f"{site['tenant']} careers",
            text=f"Open positions at {site['tenant']} ({len(links)} jobs): " + ". ".join(lines),
            links=links,
            detected_platform="Workday",
            detected_language=options.get("detected_language"),
            method=self.name,
            interaction_count=pages,
            jobs_found=len(links),
        )

    def parse_job(
        self, job_data: Dict[str, Any], site: Dict[str, str], dictionary=None
    ) -> Optional[JobLink]:
        """Parse a Workday job posting into a JobLink.

        Args:
            job_data: Raw posting from the Workday API
            site: Parsed site info from parse_site()

        Returns:
            JobLink or None if parsing fails
        """
        try:
            title = job_data.get("title")
            path = job_data.get("externalPath")
            if not isinstance(title, str) or not path:
                return None

            return self.make_link(
                f"https://{site['host']}/{site['site_id']}{path}",
                title,
                dictionary,
                is_job_posting=True,
                confidence=1.0,
                link_type="job_posting",
                location=self._extract_location(job_data),
                job_type=job_data.get("timeType"),
            )
        except (AttributeError, TypeError) as e:
            logger.warning(f"Failed to parse Workday job: {e}")
            return None

    def _extract_location(self, job_data: Dict[str, Any]) -> Optional[str]:
        location = job_data.get("locationsText")
        if location:
            return location

        primary_location = job_data.get("primaryLocation", {})
        if isinstance(primary_location, dict):
            return primary_location.get("descriptor") or None

        return None
