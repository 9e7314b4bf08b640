"""Persistence of terminal outcomes: full results and minimum-quality placeholders."""

import logging
from typing import Optional

from career_scraper.cache import ResultCache
from career_scraper.exceptions import PersistenceError, StepErrorKind
from career_scraper.metrics import ScrapingMetrics
from career_scraper.models import CacheQuality, JobLink, ScrapeResult
from career_scraper.utils.url_utils import display_domain

logger = logging.getLogger(__name__)

MINIMUM_METHOD = "minimum-fallback"


def build_minimum_result(url: str) -> ScrapeResult:
    """
    Synthetic placeholder for a page no strategy could scrape.

    Generic title and body naming the domain, plus one non-job link back to the URL.
    """
    name = display_domain(url)
    return ScrapeResult(
        url=url,
        title=f"{name} - Career Page",
        text=(
            f"Career opportunities at {name}. "
            "Visit the original page for current openings and job listings."
        ),
        links=[
            JobLink(
                url=url,
                text=f"View {name} Career Page",
                is_job_posting=False,
                link_type="career_page",
            )
        ],
        method=MINIMUM_METHOD,
        jobs_found=0,
        is_empty=True,
        is_minimum_cache=True,
        cache_quality=CacheQuality.MINIMUM,
        detected_platform=None,
        detected_language="en",
    )


class DegradationWriter:
    """
    Writes terminal outcomes to the cache.

    ``save_result`` never raises (a failed write only downgrades guarantees);
    ``save_minimum`` reports failure so the caller can return a failed status.
    """

    def __init__(self, cache: ResultCache, metrics: Optional[ScrapingMetrics] = None):
        self.cache = cache
        self.metrics = metrics

    def save_result(self, url: str, result: ScrapeResult) -> bool:
        """
        Persist a successful result.

        Returns:
            True if stored, False if the cache refused or failed
        """
        try:
            stored = bool(self.cache.put(url, result))
        except Exception as e:
            logger.warning(f"✗ Cache save failed for {url}: {e}")
            self._record_error(url, StepErrorKind.CACHE_SAVE_ERROR, str(e))
            return False

        if not stored:
            logger.warning(f"✗ Cache refused result for {url}")
        return stored

    def save_minimum(self, url: str) -> ScrapeResult:
        """
        Build and persist the minimum placeholder for a URL.

        Returns:
            The placeholder result

        Raises:
            PersistenceError: When the placeholder could not be stored
        """
        minimum = build_minimum_result(url)

        try:
            stored = self.cache.put(url, minimum)
        except Exception as e:
            self._record_error(url, StepErrorKind.MINIMUM_CACHE_ERROR, str(e))
            raise PersistenceError(f"Minimum cache creation failed for {url}: {e}") from e

        if not stored:
            self._record_error(url, StepErrorKind.MINIMUM_CACHE_ERROR, "cache refused entry")
            raise PersistenceError(f"Minimum cache creation refused for {url}")

        logger.info(f"Minimum cache created for {url}")
        return minimum

    def _record_error(self, url: str, kind: str, message: str) -> None:
        if self.metrics is not None:
            self.metrics.record_step_error(url, "cache", kind, message)
