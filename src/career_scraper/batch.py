"""Run scrapes for many career pages with bounded concurrency."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Optional

from career_scraper.models import ScrapeResult, ScrapeStatus
from career_scraper.orchestrator import (
    REASON_UNEXPECTED_ERROR,
    RETRY_FULL_LATER,
    ScrapeOrchestrator,
)

logger = logging.getLogger(__name__)


class BatchScrapeRunner:
    """
    Scrapes URLs in batches of ``concurrency_limit``, pausing between batches.

    A URL that is already being scraped (by this runner or a concurrent ``run``)
    is skipped rather than scraped twice.
    """

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        concurrency_limit: Optional[int] = None,
        pacing_delay: Optional[float] = None,
    ):
        settings = orchestrator.settings
        self.orchestrator = orchestrator
        self.concurrency_limit = concurrency_limit or settings.batch_concurrency_limit
        self.pacing_delay = (
            pacing_delay if pacing_delay is not None else settings.batch_pacing_delay
        )
        self._in_flight: set = set()
        self._lock = threading.Lock()

    def run(self, urls: Iterable[str], options: Any = None) -> Dict[str, Any]:
        """
        Scrape every URL.

        Args:
            urls: Career page URLs (duplicates are scraped once)
            options: Scrape options applied to every call

        Returns:
            Dictionary with:
                - results: {url: ScrapeResult}
                - skipped: URLs already in flight elsewhere
                - summary: counts per status plus total and duration
        """
        unique_urls = list(dict.fromkeys(urls))
        results: Dict[str, ScrapeResult] = {}
        skipped: List[str] = []
        started = time.monotonic()

        logger.info(
            f"Starting batch of {len(unique_urls)} URLs "
            f"(concurrency {self.concurrency_limit}, pacing {self.pacing_delay}s)"
        )

        for start in range(0, len(unique_urls), self.concurrency_limit):
            batch = unique_urls[start : start + self.concurrency_limit]
            claimed = [url for url in batch if self._claim(url)]
            skipped.extend(url for url in batch if url not in claimed)

            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                futures = {executor.submit(self._scrape_one, url, options): url for url in claimed}
                for future in as_completed(futures):
                    url = futures[future]
                    results[url] = future.result()

            if start + self.concurrency_limit < len(unique_urls) and self.pacing_delay:
                time.sleep(self.pacing_delay)

        summary = self.summarize(results)
        summary["skipped"] = len(skipped)
        summary["duration_seconds"] = round(time.monotonic() - started, 2)

        logger.info(
            f"Batch complete: {summary['ok']} ok, {summary['degraded']} degraded, "
            f"{summary['failed']} failed, {summary['skipped']} skipped"
        )
        return {"results": results, "skipped": skipped, "summary": summary}

    @staticmethod
    def summarize(results: Dict[str, ScrapeResult]) -> Dict[str, int]:
        """Count results per status."""
        summary = {"total": len(results), "ok": 0, "degraded": 0, "failed": 0, "jobs_found": 0}
        for result in results.values():
            status = ScrapeStatus(result.status).value
            summary[status] += 1
            summary["jobs_found"] += result.jobs_found
        return summary

    def _claim(self, url: str) -> bool:
        with self._lock:
            if url in self._in_flight:
                logger.info(f"Skipping {url} - already being scraped")
                return False
            self._in_flight.add(url)
            return True

    def _scrape_one(self, url: str, options: Any) -> ScrapeResult:
        try:
            return self.orchestrator.scrape(url, options)
        except Exception as e:
            logger.exception(f"✗ Batch scrape of {url} failed: {e}")
            return ScrapeResult(url=url, is_empty=True).with_status(
                ScrapeStatus.FAILED, REASON_UNEXPECTED_ERROR, True, RETRY_FULL_LATER
            )
        finally:
            with self._lock:
                self._in_flight.discard(url)
