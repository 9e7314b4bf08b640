"""
Background re-scraping of degraded pages.

Pages whose last scrape ended on a minimum-cache placeholder, and domains the
profile store flagged for re-profiling, are scraped again with the cache
bypassed so the placeholder can be replaced by real content.
"""

import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional

from career_scraper.batch import BatchScrapeRunner
from career_scraper.models import ScrapeResult, ScrapeStatus, utcnow
from career_scraper.orchestrator import RETRY_ALTERNATIVE_STEPS, RETRY_BACKGROUND_RESCRAPING

logger = logging.getLogger(__name__)

# Retry hints that ask for a later re-scrape rather than an immediate full retry
RESCRAPE_HINTS = (RETRY_BACKGROUND_RESCRAPING, RETRY_ALTERNATIVE_STEPS)


class BackgroundRescraper:
    """
    Periodically re-scrapes degraded pages through a BatchScrapeRunner.

    Usage:
        rescraper = BackgroundRescraper(BatchScrapeRunner(orchestrator))
        rescraper.add_results(outcome["results"])
        rescraper.run_once()        # or start() / stop() for a timed loop
    """

    def __init__(
        self,
        runner: BatchScrapeRunner,
        interval: Optional[float] = None,
        max_urls_per_run: Optional[int] = None,
    ):
        settings = runner.orchestrator.settings
        self.runner = runner
        self.profiles = runner.orchestrator.profiles
        self.interval = interval if interval is not None else settings.background_interval
        self.max_urls_per_run = max_urls_per_run or settings.background_max_urls

        self._queue: Dict[str, None] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.stats: Dict[str, Any] = {
            "runs": 0,
            "attempted": 0,
            "recovered": 0,
            "still_degraded": 0,
            "failed": 0,
            "last_run_at": None,
            "last_run_seconds": 0.0,
        }

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def add(self, url: str) -> None:
        with self._lock:
            self._queue[url] = None

    def add_results(self, results: Dict[str, ScrapeResult]) -> int:
        """
        Queue every result that asked for a background re-scrape.

        Returns:
            Number of URLs queued
        """
        queued = 0
        for url, result in results.items():
            if result.status == ScrapeStatus.OK.value or not result.should_retry:
                continue
            if result.retry_strategy in RESCRAPE_HINTS:
                self.add(url)
                queued += 1

        if queued:
            logger.info(f"Queued {queued} degraded pages for background re-scraping")
        return queued

    def pending(self) -> List[str]:
        with self._lock:
            return list(self._queue)

    def collect(self) -> List[str]:
        """
        Take the URLs for the next run: queued pages first, then pages of domains
        flagged for re-profiling, at most ``max_urls_per_run``.
        """
        with self._lock:
            candidates = list(dict.fromkeys(list(self._queue) + self.profiles.reprofiling_urls()))
            selected = candidates[: self.max_urls_per_run]
            for url in selected:
                self._queue.pop(url, None)
        return selected

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run_once(self) -> Dict[str, Any]:
        """
        Re-scrape the collected URLs once.

        Returns:
            Dictionary with:
                - urls: URLs attempted
                - recovered / still_degraded / failed: counts for this run
                - results: {url: ScrapeResult}
        """
        urls = self.collect()
        started = time.monotonic()
        self.stats["runs"] += 1
        self.stats["last_run_at"] = utcnow().isoformat()

        run = {"urls": urls, "recovered": 0, "still_degraded": 0, "failed": 0, "results": {}}
        if not urls:
            logger.info("No pages queued for background re-scraping")
            return run

        logger.info(f"Background re-scraping {len(urls)} pages")
        outcome = self.runner.run(urls, {"force_refresh": True})

        # In-flight URLs were not attempted; keep them for the next run
        self._requeue(outcome["skipped"])

        for url, result in outcome["results"].items():
            if result.status == ScrapeStatus.OK.value:
                run["recovered"] += 1
                logger.info(f"✓ Background re-scrape recovered {url} ({result.jobs_found} jobs)")
            elif result.status == ScrapeStatus.DEGRADED.value:
                run["still_degraded"] += 1
            else:
                run["failed"] += 1
                logger.warning(f"✗ Background re-scrape failed for {url}: {result.status_reason}")
        run["results"] = outcome["results"]

        self.stats["attempted"] += len(outcome["results"])
        for key in ("recovered", "still_degraded", "failed"):
            self.stats[key] += run[key]
        self.stats["last_run_seconds"] = round(time.monotonic() - started, 2)

        logger.info(
            f"Background run complete: {run['recovered']} recovered, "
            f"{run['still_degraded']} still degraded, {run['failed']} failed"
        )
        return run

    def _requeue(self, urls: Iterable[str]) -> None:
        with self._lock:
            for url in urls:
                self._queue[url] = None

    def start(self) -> bool:
        """
        Run now and then every ``interval`` seconds on a daemon thread.

        Returns:
            False if the loop was already running
        """
        if self.is_running:
            logger.info("Background re-scraper already running")
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="background-rescraper", daemon=True
        )
        self._thread.start()
        logger.info(f"Background re-scraper started (every {self.interval}s)")
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop; a run in progress finishes first."""
        if not self.is_running:
            return
        self._stop_event.set()
        self._thread.join(timeout)
        logger.info("Background re-scraper stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.exception(f"✗ Background re-scraping run failed: {e}")
            self._stop_event.wait(self.interval)

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "interval": self.interval,
            "pending": len(self.pending()),
            "reprofiling": len(self.profiles.reprofiling_urls()),
            "stats": dict(self.stats),
        }
