"""In-process scraping metrics per (domain, strategy).

Recording is fire-and-forget: no ``record_*`` call raises, so a metrics problem
never aborts a scrape call. At most ``max_domains`` domains are tracked; the
domain seen first is dropped when a new one would exceed the bound.
"""

import logging
import threading
import time
from collections import defaultdict
from typing import Any, Dict, Optional

from career_scraper.models import SessionRecord, utcnow
from career_scraper.utils.url_utils import extract_domain

logger = logging.getLogger(__name__)


def _new_step_stats() -> Dict[str, Any]:
    return {
        "attempts": 0,
        "successes": 0,
        "errors": 0,
        "error_kinds": defaultdict(int),
        "total_time": 0.0,
        "avg_time": 0.0,
        "last_error": None,
        "last_success_stats": None,
        "success_rate": 0.0,
    }


class ScrapingMetrics:
    """
    Counters for strategy attempts, successes and errors.

    Example:
        metrics = ScrapingMetrics(max_domains=1000)
        started = metrics.record_step_attempt(url, "lightweight-variants")
        metrics.record_step_success(url, "lightweight-variants", started, {"links": 12})
    """

    def __init__(self, max_domains: Optional[int] = None):
        if max_domains is not None and max_domains < 1:
            raise ValueError("max_domains must be at least 1")
        self.max_domains = max_domains
        self.evictions = 0
        self._tracked: Dict[str, None] = {}
        self._domains: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._cache: Dict[str, Dict[str, int]] = {}
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _track(self, domain: str) -> None:
        """Register a domain, dropping the oldest past ``max_domains``. Caller holds the lock."""
        if domain in self._tracked:
            return
        self._tracked[domain] = None
        if self.max_domains is not None and len(self._tracked) > self.max_domains:
            oldest = next(iter(self._tracked))
            del self._tracked[oldest]
            self._domains.pop(oldest, None)
            self._cache.pop(oldest, None)
            self._sessions.pop(oldest, None)
            self.evictions += 1
            logger.debug(f"Metrics: dropped oldest domain {oldest}")

    def _step(self, url: str, step_name: str) -> Dict[str, Any]:
        domain = extract_domain(url)
        self._track(domain)
        steps = self._domains.setdefault(domain, {})
        if step_name not in steps:
            steps[step_name] = _new_step_stats()
        return steps[step_name]

    def _cache_counters(self, url: str) -> Dict[str, int]:
        domain = extract_domain(url)
        self._track(domain)
        return self._cache.setdefault(domain, {"hits": 0, "misses": 0})

    def record_step_attempt(self, url: str, step_name: str) -> float:
        """Count an attempt and return its start time (monotonic seconds)."""
        started = time.monotonic()
        try:
            with self._lock:
                self._step(url, step_name)["attempts"] += 1
        except Exception as e:
            logger.warning(f"Metrics: failed to record attempt for {step_name}: {e}")
        return started

    def record_step_success(
        self,
        url: str,
        step_name: str,
        started: Optional[float] = None,
        content_stats: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            elapsed = time.monotonic() - started if started is not None else 0.0
            with self._lock:
                stats = self._step(url, step_name)
                stats["successes"] += 1
                stats["total_time"] += elapsed
                stats["avg_time"] = stats["total_time"] / stats["successes"]
                stats["last_success_stats"] = dict(content_stats or {})
                stats["success_rate"] = (
                    stats["successes"] / stats["attempts"] * 100 if stats["attempts"] else 100.0
                )
        except Exception as e:
            logger.warning(f"Metrics: failed to record success for {step_name}: {e}")

    def record_step_error(
        self,
        url: str,
        step_name: str,
        error_kind: str,
        message: str = "",
        started: Optional[float] = None,
    ) -> None:
        try:
            elapsed = time.monotonic() - started if started is not None else 0.0
            with self._lock:
                stats = self._step(url, step_name)
                stats["errors"] += 1
                stats["error_kinds"][error_kind] += 1
                stats["last_error"] = {
                    "kind": error_kind,
                    "message": message,
                    "elapsed": elapsed,
                    "at": utcnow().isoformat(),
                }
                if stats["attempts"]:
                    stats["success_rate"] = stats["successes"] / stats["attempts"] * 100
        except Exception as e:
            logger.warning(f"Metrics: failed to record error for {step_name}: {e}")

    def record_cache_hit(self, url: str) -> None:
        try:
            with self._lock:
                self._cache_counters(url)["hits"] += 1
        except Exception as e:
            logger.warning(f"Metrics: failed to record cache hit: {e}")

    def record_cache_miss(self, url: str) -> None:
        try:
            with self._lock:
                self._cache_counters(url)["misses"] += 1
        except Exception as e:
            logger.warning(f"Metrics: failed to record cache miss: {e}")

    def record_session(self, session: SessionRecord) -> None:
        """Keep the last session summary per domain."""
        try:
            with self._lock:
                self._track(session.domain)
                self._sessions[session.domain] = {
                    "strategy_used": session.strategy_used,
                    "success": session.success,
                    "jobs_found": session.jobs_found,
                    "duration_seconds": session.duration_seconds,
                    "fast_track": session.fast_track,
                    "cache_created": session.cache_created,
                    "is_minimum_cache": session.is_minimum_cache,
                }
        except Exception as e:
            logger.warning(f"Metrics: failed to record session for {session.domain}: {e}")

    def get_domain_metrics(self, domain: str) -> Dict[str, Any]:
        """Per-strategy counters, cache counters and last session for a domain."""
        with self._lock:
            steps = {
                name: {**stats, "error_kinds": dict(stats["error_kinds"])}
                for name, stats in self._domains.get(domain, {}).items()
            }
            return {
                "steps": steps,
                "cache": dict(self._cache.get(domain, {"hits": 0, "misses": 0})),
                "last_session": self._sessions.get(domain),
            }

    def get_step_stats(self) -> Dict[str, Dict[str, Any]]:
        """Counters aggregated per strategy across all domains."""
        totals: Dict[str, Dict[str, Any]] = {}
        with self._lock:
            for steps in self._domains.values():
                for name, stats in steps.items():
                    total = totals.setdefault(
                        name, {"attempts": 0, "successes": 0, "errors": 0, "domains": 0}
                    )
                    total["attempts"] += stats["attempts"]
                    total["successes"] += stats["successes"]
                    total["errors"] += stats["errors"]
                    total["domains"] += 1

        for total in totals.values():
            total["success_rate"] = (
                round(total["successes"] / total["attempts"] * 100, 1) if total["attempts"] else 0.0
            )
        return totals

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            hits = sum(c["hits"] for c in self._cache.values())
            misses = sum(c["misses"] for c in self._cache.values())
            domains = len(self._domains)
        return {"domains": domains, "cache_hits": hits, "cache_misses": misses}
