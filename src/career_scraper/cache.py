"""Result cache providers.

A cached entry stores the ScrapeResult plus a quality marker so a lookup can
tell a full result from a minimum-quality placeholder.
"""

import json
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from career_scraper.exceptions import PersistenceError
from career_scraper.models import CacheQuality, ScrapeResult
from career_scraper.utils.url_utils import normalize_url, url_hash

logger = logging.getLogger(__name__)


def classify_quality(result: ScrapeResult) -> CacheQuality:
    """
    Classify a result for caching.

    - MINIMUM: degradation placeholder
    - PARTIAL: no link is flagged as a job posting
    - FULL: otherwise
    """
    if result.is_minimum_cache or result.cache_quality == CacheQuality.MINIMUM.value:
        return CacheQuality.MINIMUM
    if not any(link.is_job_posting for link in result.links):
        return CacheQuality.PARTIAL
    return CacheQuality.FULL


def _with_quality(result: ScrapeResult) -> ScrapeResult:
    return result.model_copy(update={"cache_quality": classify_quality(result).value})


class ResultCache(ABC):
    """Cache provider interface."""

    @abstractmethod
    def get(self, url: str) -> Optional[ScrapeResult]:
        """Cached result for the URL, or None when absent or expired."""
        pass

    @abstractmethod
    def put(self, url: str, result: ScrapeResult) -> bool:
        """
        Store a result.

        Returns:
            True when stored

        Raises:
            PersistenceError: When the backing store cannot be written
        """
        pass

    def clear(self) -> None:
        pass

    def get_stats(self) -> Dict[str, Any]:
        return {}


class MemoryResultCache(ResultCache):
    """
    In-process cache with TTL.

    Example:
        cache = MemoryResultCache(ttl_seconds=3600)
        cache.put(url, result)
        cached = cache.get(url)
    """

    def __init__(self, ttl_seconds: float = 86400):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Time-to-live for entries in seconds (default: 24 hours)
        """
        self.entries: Dict[str, Tuple[ScrapeResult, float]] = {}
        self.ttl = ttl_seconds
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    def get(self, url: str) -> Optional[ScrapeResult]:
        normalized = normalize_url(url)

        with self._lock:
            entry = self.entries.get(normalized)
            if entry is None:
                self.misses += 1
                return None

            result, timestamp = entry
            if time.time() - timestamp > self.ttl:
                del self.entries[normalized]
                self.misses += 1
                return None

            self.hits += 1

        logger.debug(f"Cache hit for URL: {normalized}")
        return result.model_copy(deep=True)

    def put(self, url: str, result: ScrapeResult) -> bool:
        normalized = normalize_url(url)
        with self._lock:
            self.entries[normalized] = (_with_quality(result), time.time())
        logger.debug(f"Cached URL: {normalized}")
        return True

    def clear(self) -> None:
        with self._lock:
            count = len(self.entries)
            self.entries.clear()
        logger.info(f"Cleared {count} cache entries")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with hit count, miss count, hit rate, and entry count
        """
        total = self.hits + self.misses
        return {
            "backend": "memory",
            "hits": self.hits,
            "misses": self.misses,
            "total_checks": total,
            "hit_rate_percent": (self.hits / total * 100) if total > 0 else 0,
            "entries_in_cache": len(self.entries),
            "ttl_seconds": self.ttl,
        }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"MemoryResultCache(entries={stats['entries_in_cache']}, "
            f"hits={stats['hits']}, misses={stats['misses']}, "
            f"hit_rate={stats['hit_rate_percent']:.1f}%)"
        )


class FileResultCache(ResultCache):
    """
    One JSON file per URL in a cache directory.

    Files are written atomically (temp file + rename) so a concurrent reader
    never sees a half-written entry.
    """

    def __init__(self, cache_dir: str = "data/cache", ttl_seconds: float = 86400):
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl_seconds
        self.hits = 0
        self.misses = 0

    def _path(self, url: str) -> Path:
        return self.cache_dir / f"{url_hash(url)}.json"

    def get(self, url: str) -> Optional[ScrapeResult]:
        path = self._path(url)
        if not path.exists():
            self.misses += 1
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
            cached_at = float(entry["cached_at"])
            result = ScrapeResult.model_validate(entry["result"])
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Discarding unreadable cache entry {path.name}: {e}")
            self.misses += 1
            return None

        if time.time() - cached_at > self.ttl:
            logger.debug(f"Cache entry expired for {url}")
            self.misses += 1
            return None

        self.hits += 1
        return result

    def put(self, url: str, result: ScrapeResult) -> bool:
        stored = _with_quality(result)
        entry = {
            "url": url,
            "cached_at": time.time(),
            "quality": stored.cache_quality,
            "result": stored.model_dump(mode="json"),
        }

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(entry, f, indent=2)
                os.replace(tmp_path, self._path(url))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write cache entry for {url}: {e}") from e

        logger.debug(f"Cached {url} ({stored.cache_quality})")
        return True

    def clear(self) -> None:
        if not self.cache_dir.exists():
            return
        count = 0
        for path in self.cache_dir.glob("*.json"):
            path.unlink()
            count += 1
        logger.info(f"Cleared {count} cache entries")

    def get_stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        entries = len(list(self.cache_dir.glob("*.json"))) if self.cache_dir.exists() else 0
        return {
            "backend": "file",
            "cache_dir": str(self.cache_dir),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate_percent": (self.hits / total * 100) if total > 0 else 0,
            "entries_in_cache": entries,
            "ttl_seconds": self.ttl,
        }


def create_cache(settings) -> ResultCache:
    """Build the cache backend selected in ScraperSettings."""
    ttl = settings.cache_ttl_hours * 3600
    if settings.cache_backend == "memory":
        return MemoryResultCache(ttl_seconds=ttl)
    return FileResultCache(cache_dir=settings.cache_dir, ttl_seconds=ttl)
