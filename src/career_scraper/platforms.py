"""
Applicant-tracking platform detection.

The platform catalog (URL patterns, HTML signatures, mapped and blocked strategies)
is data loaded from the packaged platforms.yaml, so adding a platform is a catalog
edit rather than a code change.
"""

import logging
from importlib import resources
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class PlatformDefinition(BaseModel):
    """One catalog entry."""

    name: str
    url_patterns: List[str] = Field(default_factory=list)
    html_indicators: List[str] = Field(default_factory=list)
    min_indicators: int = Field(default=1, ge=1)
    strategy: Optional[str] = None
    blocked_strategies: List[str] = Field(default_factory=list)
    heavy_javascript: bool = False
    complex_domain_timeout: Optional[float] = None

    def matches_url(self, url: str) -> bool:
        url = url.lower()
        return any(pattern.lower() in url for pattern in self.url_patterns)

    def count_indicators(self, html: str) -> int:
        html = html.lower()
        return sum(1 for indicator in self.html_indicators if indicator.lower() in html)


class PlatformCatalog:
    """Loaded platform table with name lookups."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        """
        Initialize the catalog.

        Args:
            data: Optional mapping with ``platforms`` and ``fallback_strategies``.
                  Defaults to the packaged platforms.yaml.
        """
        if data is None:
            text = (
                resources.files("career_scraper")
                .joinpath("data/platforms.yaml")
                .read_text(encoding="utf-8")
            )
            data = yaml.safe_load(text) or {}

        self.platforms: List[PlatformDefinition] = []
        for entry in data.get("platforms", []):
            try:
                self.platforms.append(PlatformDefinition(**entry))
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid platform entry {entry!r}: {e}")

        self.fallback_strategies: List[str] = list(data.get("fallback_strategies", []))
        self._by_name = {p.name.lower(): p for p in self.platforms}

    def get(self, name: Optional[str]) -> Optional[PlatformDefinition]:
        if not name:
            return None
        return self._by_name.get(name.lower())

    def __len__(self) -> int:
        return len(self.platforms)


class PlatformDetector:
    """
    Detect the platform behind a career page.

    URL patterns are checked first; HTML indicators are only consulted when the
    URL gives no match and HTML is available.
    """

    def __init__(self, catalog: Optional[PlatformCatalog] = None):
        self.catalog = catalog or PlatformCatalog()

    def detect(self, url: str, html: Optional[str] = None) -> Optional[str]:
        """
        Detect the platform name.

        Args:
            url: Career page URL
            html: Optional page HTML

        Returns:
            Platform name or None
        """
        for platform in self.catalog.platforms:
            if platform.matches_url(url or ""):
                logger.debug(f"Platform {platform.name} detected from URL {url}")
                return platform.name

        if not html:
            return None

        best: Optional[PlatformDefinition] = None
        best_count = 0
        for platform in self.catalog.platforms:
            count = platform.count_indicators(html)
            if count >= platform.min_indicators and count > best_count:
                best, best_count = platform, count

        if best:
            logger.debug(f"Platform {best.name} detected from HTML ({best_count} indicators)")
            return best.name

        return None

    def recommended_strategy(self, platform: Optional[str]) -> Optional[str]:
        definition = self.catalog.get(platform)
        return definition.strategy if definition else None

    def blocked_strategies(self, platform: Optional[str]) -> List[str]:
        definition = self.catalog.get(platform)
        return list(definition.blocked_strategies) if definition else []

    def fallback_strategies(self) -> List[str]:
        return list(self.catalog.fallback_strategies)

    def get(self, platform: Optional[str]) -> Optional[PlatformDefinition]:
        return self.catalog.get(platform)
