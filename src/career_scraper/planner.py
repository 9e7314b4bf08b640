"""
Execution planning: candidate filtering and plan construction.

The planner turns a domain profile snapshot and the strategy pool into an
ordered list of PlanEntry objects. It never mutates the profile it is given.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from career_scraper.config import ScraperSettings
from career_scraper.dictionaries import DictionaryProvider
from career_scraper.models import PlanEntry, ScrapeOptions
from career_scraper.platforms import PlatformDetector
from career_scraper.profiles.models import DomainProfile, StrategySuccessStats
from career_scraper.strategies.base import (
    KIND_HEADLESS,
    KIND_IFRAME,
    KIND_LIGHTWEIGHT,
    KIND_PLATFORM,
    KIND_WORDPRESS,
    BaseStrategy,
)

logger = logging.getLogger(__name__)

WORDPRESS_PLATFORM = "wordpress"


def _of_kind(strategies: Sequence[BaseStrategy], kind: str) -> List[BaseStrategy]:
    return [s for s in strategies if s.kind == kind]


class ExecutionPlanner:
    """Build ordered execution plans from domain history and the strategy pool."""

    def __init__(
        self,
        settings: Optional[ScraperSettings] = None,
        detector: Optional[PlatformDetector] = None,
        dictionaries: Optional[DictionaryProvider] = None,
    ):
        self.settings = settings or ScraperSettings()
        self.detector = detector or PlatformDetector()
        self.dictionaries = dictionaries or DictionaryProvider()

    # ------------------------------------------------------------------
    # Candidate filtering
    # ------------------------------------------------------------------

    def filter_candidates(
        self, strategies: Sequence[BaseStrategy], platform: Optional[str]
    ) -> List[BaseStrategy]:
        """
        Restrict the strategy pool for a page.

        - No platform: generic low-cost strategies (lightweight, then headless,
          then WordPress), capped at ``max_generic_candidates``.
        - Platform with a mapped strategy in the pool: that strategy plus at most
          ``max_platform_fallbacks`` generic fallbacks (WordPress gets up to
          ``max_wordpress_fallbacks`` other WordPress strategies).
        - WordPress without its mapped strategy: every WordPress strategy.
        - Any other platform: lightweight then headless strategies, capped at
          ``max_unknown_platform_candidates``.

        Strategies blocked for the platform are always removed.

        Args:
            strategies: Pool sorted by static priority
            platform: Detected platform name, if any

        Returns:
            Filtered candidates
        """
        blocked = set(self.detector.blocked_strategies(platform))
        pool = [s for s in strategies if s.name not in blocked]

        if not platform:
            candidates = (
                _of_kind(pool, KIND_LIGHTWEIGHT)
                + _of_kind(pool, KIND_HEADLESS)
                + _of_kind(pool, KIND_WORDPRESS)
            )
            logger.debug("No platform detected, using generic strategies only")
            return candidates[: self.settings.max_generic_candidates]

        is_wordpress = platform.lower() == WORDPRESS_PLATFORM
        mapped_name = self.detector.recommended_strategy(platform)
        mapped = next((s for s in pool if s.name == mapped_name), None)

        if mapped is not None:
            if is_wordpress:
                fallbacks = [
                    s for s in _of_kind(pool, KIND_WORDPRESS) if s.name != mapped.name
                ][: self.settings.max_wordpress_fallbacks]
            else:
                fallback_names = self.detector.fallback_strategies()
                fallbacks = [
                    s for s in pool if s.name in fallback_names and s.name != mapped.name
                ][: self.settings.max_platform_fallbacks]
            logger.debug(f"Strict filtering for {platform}: {mapped.name} + {len(fallbacks)} fallback(s)")
            return [mapped] + fallbacks

        if mapped_name:
            logger.debug(f"Mapped strategy {mapped_name} for {platform} is not available")

        if is_wordpress:
            wordpress = _of_kind(pool, KIND_WORDPRESS)
            if wordpress:
                return wordpress

        logger.debug(f"Unknown platform {platform}, using minimal generic strategies")
        candidates = _of_kind(pool, KIND_LIGHTWEIGHT) + _of_kind(pool, KIND_HEADLESS)
        return candidates[: self.settings.max_unknown_platform_candidates]

    def profile_candidates(
        self, strategies: Sequence[BaseStrategy], preferred: str, extra: int = 2
    ) -> Optional[List[BaseStrategy]]:
        """
        Candidates for a domain with a proven strategy: the preferred one plus
        the first ``extra`` other strategies. None if the preferred one is gone.
        """
        preferred_strategy = next((s for s in strategies if s.name == preferred), None)
        if preferred_strategy is None:
            return None
        others = [s for s in strategies if s.name != preferred][:extra]
        return [preferred_strategy] + others

    # ------------------------------------------------------------------
    # Plan construction
    # ------------------------------------------------------------------

    def build_plan(
        self,
        url: str,
        domain: str,
        profile: Optional[DomainProfile],
        candidates: Sequence[BaseStrategy],
        options: Optional[ScrapeOptions] = None,
        platform: Optional[str] = None,
    ) -> List[PlanEntry]:
        """
        Order candidates into an execution plan.

        Strategies with recorded successes on the domain come first, sorted by
        success rate (highest first); the rest follow in static priority order
        with default configuration.
        """
        options = options or ScrapeOptions()
        history = profile.successful_strategies if profile else {}

        proven: List[BaseStrategy] = []
        if self.settings.intelligent_step_selection and history:
            proven = sorted(
                (s for s in candidates if s.name in history),
                key=lambda s: history[s.name].success_rate,
                reverse=True,
            )

        proven_names = {s.name for s in proven}
        remaining = sorted(
            (s for s in candidates if s.name not in proven_names), key=lambda s: s.priority
        )

        plan = [
            PlanEntry(
                strategy=s,
                config=self.derive_config(s, history[s.name], options, url, domain, platform),
            )
            for s in proven
        ]
        plan.extend(
            PlanEntry(strategy=s, config=self.derive_config(s, None, options, url, domain, platform))
            for s in remaining
        )
        return plan

    def calculate_adaptive_timeout(
        self, strategy: BaseStrategy, stats: Optional[StrategySuccessStats]
    ) -> float:
        """
        Step timeout in seconds.

        With history: ``avg_execution_time * multiplier`` clamped between the
        strategy default and ``max_adaptive_timeout``. Without: the default.
        """
        base = strategy.default_timeout or self.settings.default_step_timeout
        if not self.settings.adaptive_timeout or stats is None:
            return base

        average = stats.avg_execution_time or base
        return min(
            max(average * self.settings.timeout_multiplier, base),
            self.settings.max_adaptive_timeout,
        )

    def derive_config(
        self,
        strategy: BaseStrategy,
        stats: Optional[StrategySuccessStats],
        options: ScrapeOptions,
        url: str,
        domain: str,
        platform: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Derive per-entry options from history (or defaults when stats is None)."""
        dictionary = self.dictionaries.get(options.detected_language)
        complex_domain = self.dictionaries.is_complex_domain(domain)
        definition = self.detector.get(platform)

        config: Dict[str, Any] = {
            "timeout": self.calculate_adaptive_timeout(strategy, stats),
            "retry_count": 2 if stats else 1,
            "special_platform": options.special_platform,
            "detected_platform": platform,
            "job_selectors": dictionary.job_listing_selectors(),
            "show_more_selectors": dictionary.show_more_selectors(),
            "pagination_selectors": dictionary.pagination_selectors(),
        }
        interactions = stats.avg_interactions if stats else 0.0

        if strategy.kind == KIND_HEADLESS:
            config["max_clicks"] = min(int(interactions) + 5, 30) if stats else 20
            config["scroll_strategy"] = "adaptive"
            config["button_detection_level"] = "advanced" if stats else "standard"
            config["max_scroll_time"] = 20 if complex_domain else 15
            config["max_button_time"] = 25 if complex_domain else 20
            config["aggressive_mode"] = complex_domain

        elif strategy.kind == KIND_IFRAME:
            config["frame_timeout"] = 5
            config["max_frame_depth"] = 2
            config["platform_config"] = definition.model_dump() if definition else None

        elif strategy.kind == KIND_LIGHTWEIGHT:
            config["job_terms"] = dictionary.job_terms()
            config["job_url_patterns"] = [p.pattern for p in dictionary.job_url_patterns()]

        elif strategy.kind == KIND_WORDPRESS:
            config["wordpress_specific"] = True
            config["max_pagination_pages"] = min(int(interactions) + 2, 10) if stats else 5
            config["max_show_more_clicks"] = min(int(interactions) + 3, 10) if stats else 5
            config["wait_for_content_time"] = 3

        elif strategy.kind == KIND_PLATFORM:
            config["max_pages"] = min(int(interactions) + 2, 20) if stats else 10
            config["platform_config"] = definition.model_dump() if definition else None

        if (
            complex_domain
            and definition is not None
            and definition.heavy_javascript
            and definition.complex_domain_timeout
        ):
            config["timeout"] = max(config["timeout"], definition.complex_domain_timeout)

        return config
