"""Tests for candidate filtering and plan construction."""

import pytest

from conftest import FakeStrategy
from career_scraper.config import ScraperSettings
from career_scraper.models import ScrapeOptions
from career_scraper.planner import ExecutionPlanner
from career_scraper.profiles.models import DomainProfile, StrategySuccessStats
from career_scraper.strategies.base import (
    KIND_HEADLESS,
    KIND_IFRAME,
    KIND_LIGHTWEIGHT,
    KIND_PLATFORM,
    KIND_WORDPRESS,
)


@pytest.fixture
def planner():
    return ExecutionPlanner(ScraperSettings())


@pytest.fixture
def pool():
    """A strategy pool covering every kind, sorted by priority."""
    strategies = [
        FakeStrategy("lightweight-variants", kind=KIND_LIGHTWEIGHT, priority=2),
        FakeStrategy("greenhouse-api", kind=KIND_PLATFORM, priority=2, default_timeout=15),
        FakeStrategy("workday-api", kind=KIND_PLATFORM, priority=2, default_timeout=30),
        FakeStrategy("headless-rendering", kind=KIND_HEADLESS, priority=5, default_timeout=25),
        FakeStrategy("iframe-aware-rendering", kind=KIND_IFRAME, priority=6),
        FakeStrategy("wordpress-lightweight", kind=KIND_WORDPRESS, priority=7),
        FakeStrategy("wordpress-headless", kind=KIND_WORDPRESS, priority=8),
        FakeStrategy("wordpress-iframe", kind=KIND_WORDPRESS, priority=9),
        FakeStrategy("lever-api", kind=KIND_PLATFORM, priority=8),
    ]
    return sorted(strategies, key=lambda s: s.priority)


def names(strategies):
    return [s.name for s in strategies]


class TestFilterCandidates:
    """Test platform-aware candidate filtering."""

    def test_no_platform_uses_generic_strategies(self, planner, pool):
        candidates = planner.filter_candidates(pool, None)

        assert names(candidates) == [
            "lightweight-variants",
            "headless-rendering",
            "wordpress-lightweight",
            "wordpress-headless",
            "wordpress-iframe",
        ]

    def test_no_platform_is_capped(self, pool):
        planner = ExecutionPlanner(ScraperSettings(max_generic_candidates=2))

        candidates = planner.filter_candidates(pool, None)

        assert names(candidates) == ["lightweight-variants", "headless-rendering"]

    def test_mapped_platform_strict_filtering(self, planner, pool):
        candidates = planner.filter_candidates(pool, "Greenhouse")

        assert names(candidates) == ["greenhouse-api", "headless-rendering"]

    def test_mapped_platform_without_fallbacks(self, pool):
        planner = ExecutionPlanner(ScraperSettings(max_platform_fallbacks=0))

        assert names(planner.filter_candidates(pool, "Lever")) == ["lever-api"]

    def test_wordpress_keeps_other_wordpress_strategies(self, planner, pool):
        candidates = planner.filter_candidates(pool, "WordPress")

        assert names(candidates) == [
            "wordpress-lightweight",
            "wordpress-headless",
            "wordpress-iframe",
        ]

    def test_wordpress_without_mapped_strategy(self, planner, pool):
        reduced = [s for s in pool if s.name != "wordpress-lightweight"]

        candidates = planner.filter_candidates(reduced, "WordPress")

        assert names(candidates) == ["wordpress-headless", "wordpress-iframe"]

    def test_blocked_strategies_are_removed(self, planner, pool):
        """Test blocked strategies never survive filtering, even as generic picks."""
        only_platform = [s for s in pool if s.kind in (KIND_PLATFORM, KIND_LIGHTWEIGHT)]

        candidates = planner.filter_candidates(only_platform, "WordPress")

        assert "greenhouse-api" not in names(candidates)
        assert "workday-api" not in names(candidates)

    def test_unmapped_platform_uses_minimal_generic(self, planner, pool):
        candidates = planner.filter_candidates(pool, "SmartRecruiters")

        assert names(candidates) == ["lightweight-variants", "headless-rendering"]

    def test_profile_candidates(self, planner, pool):
        candidates = planner.profile_candidates(pool, "headless-rendering")

        assert names(candidates) == ["headless-rendering", "lightweight-variants", "greenhouse-api"]
        assert planner.profile_candidates(pool, "missing-step") is None


class TestBuildPlan:
    """Test plan ordering and derived configuration."""

    def test_plan_without_history_follows_priority(self, planner, pool):
        candidates = planner.filter_candidates(pool, None)

        plan = planner.build_plan("https://acme.example/careers", "acme.example", None, candidates)

        assert [entry.name for entry in plan] == names(candidates)
        assert all(entry.config["retry_count"] == 1 for entry in plan)

    def test_proven_strategies_first_by_success_rate(self, planner, pool):
        profile = DomainProfile(
            domain="acme.example",
            successful_strategies={
                "wordpress-headless": StrategySuccessStats(success_count=1, success_rate=50),
                "headless-rendering": StrategySuccessStats(success_count=3, success_rate=90),
            },
        )
        candidates = planner.filter_candidates(pool, None)

        plan = planner.build_plan(
            "https://acme.example/careers", "acme.example", profile, candidates
        )

        assert [entry.name for entry in plan] == [
            "headless-rendering",
            "wordpress-headless",
            "lightweight-variants",
            "wordpress-lightweight",
            "wordpress-iframe",
        ]
        assert plan[0].config["retry_count"] == 2

    def test_history_ignored_when_selection_disabled(self, pool):
        planner = ExecutionPlanner(ScraperSettings(intelligent_step_selection=False))
        profile = DomainProfile(
            domain="acme.example",
            successful_strategies={"wordpress-iframe": StrategySuccessStats(success_rate=100)},
        )
        candidates = planner.filter_candidates(pool, None)

        plan = planner.build_plan("https://acme.example", "acme.example", profile, candidates)

        assert plan[0].name == "lightweight-variants"

    def test_plan_does_not_mutate_profile(self, planner, pool):
        profile = DomainProfile(
            domain="acme.example",
            successful_strategies={"headless-rendering": StrategySuccessStats(success_rate=90)},
        )
        before = profile.model_dump()

        planner.build_plan("https://acme.example", "acme.example", profile, pool)

        assert profile.model_dump() == before


class TestDerivedConfig:
    """Test adaptive timeouts and per-kind configuration."""

    def test_default_timeout_without_history(self, planner, pool):
        headless = next(s for s in pool if s.name == "headless-rendering")

        assert planner.calculate_adaptive_timeout(headless, None) == 25

    def test_adaptive_timeout_from_history(self, planner, pool):
        headless = next(s for s in pool if s.name == "headless-rendering")

        slow = StrategySuccessStats(avg_execution_time=30)
        fast = StrategySuccessStats(avg_execution_time=2)
        very_slow = StrategySuccessStats(avg_execution_time=100)

        assert planner.calculate_adaptive_timeout(headless, slow) == pytest.approx(36)
        assert planner.calculate_adaptive_timeout(headless, fast) == 25
        assert planner.calculate_adaptive_timeout(headless, very_slow) == 40

    def test_headless_config_uses_interactions(self, planner, pool):
        headless = next(s for s in pool if s.name == "headless-rendering")
        stats = StrategySuccessStats(avg_interactions=7.5)

        config = planner.derive_config(
            headless, stats, ScrapeOptions(), "https://acme.example", "acme.example"
        )

        assert config["max_clicks"] == 12
        assert config["button_detection_level"] == "advanced"
        assert config["aggressive_mode"] is False
        assert config["job_selectors"]

    def test_complex_domain_heavy_platform_timeout(self, planner, pool):
        workday = next(s for s in pool if s.name == "workday-api")

        config = planner.derive_config(
            workday,
            None,
            ScrapeOptions(),
            "https://acme.wd1.myworkdayjobs.com/en-US/External",
            "acme.wd1.myworkdayjobs.com",
            "Workday",
        )

        assert config["timeout"] == 35
        assert config["max_pages"] == 10
        assert config["platform_config"]["name"] == "Workday"

    def test_lightweight_config_carries_dictionary(self, planner, pool):
        lightweight = next(s for s in pool if s.name == "lightweight-variants")

        config = planner.derive_config(
            lightweight,
            None,
            ScrapeOptions(detected_language="fr"),
            "https://acme.example",
            "acme.example",
        )

        assert "emploi" in config["job_terms"]
        assert config["job_url_patterns"]
