"""Pluggable extraction strategies."""

from career_scraper.strategies.base import (
    KIND_HEADLESS,
    KIND_IFRAME,
    KIND_LIGHTWEIGHT,
    KIND_PLATFORM,
    KIND_WORDPRESS,
    BaseStrategy,
)
from career_scraper.strategies.greenhouse import GreenhouseStrategy
from career_scraper.strategies.lever import LeverStrategy
from career_scraper.strategies.lightweight import LightweightStrategy
from career_scraper.strategies.registry import StrategyRegistry
from career_scraper.strategies.workday import WorkdayStrategy

__all__ = [
    "BaseStrategy",
    "GreenhouseStrategy",
    "KIND_HEADLESS",
    "KIND_IFRAME",
    "KIND_LIGHTWEIGHT",
    "KIND_PLATFORM",
    "KIND_WORDPRESS",
    "LeverStrategy",
    "LightweightStrategy",
    "StrategyRegistry",
    "WorkdayStrategy",
]
