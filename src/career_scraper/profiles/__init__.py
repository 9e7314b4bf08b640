"""Per-domain learning: profile models and the bounded profile store."""

from career_scraper.profiles.models import (
    DomainProfile,
    FastTrackDecision,
    StrategyFailureStats,
    StrategySuccessStats,
    blend,
)
from career_scraper.profiles.store import DomainProfileStore

__all__ = [
    "DomainProfile",
    "DomainProfileStore",
    "FastTrackDecision",
    "StrategyFailureStats",
    "StrategySuccessStats",
    "blend",
]
