"""Registry of available extraction strategies, ordered by static priority."""

import logging
from typing import Dict, Iterable, List, Optional

from career_scraper.dictionaries import DictionaryProvider
from career_scraper.strategies.base import BaseStrategy
from career_scraper.strategies.greenhouse import GreenhouseStrategy
from career_scraper.strategies.lever import LeverStrategy
from career_scraper.strategies.lightweight import LightweightStrategy
from career_scraper.strategies.workday import WorkdayStrategy

logger = logging.getLogger(__name__)

BUILTIN_STRATEGIES = (LightweightStrategy, GreenhouseStrategy, WorkdayStrategy, LeverStrategy)


class StrategyRegistry:
    """
    Holds strategy instances keyed by name.

    ``all()`` always returns strategies sorted by priority (lower runs first);
    ties keep registration order.
    """

    def __init__(self, strategies: Optional[Iterable[BaseStrategy]] = None):
        self._strategies: Dict[str, BaseStrategy] = {}
        for strategy in strategies or []:
            self.register(strategy)

    @classmethod
    def with_builtins(cls, dictionaries: Optional[DictionaryProvider] = None) -> "StrategyRegistry":
        """Registry preloaded with the built-in HTTP strategies."""
        dictionaries = dictionaries or DictionaryProvider()
        return cls(strategy_cls(dictionaries=dictionaries) for strategy_cls in BUILTIN_STRATEGIES)

    def register(self, strategy: BaseStrategy) -> None:
        if strategy.name in self._strategies:
            logger.warning(f"Replacing registered strategy {strategy.name}")
        self._strategies[strategy.name] = strategy
        logger.debug(f"Registered strategy {strategy.name} (priority {strategy.priority})")

    def unregister(self, name: str) -> Optional[BaseStrategy]:
        return self._strategies.pop(name, None)

    def get(self, name: Optional[str]) -> Optional[BaseStrategy]:
        if not name:
            return None
        return self._strategies.get(name)

    def all(self) -> List[BaseStrategy]:
        return sorted(self._strategies.values(), key=lambda s: s.priority)

    def names(self) -> List[str]:
        return [s.name for s in self.all()]

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, name: str) -> bool:
        return name in self._strategies

    def close_all(self) -> None:
        """Close every strategy; a failing close does not stop the others."""
        for strategy in self._strategies.values():
            try:
                strategy.close()
            except Exception as e:
                logger.warning(f"Error closing strategy {strategy.name}: {e}")
