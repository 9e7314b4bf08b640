"""Wall-clock budget and cooperative cancellation for a single scrape call."""

import threading
import time
from typing import List, Optional

from career_scraper.exceptions import ScrapeCancelled


class CancellationToken:
    """
    Cooperative cancellation signal shared between the orchestrator and strategies.

    Strategies receive the token in their options under ``cancel_token`` and are
    expected to call ``raise_if_cancelled()`` between network calls.

    ``child()`` returns a token that is cancelled together with its parent but
    can also be cancelled on its own, e.g. when a single step runs out of time.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: List["CancellationToken"] = []
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            children, self._children = self._children, []

        for child in children:
            child.cancel(reason)

    def child(self) -> "CancellationToken":
        token = CancellationToken()
        with self._lock:
            if not self._event.is_set():
                self._children.append(token)
                return token
        token.cancel(self.reason or "cancelled")
        return token

    def release(self, child: "CancellationToken") -> None:
        """Stop propagating cancellation to a finished child."""
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to ``seconds``, waking early on cancellation.

        Returns:
            True if the token was cancelled while waiting
        """
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScrapeCancelled(self.reason or "cancelled")


class Deadline:
    """Monotonic deadline for the strategy-execution phase of one call."""

    def __init__(self, seconds: float):
        self.budget = seconds
        self.started_at = time.monotonic()
        self.expires_at = self.started_at + seconds

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.expires_at - time.monotonic())

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def __repr__(self) -> str:
        return f"Deadline(budget={self.budget}s, remaining={self.remaining():.1f}s)"
