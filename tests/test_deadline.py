"""Tests for deadlines and cancellation tokens."""

import threading
from unittest.mock import patch

import pytest

from career_scraper.deadline import CancellationToken, Deadline
from career_scraper.exceptions import ScrapeCancelled


class TestDeadline:
    """Test the monotonic call budget."""

    def test_remaining_counts_down(self):
        with patch("career_scraper.deadline.time.monotonic", return_value=100.0):
            deadline = Deadline(10)

        with patch("career_scraper.deadline.time.monotonic", return_value=104.0):
            assert deadline.remaining() == pytest.approx(6.0)
            assert deadline.elapsed() == pytest.approx(4.0)
            assert deadline.expired is False

    def test_remaining_never_negative(self):
        with patch("career_scraper.deadline.time.monotonic", return_value=100.0):
            deadline = Deadline(10)

        with patch("career_scraper.deadline.time.monotonic", return_value=125.0):
            assert deadline.remaining() == 0.0
            assert deadline.expired is True


class TestCancellationToken:
    """Test cooperative cancellation."""

    def test_cancel_keeps_first_reason(self):
        token = CancellationToken()

        token.cancel("global timeout")
        token.cancel("second")

        assert token.is_cancelled is True
        assert token.reason == "global timeout"

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()

        token.cancel("stop")

        with pytest.raises(ScrapeCancelled, match="stop"):
            token.raise_if_cancelled()

    def test_wait_wakes_on_cancel(self):
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()

        try:
            assert token.wait(5) is True
        finally:
            timer.cancel()

    def test_wait_times_out(self):
        token = CancellationToken()

        assert token.wait(0.01) is False
        assert token.wait(0) is False

    def test_child_cancelled_with_parent(self):
        parent = CancellationToken()
        child = parent.child()

        parent.cancel("global timeout")

        assert child.is_cancelled is True
        assert child.reason == "global timeout"

    def test_child_cancel_leaves_parent_running(self):
        parent = CancellationToken()
        child = parent.child()

        child.cancel("step timeout")

        assert child.is_cancelled is True
        assert parent.is_cancelled is False
        assert parent.child().is_cancelled is False

    def test_child_of_cancelled_parent_starts_cancelled(self):
        parent = CancellationToken()
        parent.cancel("stop")

        child = parent.child()

        with pytest.raises(ScrapeCancelled, match="stop"):
            child.raise_if_cancelled()

    def test_released_child_not_cancelled(self):
        parent = CancellationToken()
        child = parent.child()

        parent.release(child)
        parent.cancel("later")

        assert child.is_cancelled is False
