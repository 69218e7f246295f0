"""Retry policies for failed exchanges.

A retryer never sleeps itself. It answers how long to wait before the next
attempt, so the blocking pipeline can ``time.sleep`` and the asyncio pipeline
can ``asyncio.sleep`` on the same policy. Each call works on its own clone.
"""

from __future__ import annotations

import time
from typing import Protocol

from wirestub.error import RetryableError


class Retryer(Protocol):
    """Decides whether a call that failed with a RetryableError goes again."""

    def continue_or_propagate(self, error: RetryableError) -> float:
        """Return the seconds to wait before the next attempt.

        Raises:
            RetryableError: error itself, when no attempt is left
        """
        ...

    def clone(self) -> Retryer:
        """Return a fresh retryer for one call."""
        ...


class DefaultRetryer:
    """Exponential backoff, honoring the server's Retry-After when given.

    Waits ``period * 1.5 ** (attempt - 1)`` seconds, capped at ``max_period``,
    and gives up after ``max_attempts`` attempts in total.
    """

    def __init__(
        self, period: float = 0.1, max_period: float = 1.0, max_attempts: int = 5
    ) -> None:
        self.period = period
        self.max_period = max_period
        self.max_attempts = max_attempts
        self.attempt = 1
        self.slept_for = 0.0

    def continue_or_propagate(self, error: RetryableError) -> float:
        if self.attempt >= self.max_attempts:
            raise error
        if error.retry_after is None:
            interval = self.next_max_interval()
        else:
            interval = min(error.retry_after - self.now(), self.max_period)
            if interval < 0:
                self.attempt += 1
                return 0.0
        self.slept_for += interval
        self.attempt += 1
        return interval

    def next_max_interval(self) -> float:
        return min(self.period * 1.5 ** (self.attempt - 1), self.max_period)

    def now(self) -> float:
        return time.time()

    def clone(self) -> DefaultRetryer:
        return DefaultRetryer(self.period, self.max_period, self.max_attempts)

    def __repr__(self) -> str:
        return (
            f"DefaultRetryer(period={self.period}, max_period={self.max_period}, "
            f"max_attempts={self.max_attempts})"
        )


class _NeverRetry:
    def continue_or_propagate(self, error: RetryableError) -> float:
        raise error

    def clone(self) -> _NeverRetry:
        return self

    def __repr__(self) -> str:
        return "NEVER_RETRY"


NEVER_RETRY: Retryer = _NeverRetry()
