"""Token-bucket request budget.

Each operation kind ("analysis", "chat", "audit", ...) gets its own bucket so
one kind of call cannot starve another. Buckets are created lazily with the
configured capacity and refilled continuously as wall-clock time passes.

No locking: the check-and-decrement in `is_allowed` contains no suspension
point, so it is atomic on a single asyncio event loop.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

DEFAULT_CAPACITY = 20
DEFAULT_WINDOW_MS = 60_000


@dataclass
class RateBucket:
    """Token bucket state for a single key.

    Attributes:
        tokens: Currently available tokens, always within [0, capacity]
        last_refill: Clock reading (ms) of the last refill
        capacity: Maximum tokens
        window_ms: Time (ms) to refill from empty to full
    """

    tokens: float
    last_refill: float
    capacity: int
    window_ms: float

    def refill(self, now: float) -> None:
        """Add tokens for the time elapsed since the last refill."""
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(
            float(self.capacity),
            self.tokens + elapsed / self.window_ms * self.capacity,
        )
        self.last_refill = max(self.last_refill, now)


@dataclass(frozen=True)
class BudgetDecision:
    """Outcome of a budget check."""

    allowed: bool
    retry_after_ms: int | None = None


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class RequestBudget:
    """Per-key token-bucket rate limiter.

    Args:
        capacity: Tokens per bucket (max burst)
        window_ms: Refill window in milliseconds
        clock: Callable returning the current time in milliseconds
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        window_ms: float = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive. Got: {capacity}")
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive. Got: {window_ms}")

        self.capacity = capacity
        self.window_ms = float(window_ms)
        self._clock = clock or _monotonic_ms
        self._buckets: dict[str, RateBucket] = {}

    def _bucket(self, key: str, now: float) -> RateBucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = RateBucket(
                tokens=float(self.capacity),
                last_refill=now,
                capacity=self.capacity,
                window_ms=self.window_ms,
            )
            self._buckets[key] = bucket
        return bucket

    def is_allowed(self, key: str) -> BudgetDecision:
        """Consume one token for `key` if available.

        Args:
            key: Operation kind

        Returns:
            BudgetDecision; when denied, `retry_after_ms` is the wait until
            one full token has accrued
        """
        now = self._clock()
        bucket = self._bucket(key, now)
        bucket.refill(now)

        if bucket.tokens >= 1:
            bucket.tokens -= 1
            return BudgetDecision(allowed=True)

        retry_after = math.ceil((1 - bucket.tokens) * (self.window_ms / self.capacity))
        return BudgetDecision(allowed=False, retry_after_ms=retry_after)

    def tokens(self, key: str) -> float:
        """Return the tokens currently available for `key` (refilling first)."""
        now = self._clock()
        bucket = self._bucket(key, now)
        bucket.refill(now)
        return bucket.tokens

    def reset(self, key: str) -> None:
        """Forget the bucket for `key`."""
        self._buckets.pop(key, None)

    def reset_all(self) -> None:
        """Forget every bucket."""
        self._buckets.clear()
