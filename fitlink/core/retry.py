"""Bounded exponential-backoff retry for single backend calls."""

from __future__ import annotations

import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from fitlink.core.clock import SYSTEM_CLOCK, Clock
from fitlink.core.connectivity import ConnectivityMonitor
from fitlink.core.errors import BackendError, HttpError, NetworkUnavailable
from fitlink.core.models import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.1


def is_non_retryable(exc: BaseException) -> bool:
    """Auth, malformed-request, not-found and payload-too-large fail fast."""
    return isinstance(exc, HttpError) and not exc.retryable


class RetryExecutor:
    """Runs one operation with the configured backoff ladder."""

    def __init__(
        self,
        connectivity: ConnectivityMonitor,
        policy: Optional[RetryPolicy] = None,
        clock: Clock = SYSTEM_CLOCK,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.connectivity = connectivity
        self.policy = policy or RetryPolicy()
        self.clock = clock
        self.rng = rng or random.Random()

    def compute_delay(self, attempt: int) -> float:
        """Delay before the retry that follows zero-based ``attempt``."""
        policy = self.policy
        delay = min(policy.base_delay * policy.backoff_factor**attempt, policy.max_delay)
        return delay + self.rng.random() * JITTER_RATIO * delay

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str,
        max_retries: Optional[int] = None,
    ) -> T:
        retries = self.policy.max_retries if max_retries is None else max_retries
        last_error: Optional[BackendError] = None

        for attempt in range(retries + 1):
            if not self.connectivity.is_connected():
                raise NetworkUnavailable(label)

            try:
                result = await operation()
            except BackendError as exc:
                last_error = exc
                if is_non_retryable(exc):
                    logger.info("%s failed with non-retryable error: %s", label, exc)
                    raise
                if attempt >= retries:
                    logger.warning("%s failed after %d retries: %s", label, retries, exc)
                    break
                delay = self.compute_delay(attempt)
                logger.info(
                    "%s attempt %d failed, retrying in %.2fs: %s", label, attempt + 1, delay, exc
                )
                await self.clock.sleep(delay)
                continue

            if attempt > 0:
                logger.info("%s succeeded after %d retries", label, attempt)
            return result

        assert last_error is not None
        raise last_error
