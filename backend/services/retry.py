"""Bounded retry with exponential backoff.

The policy is plain data; :func:`retry_async` knows nothing about the
endpoint it is polling.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from backend.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 2.0
    multiplier: float = 2.0

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before zero-based ``attempt`` (attempt 0 never waits)."""
        if attempt <= 0:
            return 0.0
        return self.base_delay * self.multiplier ** attempt

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        cfg = settings.reconciliation_config
        return cls(
            max_attempts=int(cfg.get("max_attempts", cls.max_attempts)),
            base_delay=float(cfg.get("base_delay_seconds", cls.base_delay)),
            multiplier=float(cfg.get("backoff_multiplier", cls.multiplier)),
        )


class RetryBudgetExhausted(Exception):
    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run ``operation`` until it returns, at most ``policy.max_attempts`` times.

    Exceptions listed in ``retry_on`` consume an attempt; anything else
    propagates immediately. Raises RetryBudgetExhausted when every attempt
    failed.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(policy.max_attempts):
        if attempt:
            delay = policy.delay_before(attempt)
            logger.info(
                "Retry %d/%d for %s (backoff: %.1fs)",
                attempt + 1, policy.max_attempts, label, delay,
            )
            await sleep(delay)
        try:
            return await operation()
        except retry_on as e:
            last_error = e
            logger.warning(
                "%s failed (attempt %d/%d): %s",
                label, attempt + 1, policy.max_attempts, e,
            )
    raise RetryBudgetExhausted(policy.max_attempts, last_error)
