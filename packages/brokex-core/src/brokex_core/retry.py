"""
Bounded retry policy for ledger submissions.

The policy is an explicit object (attempt bound, backoff interval and a
retryable-error predicate) so it can be exercised without real delays:
the sleep function is injected by the caller.

Usage:
    from brokex_core.retry import RetryPolicy, RetryStats, retry_async

    policy = RetryPolicy(max_attempts=15, base_delay=1.0)
    stats = RetryStats()
    tx = await retry_async(gateway.submit_close_confirmation, 42, proof, 800_000,
                           policy=policy, stats=stats)
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Optional,
    ParamSpec,
    TypeVar,
)

from .exceptions import is_transient

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first one
        base_delay: Delay before the first retry, in seconds
        exponential_base: Growth factor per retry (1.0 means a fixed interval)
        max_delay: Upper bound for any single delay
        jitter: Maximum jitter factor (0.0-1.0) applied to delays
        retry_condition: Decides whether an exception is worth retrying
        on_retry: Optional callback called before each retry sleep
    """

    max_attempts: int = 15
    base_delay: float = 1.0
    exponential_base: float = 1.0
    max_delay: float = 60.0
    jitter: float = 0.0
    retry_condition: Callable[[BaseException], bool] = is_transient
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def calculate_delay(self, attempt: int) -> float:
        """Delay after the given (0-based) failed attempt."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = delay + random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)

    def should_retry(self, exception: BaseException) -> bool:
        return self.retry_condition(exception)


@dataclass
class RetryStats:
    """Statistics about retry execution.

    Attributes:
        attempts: Total number of attempts (including initial)
        total_delay: Total delay time in seconds
        success: Whether the operation eventually succeeded
        last_exception: The last exception if operation failed
    """

    attempts: int = 0
    total_delay: float = 0.0
    success: bool = False
    last_exception: Optional[BaseException] = None


class RetryExhausted(Exception):
    """Raised when every allowed attempt failed with a retryable error."""

    def __init__(
        self,
        message: str,
        stats: RetryStats,
        original_exception: BaseException,
    ) -> None:
        super().__init__(message)
        self.stats = stats
        self.original_exception = original_exception


async def retry_async(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    policy: Optional[RetryPolicy] = None,
    stats: Optional[RetryStats] = None,
    sleep: Optional[SleepFunc] = None,
    **kwargs: P.kwargs,
) -> T:
    """Execute an async function under a retry policy.

    Non-retryable exceptions are re-raised as soon as they occur. When the
    attempt bound is reached, RetryExhausted wraps the last exception. Pass
    a RetryStats instance to observe the attempt count in both cases.
    """
    if policy is None:
        policy = RetryPolicy()
    if stats is None:
        stats = RetryStats()
    if sleep is None:
        sleep = asyncio.sleep

    name = getattr(func, "__name__", repr(func))

    for attempt in range(policy.max_attempts):
        stats.attempts = attempt + 1

        try:
            result = await func(*args, **kwargs)
            stats.success = True
            return result

        except Exception as e:
            stats.last_exception = e

            if not policy.should_retry(e):
                logger.debug(
                    f"Exception {type(e).__name__} from {name} is not retryable, "
                    f"raising immediately"
                )
                raise

            if attempt + 1 >= policy.max_attempts:
                break

            delay = policy.calculate_delay(attempt)
            stats.total_delay += delay

            logger.warning(
                f"Retry {attempt + 1}/{policy.max_attempts - 1} for "
                f"{name} after {type(e).__name__}: {e}. "
                f"Waiting {delay:.2f}s"
            )

            if policy.on_retry:
                policy.on_retry(attempt + 1, e, delay)

            await sleep(delay)

    raise RetryExhausted(
        f"All {policy.max_attempts} attempts failed for {name}",
        stats=stats,
        original_exception=stats.last_exception,
    ) from stats.last_exception


__all__ = [
    "RetryPolicy",
    "RetryStats",
    "RetryExhausted",
    "SleepFunc",
    "retry_async",
]
