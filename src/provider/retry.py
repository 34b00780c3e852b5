"""Bounded retry with exponential backoff for provider connection attempts."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from src.exceptions import ProviderUnavailableError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many times, and how patiently, to retry a connection attempt."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    jitter: bool = True


def is_retryable(error: Exception) -> bool:
    """Only link-level failures are worth another attempt."""
    return isinstance(error, ProviderUnavailableError)


def compute_delay(attempt: int, policy: RetryPolicy) -> float:
    """Backoff before retry number ``attempt + 1`` (``attempt`` is 0-based)."""
    delay = min(policy.base_delay * (2**attempt), policy.max_delay)
    if policy.jitter:
        delay *= random.uniform(0.5, 1.5)
    return delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Run ``fn`` until it succeeds or the policy is exhausted.

    Args:
        fn: Zero-arg callable returning an awaitable.
        policy: Retry policy. Uses defaults if None.
        on_retry: Optional callback(attempt, delay, error) before each retry.

    Returns:
        The result of ``fn()``.

    Raises:
        The last error once attempts are exhausted, or immediately for
        non-retryable errors.
    """
    policy = policy or RetryPolicy()
    attempts = max(policy.max_attempts, 1)

    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e) or attempt + 1 >= attempts:
                raise
            delay = compute_delay(attempt, policy)
            if on_retry is not None:
                on_retry(attempt + 1, delay, e)
            await asyncio.sleep(delay)

    raise RuntimeError(f"Retry loop exited unexpectedly (max_attempts={attempts})")
