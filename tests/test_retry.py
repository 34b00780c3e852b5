"""Tests for provider connection retry."""

import pytest

from src.exceptions import ProviderError, ProviderUnavailableError
from src.provider.retry import RetryPolicy, compute_delay, is_retryable, retry_with_backoff


def _unavailable() -> ProviderUnavailableError:
    return ProviderUnavailableError("http://provider/mcp", reason="Connection refused")


def test_delay_grows_and_is_capped():
    policy = RetryPolicy(base_delay=1.0, max_delay=3.0, jitter=False)

    assert [compute_delay(attempt, policy) for attempt in range(4)] == [1.0, 2.0, 3.0, 3.0]


def test_jitter_stays_within_bounds():
    policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=True)

    for _ in range(50):
        assert 0.5 <= compute_delay(0, policy) <= 1.5


def test_only_unavailable_errors_are_retryable():
    assert is_retryable(_unavailable())
    assert not is_retryable(ProviderError("bad request"))
    assert not is_retryable(ValueError("boom"))


@pytest.mark.asyncio
async def test_retry_until_success_reports_each_retry():
    attempts = []
    retries = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise _unavailable()
        return "ok"

    result = await retry_with_backoff(
        flaky,
        RetryPolicy(max_attempts=5, base_delay=0, jitter=False),
        on_retry=lambda attempt, delay, error: retries.append((attempt, delay)),
    )

    assert result == "ok"
    assert len(attempts) == 3
    assert retries == [(1, 0), (2, 0)]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_last_error():
    calls = []

    async def down():
        calls.append(1)
        raise _unavailable()

    with pytest.raises(ProviderUnavailableError):
        await retry_with_backoff(down, RetryPolicy(max_attempts=2, base_delay=0, jitter=False))

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_non_retryable_error_raises_immediately():
    calls = []

    async def broken():
        calls.append(1)
        raise ProviderError("unsupported protocol version")

    with pytest.raises(ProviderError):
        await retry_with_backoff(broken, RetryPolicy(max_attempts=5, base_delay=0, jitter=False))

    assert len(calls) == 1
