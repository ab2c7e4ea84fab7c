"""Retry policy and backoff calculators."""

import pytest

from core.errors import AppError, ErrorCode, Err, Ok
from core.resilience import BackoffStrategy, RetryConfig, RetryPolicy
from core.resilience.retry import get_backoff_calculator

CONFLICT = AppError(code=ErrorCode.E4005_VERSION_CONFLICT, message="stale")


class Flaky:
    def __init__(self, failures: list[AppError]):
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.failures:
            return Err(self.failures.pop(0))
        return Ok("done")


@pytest.mark.asyncio
async def test_retries_until_success():
    fn = Flaky([CONFLICT, CONFLICT])
    retries = []

    async def on_retry(attempt, error, delay):
        retries.append((attempt, error.code))

    outcome = await RetryPolicy(RetryConfig(max_attempts=3, base_delay_seconds=0)).execute(fn, on_retry=on_retry)

    assert outcome.succeeded
    assert outcome.result.unwrap() == "done"
    assert outcome.attempt_count == 3
    assert retries == [(1, ErrorCode.E4005_VERSION_CONFLICT), (2, ErrorCode.E4005_VERSION_CONFLICT)]


@pytest.mark.asyncio
async def test_stops_after_max_attempts():
    fn = Flaky([CONFLICT] * 5)

    outcome = await RetryPolicy(RetryConfig(max_attempts=2, base_delay_seconds=0)).execute(fn)

    assert not outcome.succeeded
    assert outcome.result.unwrap_err().code is ErrorCode.E4005_VERSION_CONFLICT
    assert fn.calls == 2


@pytest.mark.asyncio
async def test_non_retryable_error_fails_fast():
    missing = AppError(code=ErrorCode.E4010_NOT_FOUND, message="gone")
    fn = Flaky([missing, missing])

    outcome = await RetryPolicy(RetryConfig(max_attempts=5, base_delay_seconds=0)).execute(fn)

    assert outcome.result.unwrap_err() is missing
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_exceptions_become_errors():
    async def boom():
        raise RuntimeError("kaput")

    outcome = await RetryPolicy(RetryConfig(max_attempts=3, base_delay_seconds=0)).execute(boom)

    error = outcome.result.unwrap_err()
    assert error.code is ErrorCode.E9001_UNEXPECTED_ERROR
    assert isinstance(error.cause, RuntimeError)
    assert outcome.attempt_count == 1


@pytest.mark.parametrize(
    "strategy, expected",
    [
        (BackoffStrategy.CONSTANT, [0.1, 0.1, 0.1, 0.1]),
        (BackoffStrategy.LINEAR, [0.1, 0.2, 0.3, 0.4]),
        (BackoffStrategy.EXPONENTIAL, [0.1, 0.2, 0.4, 0.5]),
    ],
)
def test_backoff(strategy, expected):
    config = RetryConfig(base_delay_seconds=0.1, max_delay_seconds=0.5, strategy=strategy)
    calculator = get_backoff_calculator(strategy)
    assert [calculator.calculate(n, config) for n in range(1, 5)] == pytest.approx(expected)


def test_jittered_backoff_stays_in_range():
    config = RetryConfig(base_delay_seconds=0.1, max_delay_seconds=1.0, jitter_factor=0.5)
    calculator = get_backoff_calculator(BackoffStrategy.EXPONENTIAL_JITTER)
    for _ in range(50):
        delay = calculator.calculate(2, config)
        assert 0.15 <= delay <= 0.25
