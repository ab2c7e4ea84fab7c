"""Retry Policies with Backoff and Jitter

Re-runs an async operation that returns a Result while its error is
transient. The review path uses this for compare-and-swap retries: each
attempt re-reads the row, recomputes and writes with a version check.
"""
from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Awaitable, Callable, Generic, TypeVar

from core.errors import AppError, ErrorCode, Err, Ok, Result, from_exception

T = TypeVar("T")


class BackoffStrategy(Enum):
    CONSTANT = auto()
    LINEAR = auto()
    EXPONENTIAL = auto()
    EXPONENTIAL_JITTER = auto()


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 2.0
    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL_JITTER
    jitter_factor: float = 0.5  # 0-1, portion of delay that can be jitter
    multiplier: float = 2.0
    retryable_codes: frozenset[ErrorCode] = field(
        default_factory=lambda: frozenset({
            ErrorCode.E4001_CONNECTION_FAILED,
            ErrorCode.E4003_TRANSACTION_FAILED,
            ErrorCode.E4005_VERSION_CONFLICT,
        })
    )


@dataclass
class RetryAttempt:
    attempt_number: int
    started_at: datetime
    delay_seconds: float
    error: AppError | None = None


@dataclass
class RetryResult(Generic[T]):
    """Final result of a retried operation plus its attempt history."""
    result: Result[T, AppError]
    attempts: list[RetryAttempt]
    total_duration_seconds: float

    @property
    def succeeded(self) -> bool:
        return self.result.is_ok()

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


class BackoffCalculator(ABC):
    @abstractmethod
    def calculate(self, attempt: int, config: RetryConfig) -> float:
        """Delay in seconds after the given (1-indexed) attempt."""


class ConstantBackoff(BackoffCalculator):
    def calculate(self, attempt: int, config: RetryConfig) -> float:
        return min(config.base_delay_seconds, config.max_delay_seconds)


class LinearBackoff(BackoffCalculator):
    def calculate(self, attempt: int, config: RetryConfig) -> float:
        return min(config.base_delay_seconds * attempt, config.max_delay_seconds)


class ExponentialBackoff(BackoffCalculator):
    def calculate(self, attempt: int, config: RetryConfig) -> float:
        delay = config.base_delay_seconds * (config.multiplier ** (attempt - 1))
        return min(delay, config.max_delay_seconds)


class ExponentialJitterBackoff(BackoffCalculator):
    """Exponential backoff with equal jitter (±jitter_factor/2).

    Jitter spreads out writers that collided on the same word so they
    don't collide again on the next attempt.
    """

    def calculate(self, attempt: int, config: RetryConfig) -> float:
        base = config.base_delay_seconds * (config.multiplier ** (attempt - 1))
        base = min(base, config.max_delay_seconds)
        jitter_range = base * config.jitter_factor
        jitter = random.uniform(-jitter_range / 2, jitter_range / 2)
        return max(0, min(base + jitter, config.max_delay_seconds))


def get_backoff_calculator(strategy: BackoffStrategy) -> BackoffCalculator:
    calculators: dict[BackoffStrategy, BackoffCalculator] = {
        BackoffStrategy.CONSTANT: ConstantBackoff(),
        BackoffStrategy.LINEAR: LinearBackoff(),
        BackoffStrategy.EXPONENTIAL: ExponentialBackoff(),
        BackoffStrategy.EXPONENTIAL_JITTER: ExponentialJitterBackoff(),
    }
    return calculators[strategy]


class RetryPolicy(Generic[T]):
    """Retry policy for operations that may fail transiently.

    Usage:
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        outcome = await policy.execute(lambda: store.save_word(...))
        match outcome.result:
            case Ok(word):
                ...
            case Err(error):
                log.warning("gave_up", attempts=outcome.attempt_count)
    """

    def __init__(self, config: RetryConfig | None = None):
        self.config = config or RetryConfig()
        self._calculator = get_backoff_calculator(self.config.strategy)

    def should_retry(self, error: AppError, attempt: int) -> bool:
        if attempt >= self.config.max_attempts:
            return False
        return error.code in self.config.retryable_codes

    async def execute(
        self,
        fn: Callable[[], Awaitable[Result[T, AppError]]],
        on_retry: Callable[[int, AppError, float], Awaitable[None]] | None = None,
    ) -> RetryResult[T]:
        """Run ``fn`` until it succeeds, fails permanently or attempts run out.

        Args:
            fn: Async function returning Result
            on_retry: Optional callback before each retry (attempt, error, delay)
        """
        attempts: list[RetryAttempt] = []
        start_time = datetime.now(timezone.utc)

        def _finish(result: Result[T, AppError]) -> RetryResult[T]:
            elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
            return RetryResult(result=result, attempts=attempts, total_duration_seconds=elapsed)

        for attempt in range(1, self.config.max_attempts + 1):
            attempt_start = datetime.now(timezone.utc)
            delay = self._calculator.calculate(attempt, self.config)

            try:
                result = await fn()
            except Exception as e:
                result = from_exception(e, origin="retry")

            match result:
                case Ok(_):
                    attempts.append(RetryAttempt(attempt, attempt_start, delay))
                    return _finish(result)

                case Err(error):
                    attempts.append(RetryAttempt(attempt, attempt_start, delay, error))
                    if not self.should_retry(error, attempt):
                        return _finish(result)
                    if on_retry:
                        await on_retry(attempt, error, delay)
                    await asyncio.sleep(delay)

        return _finish(Err(AppError(
            code=ErrorCode.E9001_UNEXPECTED_ERROR,
            message="Retry policy exhausted",
        )))
