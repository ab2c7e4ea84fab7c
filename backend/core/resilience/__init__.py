"""Resilience Patterns

Retry policies with configurable backoff for transient failures such as
optimistic-concurrency conflicts.
"""
from .retry import (
    BackoffStrategy,
    RetryAttempt,
    RetryConfig,
    RetryPolicy,
    RetryResult,
)

__all__ = [
    "BackoffStrategy",
    "RetryAttempt",
    "RetryConfig",
    "RetryPolicy",
    "RetryResult",
]
