"""Error Boundary Mappers

Database exceptions are converted to AppErrors where they cross out of
the persistence layer, so engines and routes only ever see Results.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from .types import AppError, ErrorCode, ErrorContext, Err, Ok, Result
from .builders import (
    db_connection_failed,
    duplicate_key,
    foreign_key_violation,
    internal_error,
    transaction_failed,
)

T = TypeVar("T")


class ErrorMapper(ABC, Generic[T]):
    """Abstract base for error mappers at module boundaries."""

    @abstractmethod
    def map_error(self, error: AppError) -> AppError:
        """Map internal error to boundary error."""

    def map_result(self, result: Result[T, AppError]) -> Result[T, AppError]:
        match result:
            case Ok(_):
                return result
            case Err(e):
                return Err(self.map_error(e))


class DatabaseErrorMapper(ErrorMapper[T]):
    """Maps SQLAlchemy exceptions to application error codes."""

    def __init__(self, origin: str = "database"):
        self.origin = origin

    def map_error(self, error: AppError) -> AppError:
        if 4000 <= error.code.value < 5000:
            return error
        return error.with_context(origin=self.origin)

    def map_exception(self, exc: Exception) -> AppError:
        if isinstance(exc, StaleDataError):
            return AppError(
                code=ErrorCode.E4005_VERSION_CONFLICT,
                message=f"Stale write detected: {exc}",
                context=ErrorContext(origin=self.origin),
                cause=exc,
            )
        if isinstance(exc, IntegrityError):
            return self._map_integrity_error(exc)
        if isinstance(exc, OperationalError):
            return self._map_operational_error(exc)
        if isinstance(exc, SQLAlchemyError):
            return transaction_failed(str(exc), origin=self.origin).error

        return internal_error(
            f"Database error: {exc}",
            origin=self.origin,
            cause=exc,
        ).error

    def _map_integrity_error(self, exc: IntegrityError) -> AppError:
        message = str(exc.orig) if exc.orig else str(exc)
        lowered = message.lower()

        if "duplicate key" in lowered or "unique constraint" in lowered:
            return duplicate_key(
                entity="record",
                field="unknown",
                value="unknown",
                origin=self.origin,
            ).error

        if "foreign key" in lowered:
            return foreign_key_violation(
                entity="record",
                reference="unknown",
                origin=self.origin,
            ).error

        return AppError(
            code=ErrorCode.E4013_CHECK_CONSTRAINT,
            message=f"Constraint violation: {message}",
            context=ErrorContext(origin=self.origin),
            cause=exc,
        )

    def _map_operational_error(self, exc: OperationalError) -> AppError:
        message = str(exc.orig) if exc.orig else str(exc)
        lowered = message.lower()

        # sqlite reports writer contention as "database is locked"
        if "locked" in lowered or "deadlock" in lowered:
            return AppError(
                code=ErrorCode.E4005_VERSION_CONFLICT,
                message=f"Concurrent write contention: {message}",
                context=ErrorContext(origin=self.origin),
                cause=exc,
            )

        if "connection" in lowered or "connect" in lowered:
            return db_connection_failed(message, origin=self.origin).error

        return transaction_failed(message, origin=self.origin).error
