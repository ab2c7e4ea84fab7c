"""Result-based Error Handling

- Result[T, E]: ``Ok`` / ``Err`` container for success/failure
- AppError: error with code, message, metadata and tracing context
- ErrorCode: error code taxonomy with HTTP status mapping
- Builder functions for the errors this service produces

Usage:
    from core.errors import Ok, Err, Result, AppError, not_found

    async def load_word(word_id) -> Result[VocabularyWord, AppError]:
        word = await session.get(VocabularyWord, word_id)
        if word is None:
            return not_found("VocabularyWord", word_id, origin="word_store")
        return Ok(word)

    match await load_word(word_id):
        case Ok(word):
            ...
        case Err(error):
            log.warning("load_failed", code=error.code.name)
"""
from .types import (
    Result,
    Ok,
    Err,
    AppError,
    ErrorCode,
    ErrorContext,
    from_exception,
)

from .builders import (
    validation_error,
    invalid_format,
    db_error,
    not_found,
    duplicate_key,
    foreign_key_violation,
    db_connection_failed,
    transaction_failed,
    version_conflict,
    internal_error,
)

from .boundaries import (
    ErrorMapper,
    DatabaseErrorMapper,
)

from .handlers import (
    AppErrorException,
    register_error_handlers,
    result_to_response,
    raise_error,
    raise_result,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "AppError",
    "ErrorCode",
    "ErrorContext",
    "from_exception",
    "validation_error",
    "invalid_format",
    "db_error",
    "not_found",
    "duplicate_key",
    "foreign_key_violation",
    "db_connection_failed",
    "transaction_failed",
    "version_conflict",
    "internal_error",
    "ErrorMapper",
    "DatabaseErrorMapper",
    "AppErrorException",
    "register_error_handlers",
    "result_to_response",
    "raise_error",
    "raise_result",
]
