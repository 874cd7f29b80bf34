"""Guarded store calls and read retries with exponential backoff."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from riskwatch.config import EngineConfig
from riskwatch.errors import RiskWatchError, StorageUnavailable
from riskwatch.services.stores import Result

ValueT = TypeVar("ValueT")


def as_storage_error(operation: str, error: BaseException) -> RiskWatchError:
    """Keep domain errors as they are; anything else becomes StorageUnavailable."""
    if isinstance(error, RiskWatchError):
        return error
    return StorageUnavailable(operation, error)


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, StorageUnavailable) or not isinstance(error, RiskWatchError)


async def guarded(
    operation: str, call: Callable[[], Awaitable[Result[ValueT, Exception]]]
) -> Result[ValueT, RiskWatchError]:
    """Run one store call, folding raised exceptions into ``Result.err``."""
    try:
        result = await call()
    except Exception as e:
        return Result.err(as_storage_error(operation, e))
    if result.is_err():
        return Result.err(as_storage_error(operation, result.unwrap_err()))
    return result  # type: ignore[return-value]


async def read_with_retry(
    operation: str,
    call: Callable[[], Awaitable[Result[ValueT, Exception]]],
    config: EngineConfig,
    log: Any,
) -> Result[ValueT, RiskWatchError]:
    """
    Retry a read-only store call while it fails with a storage error.

    Domain errors such as NotFound are returned immediately. Writes must never
    go through here: a retried append could duplicate rows.
    """
    delay = config.read_retry_backoff_seconds
    result: Result[ValueT, RiskWatchError] = Result.err(StorageUnavailable(operation))

    for attempt in range(1, config.read_retry_attempts + 1):
        result = await guarded(operation, call)
        if result.is_ok() or not is_retryable(result.unwrap_err()):
            return result

        log.warning(
            "store_read_failed",
            operation=operation,
            attempt=attempt,
            max_attempts=config.read_retry_attempts,
            error=str(result.unwrap_err()),
        )
        if attempt < config.read_retry_attempts:
            await asyncio.sleep(min(delay, config.max_backoff_seconds))
            delay *= 2

    return result
