"""Retry decorator for operations that fail with a transient ``StorageError``.

Only storage failures are retried.  Validation, not-found, and conflict
errors propagate on the first attempt because repeating the call cannot
change their outcome.  Ingestion is idempotent on the external message id,
which is what makes retrying it safe.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from sellerdesk.domain.errors import StorageError

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def _log_final_failure(retry_state: RetryCallState) -> Any:
    """Log exhaustion, then re-raise the last error."""
    operation = getattr(retry_state.fn, "_operation", "unknown") if retry_state.fn else "unknown"
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.error(
        "storage_operation_failed",
        operation=operation,
        attempts=retry_state.attempt_number,
        error=str(exception),
    )
    if exception is not None:
        raise exception
    return retry_state.outcome.result() if retry_state.outcome else None


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt."""
    operation = getattr(retry_state.fn, "_operation", "unknown") if retry_state.fn else "unknown"
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retrying_storage_operation",
        operation=operation,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        error=str(exception),
    )


def retry_on_storage_error(
    operation: str,
    attempts: int = 3,
    initial_wait: float = 0.1,
    max_wait: float = 2.0,
) -> Callable[[F], F]:
    """Create a retry decorator for a storage-bound operation.

    Returns a tenacity retry decorator configured with:
    - *attempts* attempts maximum
    - Exponential backoff with jitter
    - Warning log before each retry
    - Error log once attempts are exhausted
    - The last ``StorageError`` re-raised after exhaustion

    Args:
        operation: Name used in log events.
        attempts: Total attempts including the first.
        initial_wait: First backoff in seconds.
        max_wait: Backoff ceiling in seconds.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        func._operation = operation  # type: ignore[attr-defined]

        wrapped = retry(
            retry=retry_if_exception_type(StorageError),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=initial_wait, max=max_wait) + wait_random(0, initial_wait),
            before_sleep=_before_sleep_log,
            retry_error_callback=_log_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator
