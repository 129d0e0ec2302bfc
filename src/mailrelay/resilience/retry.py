"""Retry decorator for outbound API calls built on tenacity.

Calls are retried a bounded number of times with a fixed delay between
attempts.  A warning is logged before every retry and an error once the
attempts are exhausted, after which the original exception is re-raised to
the caller.  Coroutine functions are supported; their waits go through
``asyncio.sleep`` so a cancelled task stops retrying immediately.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_ATTEMPTS = 3
DEFAULT_DELAY_SECONDS = 5.0


def log_final_failure(api_name: str, retry_state: RetryCallState) -> None:
    """Log the failure once every attempt has been used, then re-raise.

    Args:
        api_name: Human-readable name for the API.
        retry_state: Tenacity retry state with attempt info and exception.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.error(
        "API call failed after all retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )
    if retry_state.outcome is not None:
        # Surface the original exception instead of tenacity's RetryError.
        retry_state.outcome.result()


def _before_sleep_log(api_name: str, retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        api_name: Human-readable name for the API.
        retry_state: Tenacity retry state with attempt info.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying API call",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        exception=str(exception),
    )


def resilient_api_call(
    api_name: str,
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    retry_if: Callable[[BaseException], bool] | None = None,
) -> Callable[[F], F]:
    """Create a retry decorator for an API call.

    Returns a tenacity retry decorator configured with:
    - ``attempts`` attempts maximum
    - A fixed ``delay_seconds`` wait between attempts
    - Warning log before each retry
    - Error log on final failure
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs).
        attempts: Total number of attempts, including the first call.
        delay_seconds: Seconds to wait between attempts.
        retry_on: Exception types that trigger a retry; anything else
            propagates immediately.
        retry_if: Predicate deciding whether an exception triggers a retry.
            Takes precedence over *retry_on* when given.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        wrapped = retry(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(delay_seconds),
            retry=retry_if_exception(retry_if) if retry_if is not None else retry_if_exception_type(retry_on),
            before_sleep=partial(_before_sleep_log, api_name),
            retry_error_callback=partial(log_final_failure, api_name),
            reraise=True,
        )(func)

        return wrapped  # type: ignore[no-any-return]

    return decorator
