"""Retry logic with exponential backoff for failed service calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..config import RetryConfig
from ..core.exceptions import RetryExhaustedError, TransientNetworkError
from ..core.utils.backoff import get_backoff_delay

logger = logging.getLogger(__name__)

# local request errors (unsupported scheme, malformed request) are not retried
TRANSIENT_EXCEPTIONS = (
    TransientNetworkError,
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    asyncio.TimeoutError,
)


@dataclass(frozen=True)
class RetryState:
    """Snapshot of a guarded call, handed to ``on_retry`` before each backoff."""

    attempt: int
    max_attempts: int
    delay: float
    failure: BaseException


def is_transient_failure(exc: BaseException) -> bool:
    """Check if a failure is a local I/O error or a retryable service answer."""
    return isinstance(exc, TRANSIENT_EXCEPTIONS)


async def retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    is_retryable: Callable[[BaseException], bool] = is_transient_failure,
    on_retry: Optional[Callable[[RetryState], None]] = None,
    **kwargs: Any,
) -> Any:
    """Execute async function with retry and exponential backoff.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        config: Retry settings (defaults: 5 attempts, 150ms initial delay,
            90s max delay, 0.25 jitter)
        is_retryable: Predicate selecting the failures worth another attempt
        on_retry: Optional callback invoked before every backoff sleep
        **kwargs: Keyword arguments for func

    Returns:
        Result from successful function call

    Raises:
        RetryExhaustedError: If max attempts exceeded, chained to the last failure
        Exception: If a non-retryable exception occurs
    """
    config = config or RetryConfig()
    name = getattr(func, "__name__", repr(func))

    for attempt in range(config.max_attempts):
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e):
                logger.debug(f"Non-retryable exception in {name}: {type(e).__name__}")
                raise

            if attempt >= config.max_attempts - 1:
                logger.warning(
                    f"Max retries ({config.max_attempts}) exhausted for {name}"
                )
                raise RetryExhaustedError(config.max_attempts, e) from e

            delay = get_backoff_delay(
                attempt, config.initial_delay, config.max_delay, jitter=config.jitter
            )
            logger.debug(
                f"Retry {attempt + 1}/{config.max_attempts} for {name} "
                f"after {delay:.2f}s - cause: {e}"
            )
            if on_retry is not None:
                on_retry(RetryState(attempt + 1, config.max_attempts, delay, e))
            await asyncio.sleep(delay)
            continue

        if attempt > 0:
            logger.info(f"Retry succeeded on attempt {attempt + 1}/{config.max_attempts}")
        return result

    # unreachable: max_attempts is validated to be at least 1
    raise AssertionError("retry loop exited without result")
