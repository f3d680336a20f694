"""Caller-side retry helpers using tenacity.

The client core never retries on its own: replaying a create or update
after an ambiguous failure can silently duplicate a mutation. Callers that
know an operation is safe to repeat opt in with the helpers here.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from apisix_bridge.client.exceptions import NetworkError, RateLimitError, ServerError
from apisix_bridge.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

GATEWAY_ERROR_CODES = (502, 503, 504)


def is_retryable(exc: BaseException) -> bool:
    """Decide whether an error is worth retrying.

    Timeouts and other transport failures, rate limiting and gateway-level
    5xx responses are transient. Everything else (4xx, validation, parse
    errors) will fail the same way again.

    Args:
        exc: Exception raised by a client call

    Returns:
        True if the call may succeed on a later attempt
    """
    if isinstance(exc, (NetworkError, RateLimitError)):
        return True
    if isinstance(exc, ServerError):
        return exc.status_code in GATEWAY_ERROR_CODES
    return False


def retry_with_backoff(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 30,
    retry_on: Callable[[BaseException], bool] = is_retryable,
) -> Callable[[F], F]:
    """Retry decorator with exponential backoff and jitter for async callables.

    Example:
        >>> @retry_with_backoff(max_attempts=5)
        >>> async def fetch_routes():
        >>>     return await gateway.routes.list()

    Args:
        max_attempts: Maximum number of attempts (including the first)
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        retry_on: Predicate selecting which exceptions trigger a retry

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_random_exponential(multiplier=1, min=min_wait, max=max_wait),
                retry=retry_if_exception(retry_on),
                reraise=True,
            ):
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    if attempt_number > 1:
                        logger.info(
                            "retry_attempt",
                            function=func.__name__,
                            attempt=attempt_number,
                            max_attempts=max_attempts,
                        )
                    return await func(*args, **kwargs)

        return async_wrapper  # type: ignore

    return decorator
