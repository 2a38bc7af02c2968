"""Retry logic with exponential backoff for Gemini API calls.

Gemini answers large document requests with 503 "model overloaded" or 429
rate limit errors under load. This module provides a decorator that retries
those transient failures with exponential backoff and jitter.
"""

import asyncio
import functools
import inspect
import logging
import random
import time
from typing import Any, Callable, Set, Type, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# HTTP status codes that should trigger retry
RETRYABLE_STATUS_CODES: Set[int] = {
    429,  # Rate limit
    500,  # Server error
    503,  # Service unavailable / model overloaded
}

# HTTP status codes that should NOT trigger retry
NON_RETRYABLE_STATUS_CODES: Set[int] = {
    400,  # Bad request
    401,  # Unauthorized
    403,  # Forbidden
    404,  # Not found
    422,  # Unprocessable entity
}

# Substrings of transient error messages (SDK errors don't always carry a code)
TRANSIENT_ERROR_MARKERS = (
    "overloaded",
    "unavailable",
    "resource exhausted",
    "timeout",
    "timed out",
    "connection",
    "network",
)

MAX_RETRIES = 3
BASE_DELAY = 2.0  # seconds
MAX_JITTER = 1.0  # seconds


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    max_jitter: float = MAX_JITTER,
    retryable_exceptions: tuple[Type[Exception], ...] = (),
) -> Callable[[F], F]:
    """Decorator that retries a sync or async function with exponential backoff.

    An exception is retried when it carries a retryable status code (429,
    500, 503), when its message looks transient (overloaded, timeout,
    connection errors), or when it is an instance of ``retryable_exceptions``.
    Non-retryable status codes (400, 401, 403, 404, 422) are never retried.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Base delay in seconds for exponential backoff (default: 2.0)
        max_jitter: Maximum random jitter in seconds (default: 1.0)
        retryable_exceptions: Extra exception types that are always retried

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        def _next_delay(attempt: int, error: Exception) -> float:
            if not _should_retry_exception(error, retryable_exceptions) or attempt >= max_retries:
                if attempt >= max_retries:
                    logger.error(f"{func.__name__} failed after {max_retries} retries: {error}")
                raise error

            delay = (base_delay * (2**attempt)) + (random.random() * max_jitter)
            logger.warning(
                f"{func.__name__} attempt {attempt + 1}/{max_retries} failed: {error}. "
                f"Retrying in {delay:.2f}s..."
            )
            return delay

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    delay = _next_delay(attempt, e)
                await asyncio.sleep(delay)
                attempt += 1

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    delay = _next_delay(attempt, e)
                time.sleep(delay)
                attempt += 1

        if inspect.iscoroutinefunction(func):
            return cast(F, async_wrapper)
        return cast(F, sync_wrapper)

    return decorator


def _should_retry_exception(
    exception: Exception, retryable_exceptions: tuple[Type[Exception], ...]
) -> bool:
    """Determine if an exception should trigger a retry."""
    status_code = _extract_status_code(exception)

    if status_code:
        if status_code in NON_RETRYABLE_STATUS_CODES:
            return False
        if status_code in RETRYABLE_STATUS_CODES:
            return True

    message = str(exception).lower()
    if any(marker in message for marker in TRANSIENT_ERROR_MARKERS):
        return True
    # Some SDK errors only mention the code in the message
    if "503" in message or "429" in message:
        return True

    return bool(retryable_exceptions) and isinstance(exception, retryable_exceptions)


def _extract_status_code(exception: Exception) -> int | None:
    """Extract HTTP status code from exception.

    Checks ``status_code``, an integer ``code`` (google-genai APIError),
    and ``response.status_code`` (httpx pattern).
    """
    if hasattr(exception, "status_code"):
        try:
            return int(getattr(exception, "status_code"))
        except (TypeError, ValueError):
            return None

    if hasattr(exception, "code"):
        code = getattr(exception, "code")
        if isinstance(code, int):
            return code

    if hasattr(exception, "response"):
        response = getattr(exception, "response")
        if hasattr(response, "status_code"):
            try:
                return int(getattr(response, "status_code"))
            except (TypeError, ValueError):
                return None

    return None
