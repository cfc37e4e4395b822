"""
Retry utilities with exponential backoff for async functions.

Used around outbound calls to external collaborators (the notification
webhook) where a transient failure is worth another attempt but a
rejected request is not.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Tuple, Type, TypeVar

import httpx

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class RetryableError(Exception):
    """
    Transient failure worth another attempt.

    Raised for upstream 5xx responses and rate limiting (429); transport
    errors such as connection resets and read timeouts are retried
    without wrapping.
    """


class NonRetryableError(Exception):
    """
    Permanent failure that will not change on retry.

    Raised for upstream 4xx responses (bad payload, unknown recipient,
    credentials refused) and for configuration mistakes.
    """


TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    RetryableError,
    httpx.TransportError,
    asyncio.TimeoutError,
)


def async_retry(
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0
) -> Callable[[F], F]:
    """Decorator for async functions with exponential backoff retry logic.

    Args:
        max_attempts: Maximum number of attempts including the first one
        base_delay: Delay in seconds before the second attempt
        max_delay: Upper bound for any single delay

    Example:
        @async_retry(max_attempts=3, base_delay=0.5)
        async def post_event(client, payload):
            return await client.post('/events', json=payload)

    Error Handling:
    - NonRetryableError: raised immediately
    - RetryableError, httpx.TransportError, asyncio.TimeoutError:
      retried until attempts are exhausted, then the last one is raised
    - Anything else: raised immediately, it is a bug rather than weather

    Backoff: delay = base_delay * (2 ^ attempt), capped at max_delay.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)

                except NonRetryableError:
                    raise

                except TRANSIENT_ERRORS as e:
                    if attempt >= max_attempts - 1:
                        logger.error(
                            f"All {max_attempts} attempts failed for {func.__name__}. "
                            f"Final error: {str(e)}"
                        )
                        raise

                    delay = min(base_delay * (2 ** attempt), max_delay)
                    logger.warning(
                        f"Retry attempt {attempt + 1}/{max_attempts} for {func.__name__}. "
                        f"Error: {str(e)}. Waiting {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)

            raise RuntimeError(f"async_retry called {func.__name__} with max_attempts={max_attempts}")

        return wrapper
    return decorator
