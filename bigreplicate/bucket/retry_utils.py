"""Retry decorator with exponential backoff for transient API failures."""
import functools
import time
from typing import Any, Callable, Tuple, Type, TypeVar

from google.api_core import exceptions as google_api_exceptions

from bigreplicate.logging_config import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Google API transient failures that should be retried
TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    google_api_exceptions.ServiceUnavailable,  # 503
    google_api_exceptions.DeadlineExceeded,  # 504
    google_api_exceptions.InternalServerError,  # 500
    google_api_exceptions.TooManyRequests,  # 429 rate limiting
)


def retry_with_backoff(
    retries: int = 3,
    backoff_factor: float = 2.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[Exception], ...] = TRANSIENT_EXCEPTIONS,
) -> Callable[[F], F]:
    """Decorator to retry a single API call with exponential backoff.

    Only the failed call is retried. A single job status read may be retried,
    but a job that is still running is not an error and is never retried here;
    the caller decides when to poll again. Job submissions must be idempotent
    (a fixed job id) before they are wrapped.

    Args:
        retries: Maximum number of retry attempts (default: 3)
        backoff_factor: Multiplier for delay between retries (default: 2.0)
        max_delay: Upper bound on a single delay in seconds
        exceptions: Exception types to retry (default: Google transient errors)

    Example:
        @retry_with_backoff(retries=3)
        def get_job_status(...):
            ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = 1.0
            for attempt in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == retries:
                        logger.error(f"{func.__name__} failed after {retries} retries: {e}")
                        raise

                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt + 1}/{retries}), " f"retrying in {delay}s: {e}"
                    )
                    time.sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)

        return wrapper  # type: ignore

    return decorator
