"""
Retry helpers with exponential backoff for source API calls.

Connectors and alert delivery loop on their own; these functions decide
how long to wait and whether an error is worth another attempt.
"""
import random
from typing import Tuple, Type


# Default retryable exceptions (network/API errors).
# requests.RequestException derives from OSError, so it is covered here.
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
)


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Calculate delay for exponential backoff.

    Args:
        attempt: Current attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential_base: Base for exponential calculation
        jitter: Add 0-25% randomness so parallel callers spread out

    Returns:
        Delay in seconds
    """
    delay = base_delay * (exponential_base ** (attempt - 1))
    delay = min(delay, max_delay)

    if jitter:
        delay += delay * random.uniform(0, 0.25)

    return delay


def is_retryable_error(
    error: Exception,
    retryable_exceptions: Tuple[Type[Exception], ...] = DEFAULT_RETRYABLE_EXCEPTIONS,
    retryable_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)
) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: The exception to check
        retryable_exceptions: Tuple of exception types to retry
        retryable_status_codes: HTTP status codes to retry (matched in the message)

    Returns:
        True if error should be retried
    """
    if isinstance(error, retryable_exceptions):
        return True

    error_str = str(error).lower()

    if "rate limit" in error_str or "too many requests" in error_str:
        return True

    for code in retryable_status_codes:
        if f"({code})" in error_str or f"http {code}" in error_str:
            return True

    if "timeout" in error_str or "timed out" in error_str:
        return True

    if "connection" in error_str and ("refused" in error_str or "reset" in error_str or "failed" in error_str):
        return True

    return False
