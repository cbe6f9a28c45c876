"""Retry helpers for registry-bound docker operations (push, login)."""

import logging
import random
import time
from enum import Enum
from functools import wraps
from typing import Callable, Iterable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableErrorType(Enum):
    """How a failed docker invocation should be treated"""

    NETWORK = "network"  # registry unreachable, resets, TLS/DNS trouble
    TEMPORARY = "temporary"  # registry 5xx or rate limiting
    PERMANENT = "permanent"  # auth failures, missing images, bad arguments


AUTH_INDICATORS = ("401", "403", "unauthorized", "denied", "forbidden")

NETWORK_INDICATORS = (
    "connection",
    "timeout",
    "timed out",
    "network",
    "dns",
    "resolve",
    "refused",
    "unreachable",
    "reset",
    "broken pipe",
    "no route to host",
    "temporary failure",
    "tls handshake",
)

TEMPORARY_INDICATORS = ("500", "502", "503", "504", "429", "rate limit", "too many requests", "toomanyrequests")


def is_retryable_error(error: Exception, error_message: str = "") -> Tuple[bool, RetryableErrorType]:
    """Classify a failure from the docker CLI.

    Auth problems win over everything else since retrying them only delays
    the inevitable. Anything not recognised as network or registry-side is
    treated as permanent: the docker CLI mostly fails for usage reasons.

    Returns:
        (is_retryable, error_type)
    """
    text = f"{error} {error_message}".lower()

    if any(indicator in text for indicator in AUTH_INDICATORS):
        return False, RetryableErrorType.PERMANENT
    if any(indicator in text for indicator in NETWORK_INDICATORS):
        return True, RetryableErrorType.NETWORK
    if any(indicator in text for indicator in TEMPORARY_INDICATORS):
        return True, RetryableErrorType.TEMPORARY
    return False, RetryableErrorType.PERMANENT


def compute_delay(
    attempt: int, initial_delay: float, max_delay: float, exponential_base: float, jitter: bool
) -> float:
    """Backoff delay before retry number attempt + 1 (attempt is zero-based)."""
    delay = min(initial_delay * (exponential_base**attempt), max_delay)
    if jitter:
        spread = delay * 0.1
        delay = max(0.1, delay + random.uniform(-spread, spread))
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retry_on: Optional[Iterable[RetryableErrorType]] = None,
) -> Callable:
    """Decorator retrying a callable with exponential backoff.

    Args:
        max_retries: Retries after the first attempt
        initial_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between delays
        jitter: Spread each delay by +/-10%
        retry_on: Error types worth retrying (default: network and temporary)

    The last error is re-raised unchanged once retries are exhausted or the
    error is not worth retrying.
    """
    retry_types = set(retry_on or (RetryableErrorType.NETWORK, RetryableErrorType.TEMPORARY))

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    retryable, error_type = is_retryable_error(e, getattr(e, "stderr", "") or "")
                    if not retryable or error_type not in retry_types:
                        logger.debug(f"{func.__name__}: not retrying {error_type.value} error: {e}")
                        raise
                    if attempt >= max_retries:
                        logger.error(f"{func.__name__} gave up after {attempt + 1} attempts ({error_type.value}): {e}")
                        raise

                    delay = compute_delay(attempt, initial_delay, max_delay, exponential_base, jitter)
                    logger.warning(
                        f"{func.__name__} attempt {attempt + 1}/{max_retries + 1} hit a {error_type.value} error, "
                        f"retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    attempt += 1
                    continue

                if attempt:
                    logger.info(f"{func.__name__} succeeded on attempt {attempt + 1}")
                return result

        return wrapper

    return decorator
