"""
Retry helper with exponential backoff for flaky remote operations.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
BACKOFF_FACTOR = 1.5

RetryObserver = Callable[[BaseException, int, int], None]


def with_retry(operation: Callable[[], T], max_retries: int = DEFAULT_MAX_RETRIES,
               base_delay: float = DEFAULT_BASE_DELAY,
               on_retry: Optional[RetryObserver] = None,
               sleep: Callable[[float], None] = time.sleep,
               backoff_factor: float = BACKOFF_FACTOR) -> T:
    """
    Run `operation` up to max_retries + 1 times.

    The delay before retry n (1-based) is base_delay * backoff_factor ** (n - 1).
    No delay follows the final attempt; its exception is re-raised unchanged.
    `on_retry(error, attempt, max_attempts)` is called once per retry, so never
    after the final attempt.
    """
    max_attempts = max_retries + 1
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as error:
            if attempt == max_attempts:
                logger.debug(f"Giving up after {max_attempts} attempts: {error}")
                raise

            if on_retry is not None:
                on_retry(error, attempt, max_attempts)
            else:
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {error}")

            delay = base_delay * backoff_factor ** (attempt - 1)
            logger.debug(f"Retrying in {delay:.2f}s")
            sleep(delay)

    # max_retries < 0 leaves nothing to run
    raise ValueError(f"max_retries must be non-negative, got {max_retries}")
