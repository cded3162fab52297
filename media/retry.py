"""
File-readiness retry helpers.

Uploaded files can appear on disk before their bytes are flushed. Thumbnail
generation therefore waits for a non-empty file (fixed-interval polling) and
wraps the whole attempt in an exponential backoff.
"""

import logging
import os
import time
from typing import Callable, TypeVar

from tenacity import RetryCallState, Retrying, stop_after_attempt, wait_exponential

from core.exceptions import FileNotReadyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Attempt %s failed, retrying in %.2fs: %s",
        retry_state.attempt_number, wait, exc,
    )


def retry(
    fn: Callable[[], T],
    attempts: int = 3,
    initial_delay: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` up to ``attempts`` times, doubling the delay after each failure.

    The last exception is re-raised unchanged.
    """
    retryer = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=initial_delay, exp_base=2, min=initial_delay),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return retryer(fn)


def wait_for_file(
    path: str,
    max_attempts: int = 10,
    delay: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Poll until ``path`` exists and is non-empty. Raises FileNotReadyError."""
    for attempt in range(1, max_attempts + 1):
        if os.path.isfile(path) and os.path.getsize(path) > 0:
            return path
        if attempt < max_attempts:
            sleep(delay)

    raise FileNotReadyError(path, max_attempts)
