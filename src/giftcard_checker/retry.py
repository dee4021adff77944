from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(
    operation: Callable[[int], T],
    *,
    max_attempts: int,
    delay_seconds: float,
    on_exhausted: Callable[[Optional[Exception]], T],
    sleep: Callable[[float], None] = time.sleep,
    label: str = "operation",
) -> T:
    """
    Run `operation(attempt)` up to `max_attempts` times, sleeping `delay_seconds` between failures.

    Never raises the operation's failure: once attempts are exhausted (or an error marked
    `retryable = False` is hit) the last error is handed to `on_exhausted` and its result returned.
    """
    attempts = max(1, int(max_attempts))
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return operation(attempt)
        except Exception as e:
            last_error = e
            logger.warning("%s failed (attempt %d/%d): %s", label, attempt, attempts, e)

            if not getattr(e, "retryable", True):
                logger.warning("%s: not retrying (%s)", label, type(e).__name__)
                break
            if attempt < attempts:
                logger.info("%s: retrying in %.1fs", label, delay_seconds)
                sleep(delay_seconds)

    return on_exhausted(last_error)
