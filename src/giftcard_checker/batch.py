from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

from .models import OutcomeRecord
from .util.masking import mask_code


logger = logging.getLogger(__name__)


def run_batch(
    codes: Sequence[str],
    process: Callable[[str], OutcomeRecord],
    *,
    delay_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
) -> list[OutcomeRecord]:
    """
    Process codes one at a time, in order, pausing between items (not before the first or after the last).

    `process` must return a record for every code (the retry wrapper guarantees that), so the output
    lines up 1:1 with the input.
    """
    results: list[OutcomeRecord] = []
    total = len(codes)

    for idx, code in enumerate(codes):
        logger.info("Processing %d/%d: %s", idx + 1, total, mask_code(code))
        record = process(code)
        results.append(record)
        logger.info("Result %d/%d: %s %s", idx + 1, total, record.status.value, record.message)

        if idx < total - 1 and delay_seconds > 0:
            logger.debug("Waiting %.1fs before next code", delay_seconds)
            sleep(delay_seconds)

    return results
