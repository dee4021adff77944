import logging
import os
import re
from pathlib import Path
from typing import Optional

from .util.masking import mask_code


# Apple gift card codes: 16 characters starting with X, optionally grouped by dashes.
_APPLE_CODE_RE = re.compile(r"\bX[A-Z0-9]{3}-?[A-Z0-9]{4}-?[A-Z0-9]{4}-?[A-Z0-9]{4}\b")


class CodeRedactionFilter(logging.Filter):
    """Mask anything shaped like an Apple gift card code before it reaches a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            return True
        redacted = _APPLE_CODE_RE.sub(lambda m: mask_code(m.group(0)), message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO", file_path: Optional[str] = None) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    redaction = CodeRedactionFilter()
    for handler in handlers:
        handler.addFilter(redaction)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=True,  # the CLI reconfigures once the config file is loaded
    )

    # Playwright logs raw protocol traffic (including typed text) at DEBUG.
    for noisy in ("playwright", "asyncio"):
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
