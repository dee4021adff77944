from __future__ import annotations

from typing import Optional


MASK_PLACEHOLDER = "****-****-****-****"


def mask_code(code: Optional[str]) -> str:
    """
    Partially redact a gift card code for display/logging.

    - "X87L-WQ5G-7FW3-VGCW" -> "X87L-****-****-VGCW"
    - anything shorter than 8 characters -> MASK_PLACEHOLDER

    The placeholder masks to itself, so masking an already-masked value is a no-op.
    """
    if not code or len(code) < 8:
        return MASK_PLACEHOLDER
    return f"{code[:4]}-****-****-{code[-4:]}"


def scrub_code(text: str, code: Optional[str]) -> str:
    """Replace every occurrence of `code` in `text` with its masked form."""
    if not text or not code:
        return text or ""
    return text.replace(code, mask_code(code))
