from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Optional


_AMOUNT_RE = re.compile(r"^\d[\d,]*(?:\.\d+)?$")


def normalize_amount(value: str) -> str:
    """
    Normalize a captured amount string:
    - "88.00" -> "88.00"
    - "1,234.50" -> "1234.50"
    - " 100 " -> "100"

    The decimal part is kept as captured (no rounding/padding).
    """
    if value is None:
        raise ValueError("normalize_amount: value is None")
    s = value.strip()
    if not _AMOUNT_RE.match(s):
        raise ValueError(f"normalize_amount: not an amount: {value!r}")
    return s.replace(",", "")


def amount_to_decimal(value: Optional[str]) -> Optional[Decimal]:
    if not value:
        return None
    try:
        return Decimal(normalize_amount(value))
    except (ValueError, InvalidOperation):
        return None
