from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional


# Amounts as printed by the store: "88", "88.00", "1,234.50".
AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"


@dataclass(frozen=True)
class RegionInfo:
    slug: str
    display_name: str
    currency: str
    # Ordered currency-amount patterns; group 1 is the amount.
    amount_patterns: tuple[re.Pattern[str], ...]


# Store regions with known balance-page formats.
# Unknown slugs are still allowed; they only lose the region-first amount ordering.
KNOWN_REGIONS: Mapping[str, RegionInfo] = {
    "cn": RegionInfo(
        slug="cn",
        display_name="China mainland",
        currency="¥",
        amount_patterns=(
            re.compile(r"[¥￥]\s*" + AMOUNT),
            re.compile(AMOUNT + r"\s*元"),
            re.compile(r"(?:RMB|CNY)\s*" + AMOUNT, re.I),
        ),
    ),
    "us": RegionInfo(
        slug="us",
        display_name="United States",
        currency="$",
        amount_patterns=(
            re.compile(r"\$\s*" + AMOUNT),
            re.compile(r"USD\s*" + AMOUNT, re.I),
            re.compile(AMOUNT + r"\s*USD", re.I),
        ),
    ),
    "uk": RegionInfo(
        slug="uk",
        display_name="United Kingdom",
        currency="£",
        amount_patterns=(
            re.compile(r"£\s*" + AMOUNT),
            re.compile(r"GBP\s*" + AMOUNT, re.I),
            re.compile(AMOUNT + r"\s*GBP", re.I),
        ),
    ),
}

DEFAULT_REGION = "cn"


def is_known_region(region: str) -> bool:
    return (region or "").strip().lower() in KNOWN_REGIONS


def region_search_order(region: str) -> list[RegionInfo]:
    """The active region first, then every other known region in registry order."""
    slug = (region or "").strip().lower()
    ordered: list[RegionInfo] = []
    if slug in KNOWN_REGIONS:
        ordered.append(KNOWN_REGIONS[slug])
    ordered.extend(info for key, info in KNOWN_REGIONS.items() if key != slug)
    return ordered


def currency_for_region(region: str) -> Optional[str]:
    """The region's currency symbol, or None for slugs outside the registry."""
    info = KNOWN_REGIONS.get((region or "").strip().lower())
    return info.currency if info is not None else None
