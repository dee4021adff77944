from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import Classification, StatusCategory
from .regions import AMOUNT, currency_for_region, region_search_order
from .util.money import normalize_amount


PARSE_FAILED_LOOKUP = "Could not parse the lookup result"
PARSE_FAILED_REDEMPTION = "Could not determine the redemption result"


@dataclass(frozen=True)
class StatusRule:
    pattern: re.Pattern[str]
    status: StatusCategory
    message: str

    @classmethod
    def of(cls, pattern: str, status: StatusCategory, message: str) -> "StatusRule":
        return cls(re.compile(pattern, re.I), status, message)


# Order matters: "already redeemed" copy also tends to contain the generic invalid/error words,
# so it must be tested first.
DEFAULT_LOOKUP_RULES: tuple[StatusRule, ...] = (
    StatusRule.of(r"已.*兑换|already.*redeemed", StatusCategory.ALREADY_REDEEMED, "This gift card has already been redeemed"),
    StatusRule.of(r"过期|expired", StatusCategory.EXPIRED, "This gift card has expired"),
    StatusRule.of(r"无效|invalid|incorrect", StatusCategory.INVALID, "The code is invalid or incorrect"),
    StatusRule.of(r"不存在|not\s+(?:be\s+)?found", StatusCategory.INVALID, "The code is invalid or incorrect"),
    StatusRule.of(r"错误|error", StatusCategory.INVALID, "The code is invalid or incorrect"),
)

DEFAULT_REDEMPTION_RULES: tuple[StatusRule, ...] = (
    StatusRule.of(
        r"already.*used|already.*redeemed|已.*使用|已被兑换|已经兑换",
        StatusCategory.ALREADY_REDEEMED,
        "This code has already been used",
    ),
    StatusRule.of(
        r"success|redeemed|added.*account|credited|成功|已兑换",
        StatusCategory.VALID,
        "Redeemed to the Apple account",
    ),
    StatusRule.of(r"invalid|incorrect|无效", StatusCategory.INVALID, "The code is invalid"),
    StatusRule.of(r"expired|过期", StatusCategory.EXPIRED, "The code has expired"),
    StatusRule.of(r"region|country|地区", StatusCategory.REGION_MISMATCH, "The code is not valid in this region"),
    StatusRule.of(r"error|错误", StatusCategory.INVALID, "An error occurred while redeeming"),
)

# Label-anchored amounts, used after every currency-symbol pattern has missed.
_LABEL_AMOUNT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"余额.*?" + AMOUNT),
    re.compile(r"balance.*?" + AMOUNT, re.I),
)

_HTML_AMOUNT_RE = re.compile(r"([$¥￥£€])\s*" + AMOUNT)


@dataclass(frozen=True)
class PatternSet:
    lookup: tuple[StatusRule, ...] = DEFAULT_LOOKUP_RULES
    redemption: tuple[StatusRule, ...] = DEFAULT_REDEMPTION_RULES


DEFAULT_PATTERNS = PatternSet()


def first_matching_rule(text: str, rules: Iterable[StatusRule]) -> Optional[StatusRule]:
    for rule in rules:
        if rule.pattern.search(text or ""):
            return rule
    return None


def find_amount(text: str, html: str, *, region: str) -> Optional[tuple[str, str]]:
    """
    Return (amount, currency) from page text, falling back to raw markup.

    Order: active region's symbol patterns, other regions' symbol patterns, label patterns
    ("余额 ...", "balance ...") attributed to the active region's currency (skipped for
    regions outside the registry), then markup.
    """
    body = text or ""
    for info in region_search_order(region):
        for pattern in info.amount_patterns:
            m = pattern.search(body)
            if m:
                return normalize_amount(m.group(1)), info.currency

    # Bare labelled numbers carry no symbol; only attribute them when the region's currency is known.
    label_currency = currency_for_region(region)
    if label_currency is not None:
        for pattern in _LABEL_AMOUNT_PATTERNS:
            m = pattern.search(body)
            if m:
                return normalize_amount(m.group(1)), label_currency

    m = _HTML_AMOUNT_RE.search(html or "")
    if m:
        symbol = "¥" if m.group(1) == "￥" else m.group(1)
        return normalize_amount(m.group(2)), symbol

    return None


def classify_balance(
    text: str,
    html: str = "",
    *,
    region: str = "cn",
    patterns: Optional[PatternSet] = None,
) -> Classification:
    rules = (patterns or DEFAULT_PATTERNS).lookup

    rule = first_matching_rule(text, rules)
    if rule is not None:
        return Classification(status=rule.status, message=rule.message)

    found = find_amount(text, html, region=region)
    if found is not None:
        amount, currency = found
        return Classification(
            status=StatusCategory.VALID,
            amount=amount,
            currency=currency,
            message=f"Balance: {currency}{amount}",
        )

    return Classification(status=StatusCategory.UNKNOWN, message=PARSE_FAILED_LOOKUP)


def classify_redemption(
    text: str,
    html: str = "",
    *,
    region: str = "cn",
    patterns: Optional[PatternSet] = None,
) -> Classification:
    rules = (patterns or DEFAULT_PATTERNS).redemption

    rule = first_matching_rule(text, rules)
    if rule is None:
        return Classification(status=StatusCategory.UNKNOWN, message=PARSE_FAILED_REDEMPTION)

    if rule.status is StatusCategory.VALID:
        # The confirmation page usually shows the credited amount; keep it when present.
        found = find_amount(text, "", region=region)
        if found is not None:
            amount, currency = found
            return Classification(
                status=rule.status,
                amount=amount,
                currency=currency,
                message=f"{rule.message}: {currency}{amount}",
            )

    return Classification(status=rule.status, message=rule.message)
