from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StoreSelectors:
    """
    Apple's store and iTunes pages change without notice; keep every selector guess here.

    Each field is an ordered candidate list: the first selector that resolves wins.
    """

    # Balance lookup page
    balance_code_input: tuple[str, ...] = (
        'input[name="giftCardNumber"]',
        'input[id="giftCardNumber"]',
        'input[placeholder*="code" i]',
        'input[placeholder*="卡"]',
        'input[aria-label*="card" i]',
        'input[type="text"]',
    )
    balance_submit: tuple[str, ...] = (
        'button[type="submit"]',
        'button:has-text("查询")',
        'button:has-text("Check")',
        'button:has-text("余额")',
        ".button-submit",
        "#submit-button",
    )

    # Redemption wizard
    redeem_code_input: tuple[str, ...] = (
        'input[name="code"]',
        'input[id="redemptionCode"]',
        'input[placeholder*="code" i]',
        'input[type="text"]',
    )
    redeem_submit: tuple[str, ...] = (
        'button:has-text("兑换")',
        'button:has-text("Redeem")',
        'button[type="submit"]',
        'input[type="submit"]',
        ".button-redeem",
        "#redeem-button",
    )

    # Generic fallback when no candidate matches.
    any_text_input: str = (
        'input:not([type]), input[type="text"], input[type="search"], input[type="tel"]'
    )

    # Apple ID sign-in
    login_indicators: tuple[str, ...] = (
        'input[name="accountName"]',
        'input[id="account_name_text_field"]',
        'input[type="email"]',
        "#signIn",
        ".sign-in",
    )
    login_email_input: tuple[str, ...] = (
        'input[name="accountName"]',
        'input[id="account_name_text_field"]',
        'input[type="email"]',
    )
    login_password_input: tuple[str, ...] = (
        'input[name="password"]',
        'input[id="password_text_field"]',
        'input[type="password"]',
    )
    two_factor_text_pattern: str = r"two[-\s]?factor|verification\s+code|双重认证|验证码"
