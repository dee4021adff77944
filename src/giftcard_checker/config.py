from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .classify import DEFAULT_PATTERNS, PatternSet, StatusRule
from .models import StatusCategory


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
_REGION_SLUG_RE = re.compile(r"^[a-z]{2}(?:-[a-z]{2})?$")

DEFAULT_BALANCE_URL_TEMPLATE = "https://secure.store.apple.com/{region}/shop/gift-cards/balance"
DEFAULT_REDEEM_URL = "https://buy.itunes.apple.com/WebObjects/MZFinance.woa/wa/freeProductCodeWizard"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only defaults so most users only need `.env`; YAML is an optional override on top.
    """
    return {
        "checker": {
            "region": os.getenv("CHECKER_REGION", "cn"),
            "headless": _env_bool("CHECKER_HEADLESS", default=True),
            "delay_between_items_ms": _env_int("CHECKER_DELAY_MS", 3000),
            "retry_attempts": _env_int("CHECKER_RETRY_ATTEMPTS", 3),
            "retry_delay_ms": _env_int("CHECKER_RETRY_DELAY_MS", 5000),
            "timeout_ms": _env_int("CHECKER_TIMEOUT_MS", 30000),
            "screenshot_on_error": _env_bool("CHECKER_SCREENSHOT_ON_ERROR", default=True),
            "user_agent": os.getenv("CHECKER_USER_AGENT", ""),
        },
        "account": {
            "apple_id": os.getenv("APPLE_ID", ""),
            "password": os.getenv("APPLE_ID_PASSWORD", ""),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/checker.log"),
        },
    }


class CheckerConfig(BaseModel):
    region: str = "cn"
    headless: bool = True
    delay_between_items_ms: int = Field(default=3000, ge=0)
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=5000, ge=0)
    # Per-step timeout (navigation, element waits).
    timeout_ms: int = Field(default=30000, gt=0)
    screenshot_on_error: bool = True

    # Settle windows
    page_ready_ms: int = Field(default=2000, ge=0)
    settle_ms: int = Field(default=3000, ge=0)
    redeem_settle_ms: int = Field(default=5000, ge=0)
    login_settle_ms: int = Field(default=5000, ge=0)
    typing_delay_ms: int = Field(default=100, ge=0)
    two_factor_timeout_ms: int = Field(default=180_000, ge=0)

    user_agent: str = ""
    balance_url_template: str = DEFAULT_BALANCE_URL_TEMPLATE
    redeem_url: str = DEFAULT_REDEEM_URL

    @field_validator("region")
    @classmethod
    def _normalize_region(cls, value: str) -> str:
        region = (value or "").strip().lower()
        if not _REGION_SLUG_RE.match(region):
            raise ValueError("checker.region must be a store region slug like 'cn', 'us' or 'uk'")
        return region

    def balance_url(self) -> str:
        return self.balance_url_template.format(region=self.region)


class AccountConfig(BaseModel):
    apple_id: str = ""
    password: str = Field(default="", repr=False)

    def has_credentials(self) -> bool:
        return bool(self.apple_id and self.password)


class OutputConfig(BaseModel):
    dir: str = "data/results"
    debug_dir: str = "data/debug"
    storage_state_path: str = "data/apple_storage_state.json"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/checker.log"


class StatusRuleConfig(BaseModel):
    pattern: str
    status: StatusCategory
    message: str

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regex {value!r}: {e}") from None
        return value

    def to_rule(self) -> StatusRule:
        return StatusRule.of(self.pattern, self.status, self.message)


class PatternsConfig(BaseModel):
    """
    Optional overrides for the phrase lists. An empty list keeps the built-in rules.
    """

    lookup: list[StatusRuleConfig] = Field(default_factory=list)
    redemption: list[StatusRuleConfig] = Field(default_factory=list)

    def to_pattern_set(self) -> PatternSet:
        return PatternSet(
            lookup=tuple(r.to_rule() for r in self.lookup) or DEFAULT_PATTERNS.lookup,
            redemption=tuple(r.to_rule() for r in self.redemption) or DEFAULT_PATTERNS.redemption,
        )


class AppConfig(BaseModel):
    checker: CheckerConfig = CheckerConfig()
    account: AccountConfig = AccountConfig()
    output: OutputConfig = OutputConfig()
    logging: LoggingConfig = LoggingConfig()
    patterns: PatternsConfig = PatternsConfig()

    @model_validator(mode="after")
    def _check_urls(self) -> "AppConfig":
        if "{region}" not in self.checker.balance_url_template:
            raise ValueError("checker.balance_url_template must contain a '{region}' placeholder")
        return self


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
