from __future__ import annotations

from pathlib import Path

import pytest

from giftcard_checker.classify import DEFAULT_PATTERNS
from giftcard_checker.config import load_config
from giftcard_checker.models import StatusCategory


_ENV_KEYS = (
    "CHECKER_REGION",
    "CHECKER_HEADLESS",
    "CHECKER_DELAY_MS",
    "CHECKER_RETRY_ATTEMPTS",
    "CHECKER_RETRY_DELAY_MS",
    "CHECKER_TIMEOUT_MS",
    "CHECKER_SCREENSHOT_ON_ERROR",
    "CHECKER_USER_AGENT",
    "APPLE_ID",
    "APPLE_ID_PASSWORD",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_without_yaml(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.checker.region == "cn"
    assert cfg.checker.headless is True
    assert cfg.checker.delay_between_items_ms == 3000
    assert cfg.checker.retry_attempts == 3
    assert cfg.checker.retry_delay_ms == 5000
    assert cfg.checker.timeout_ms == 30000
    assert cfg.checker.screenshot_on_error is True
    assert cfg.checker.balance_url() == "https://secure.store.apple.com/cn/shop/gift-cards/balance"
    assert cfg.account.has_credentials() is False
    assert cfg.patterns.to_pattern_set() == DEFAULT_PATTERNS


def test_env_vars_feed_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHECKER_REGION", "US")
    monkeypatch.setenv("CHECKER_HEADLESS", "false")
    monkeypatch.setenv("CHECKER_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("APPLE_ID", "me@example.com")
    monkeypatch.setenv("APPLE_ID_PASSWORD", "secret")

    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.checker.region == "us"
    assert cfg.checker.headless is False
    assert cfg.checker.retry_attempts == 5
    assert cfg.account.has_credentials() is True
    assert "secret" not in repr(cfg.account)


def test_non_integer_env_value_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHECKER_DELAY_MS", "soon")
    with pytest.raises(ValueError, match="CHECKER_DELAY_MS"):
        load_config(tmp_path / "missing.yaml")


def test_yaml_overrides_env_and_expands_placeholders(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHECKER_REGION", "cn")
    monkeypatch.setenv("MY_APPLE_ID", "yaml@example.com")
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
checker:
  region: "uk"
  delay_between_items_ms: 0
account:
  apple_id: "${MY_APPLE_ID}"
output:
  dir: "out/results"
""",
    )
    cfg = load_config(cfg_path)
    assert cfg.checker.region == "uk"
    assert cfg.checker.delay_between_items_ms == 0
    # Untouched keys keep their env/default values.
    assert cfg.checker.retry_attempts == 3
    assert cfg.account.apple_id == "yaml@example.com"
    assert cfg.output.dir == "out/results"
    assert cfg.output.debug_dir == "data/debug"


@pytest.mark.parametrize("region", ["c n", "usa!", "1", ""])
def test_invalid_region_rejected(tmp_path: Path, region: str) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", f'checker:\n  region: "{region}"\n')
    with pytest.raises(Exception):
        _ = load_config(cfg_path)


def test_zero_retry_attempts_rejected(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", "checker:\n  retry_attempts: 0\n")
    with pytest.raises(Exception):
        _ = load_config(cfg_path)


def test_balance_url_template_needs_region_placeholder(tmp_path: Path) -> None:
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        'checker:\n  balance_url_template: "https://example.com/balance"\n',
    )
    with pytest.raises(Exception):
        _ = load_config(cfg_path)


def test_custom_balance_url_template(tmp_path: Path) -> None:
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
checker:
  region: "us"
  balance_url_template: "https://www.apple.com/{region}/shop/gift-cards/balance"
""",
    )
    cfg = load_config(cfg_path)
    assert cfg.checker.balance_url() == "https://www.apple.com/us/shop/gift-cards/balance"


def test_pattern_overrides_replace_only_the_given_list(tmp_path: Path) -> None:
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
patterns:
  lookup:
    - pattern: "card is locked"
      status: "invalid"
      message: "Locked"
    - pattern: "used up"
      status: "alreadyRedeemed"
      message: "Used"
""",
    )
    patterns = load_config(cfg_path).patterns.to_pattern_set()
    assert [r.status for r in patterns.lookup] == [StatusCategory.INVALID, StatusCategory.ALREADY_REDEEMED]
    assert patterns.lookup[0].pattern.search("This CARD IS LOCKED")
    assert patterns.redemption == DEFAULT_PATTERNS.redemption


def test_bad_pattern_regex_rejected(tmp_path: Path) -> None:
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
patterns:
  redemption:
    - pattern: "(unclosed"
      status: "invalid"
      message: "x"
""",
    )
    with pytest.raises(Exception):
        _ = load_config(cfg_path)
