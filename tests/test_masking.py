from __future__ import annotations

import pytest

from giftcard_checker.models import OutcomeRecord, StatusCategory
from giftcard_checker.util.masking import MASK_PLACEHOLDER, mask_code, scrub_code


def test_mask_reveals_first_and_last_four() -> None:
    assert mask_code("X87L-WQ5G-7FW3-VGCW") == "X87L-****-****-VGCW"
    assert mask_code("ABCDEFGHIJKLMNOP") == "ABCD-****-****-MNOP"


@pytest.mark.parametrize("code", ["", None, "ABC", "1234567"])
def test_mask_short_input_returns_placeholder(code) -> None:
    assert mask_code(code) == MASK_PLACEHOLDER


@pytest.mark.parametrize("code", ["X87L-WQ5G-7FW3-VGCW", "ABCDEFGH", "short", ""])
def test_mask_is_idempotent(code: str) -> None:
    once = mask_code(code)
    assert mask_code(once) == once


def test_scrub_code_replaces_every_occurrence() -> None:
    text = "typed ABCD1234EFGH5678 then ABCD1234EFGH5678 again"
    out = scrub_code(text, "ABCD1234EFGH5678")
    assert "ABCD1234EFGH5678" not in out
    assert out.count("ABCD-****-****-5678") == 2


def test_outcome_record_never_holds_raw_code() -> None:
    r = OutcomeRecord(code="X87L-WQ5G-7FW3-VGCW", status=StatusCategory.UNKNOWN)
    assert r.code == "X87L-****-****-VGCW"
    assert "WQ5G" not in r.model_dump_json()


def test_outcome_record_is_frozen() -> None:
    r = OutcomeRecord(code="X87L-WQ5G-7FW3-VGCW", status=StatusCategory.VALID, amount="10.00", currency="$")
    with pytest.raises(Exception):
        r.status = StatusCategory.INVALID  # type: ignore[misc]
