from __future__ import annotations

import zipfile
from pathlib import Path

from giftcard_checker.util.debug_bundle import create_debug_bundle


def test_create_debug_bundle_includes_debug_and_log(tmp_path: Path) -> None:
    debug_dir = tmp_path / "debug"
    debug_dir.mkdir()
    (debug_dir / "lookup_error_20260101T000000Z_a1.png").write_bytes(b"png")
    (debug_dir / "lookup_error_20260101T000000Z_a1.html").write_text("<html/>", encoding="utf-8")

    log_file = tmp_path / "checker.log"
    log_file.write_text("hello", encoding="utf-8")

    out = create_debug_bundle(
        debug_dir=str(debug_dir),
        log_file=str(log_file),
        out_dir=str(tmp_path),
        region="CN",
    )
    assert out.exists()
    assert out.suffix == ".zip"
    assert out.name.startswith("debug_bundle_cn_")

    with zipfile.ZipFile(out, "r") as z:
        names = set(z.namelist())
        assert "checker.log" in names
        assert "debug/lookup_error_20260101T000000Z_a1.png" in names
        assert "debug/lookup_error_20260101T000000Z_a1.html" in names


def test_create_debug_bundle_tolerates_missing_inputs(tmp_path: Path) -> None:
    out = create_debug_bundle(
        debug_dir=str(tmp_path / "nope"),
        log_file=str(tmp_path / "nope.log"),
        out_dir=str(tmp_path / "bundles"),
    )
    assert out.exists()
    assert out.name.startswith("debug_bundle_")
    with zipfile.ZipFile(out, "r") as z:
        assert z.namelist() == []
