from __future__ import annotations

import json
import logging
import shutil
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from playwright.sync_api import Page, sync_playwright

from ..errors import BrowserLaunchError


logger = logging.getLogger(__name__)


class BrowserSession:
    """
    One browser context owned by a single run. Pages are opened per operation and never shared.
    """

    def __init__(self, context: Any, *, storage_state_path: Optional[Path] = None) -> None:
        self.context = context
        self.storage_state_path = storage_state_path

    def new_page(self) -> Page:
        return self.context.new_page()

    def save_storage_state(self) -> None:
        """
        Best-effort: persist cookies/localStorage so an Apple ID sign-in survives between runs.
        """
        if self.storage_state_path is None:
            return
        try:
            self.storage_state_path.parent.mkdir(parents=True, exist_ok=True)
            self.context.storage_state(path=str(self.storage_state_path))
            backup_storage_state(self.storage_state_path)
        except Exception:
            logger.debug("Failed to save storage_state.", exc_info=True)


def _storage_state_backup_path(state_path: Path) -> Path:
    # e.g. data/apple_storage_state.json -> data/apple_storage_state.json.bak
    return state_path.with_name(state_path.name + ".bak")


def _looks_like_storage_state(path: Path) -> bool:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return False
    return isinstance(data, dict) and ("cookies" in data or "origins" in data)


def quarantine_file(path: Path, *, prefix: str) -> None:
    try:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        path.replace(path.with_name(f"{prefix}.{path.name}.corrupt-{stamp}"))
    except Exception:
        logger.debug("Failed to quarantine file=%s", path, exc_info=True)


def validate_or_restore_storage_state(state_path: Path) -> bool:
    """
    Return True if `state_path` can be used as Playwright storage_state.

    A corrupted file is quarantined and restored from `<file>.bak` when possible.
    """
    if _looks_like_storage_state(state_path):
        return True

    logger.warning("storage_state file is invalid JSON; ignoring and attempting restore from backup: %s", state_path)
    quarantine_file(state_path, prefix="storage_state")

    bak = _storage_state_backup_path(state_path)
    if bak.exists() and _looks_like_storage_state(bak):
        try:
            shutil.copy2(bak, state_path)
            logger.warning("Restored storage_state from backup: %s", bak)
            return True
        except Exception:
            logger.debug("Failed to restore storage_state from backup.", exc_info=True)

    return False


def backup_storage_state(state_path: Path) -> None:
    try:
        if _looks_like_storage_state(state_path):
            shutil.copy2(state_path, _storage_state_backup_path(state_path))
    except Exception:
        logger.debug("Failed to write storage_state backup.", exc_info=True)


def _launch_chromium(p: Any, *, headless: bool, slow_mo: int) -> Any:
    # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
    # Playwright browser cache is missing.
    try:
        return p.chromium.launch(headless=headless, slow_mo=slow_mo)
    except Exception as e:
        msg = str(e)
        if "Executable doesn't exist" not in msg:
            raise

        logger.warning(
            "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
            msg,
        )
        try:
            return p.chromium.launch(headless=headless, slow_mo=slow_mo, channel="chrome")
        except Exception:
            return p.chromium.launch(headless=headless, slow_mo=slow_mo, channel="msedge")


@contextmanager
def browser_session(
    *,
    headless: bool = True,
    slow_mo_ms: int = 0,
    user_agent: str = "",
    storage_state_path: Optional[str] = None,
) -> Iterator[BrowserSession]:
    """
    Start Chromium, yield a BrowserSession, and always close the browser on the way out.

    Failing to start the browser raises BrowserLaunchError; that is fatal for the whole batch.
    """
    state_path = Path(storage_state_path) if storage_state_path else None

    with sync_playwright() as p:
        try:
            browser = _launch_chromium(p, headless=headless, slow_mo=int(slow_mo_ms or 0))
        except Exception as e:
            raise BrowserLaunchError(f"Could not start the browser: {e}") from e

        try:
            ctx_kwargs: dict = {
                "color_scheme": "light",
                "viewport": {"width": 1920, "height": 1080},
            }
            if user_agent:
                ctx_kwargs["user_agent"] = user_agent
            if state_path is not None and state_path.exists() and validate_or_restore_storage_state(state_path):
                ctx_kwargs["storage_state"] = str(state_path)

            try:
                ctx = browser.new_context(**ctx_kwargs)
            except Exception as e:
                if "storage_state" not in ctx_kwargs:
                    raise BrowserLaunchError(f"Could not create a browser context: {e}") from e
                logger.warning(
                    "Failed to create browser context with stored session; falling back to fresh session. (%s)",
                    e,
                )
                quarantine_file(state_path, prefix="storage_state")
                ctx_kwargs.pop("storage_state", None)
                ctx = browser.new_context(**ctx_kwargs)

            try:
                logger.info("Browser started (headless=%s)", headless)
                yield BrowserSession(ctx, storage_state_path=state_path)
            finally:
                ctx.close()
        finally:
            browser.close()
            logger.info("Browser closed")
