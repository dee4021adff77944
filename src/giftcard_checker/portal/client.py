from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..batch import run_batch
from ..classify import PatternSet, classify_balance, classify_redemption
from ..config import CheckerConfig
from ..errors import (
    AuthenticationFailedError,
    AuthenticationRequiredError,
    CaptureError,
    CheckerError,
    ElementNotFoundError,
    NavigationError,
    NavigationTimeoutError,
    StepError,
    SubmissionFailureError,
)
from ..models import OutcomeRecord, Operation, RawPageCapture
from ..retry import with_retry
from ..util.masking import mask_code, scrub_code
from .probe import ProbeHit, locate, locate_first_text_input
from .selectors import StoreSelectors
from .session import BrowserSession


logger = logging.getLogger(__name__)

# Upper bound for the best-effort "network idle" wait after DOMContentLoaded.
_NETWORK_IDLE_CAP_MS = 10_000


@dataclass(frozen=True)
class AppleIdCredentials:
    apple_id: str
    password: str


class GiftCardPortalClient:
    """
    Apple gift card balance lookup and redemption through the public store pages.

    Every operation takes the BrowserSession explicitly; the client itself holds no browser state.
    """

    def __init__(
        self,
        *,
        config: CheckerConfig,
        selectors: Optional[StoreSelectors] = None,
        patterns: Optional[PatternSet] = None,
        debug_dir: str = "data/debug",
        step_debug: bool = False,
        manual_2fa: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.selectors = selectors or StoreSelectors()
        self.patterns = patterns
        self.debug_dir = debug_dir
        self.manual_2fa = manual_2fa
        self._sleep = sleep
        self._clock = clock

        self._step_debug_enabled = bool(step_debug)
        self._step_counter = 0

    # ------------------------------------------------------------------
    # Batch entry points

    def check_batch(self, session: BrowserSession, codes: Sequence[str]) -> list[OutcomeRecord]:
        logger.info("Checking %d gift card(s) (region=%s)", len(codes), self.config.region)
        return run_batch(
            codes,
            lambda code: self.lookup(session, code),
            delay_seconds=self.config.delay_between_items_ms / 1000,
            sleep=self._sleep,
        )

    def redeem_batch(
        self, session: BrowserSession, codes: Sequence[str], creds: AppleIdCredentials
    ) -> list[OutcomeRecord]:
        """
        Redeem codes in order. Once Apple ID sign-in fails, the remaining codes are not attempted:
        each gets a transientError record carrying the sign-in error, so the password is sent at most once.
        """
        logger.info("Redeeming %d gift card(s)", len(codes))
        auth_errors: list[Exception] = []

        def _exhausted(code: str, err: Optional[Exception]) -> OutcomeRecord:
            if isinstance(err, (AuthenticationFailedError, AuthenticationRequiredError)):
                auth_errors.append(err)
            return OutcomeRecord.transient_error(code, err, operation=Operation.REDEEM)

        def _process(code: str) -> OutcomeRecord:
            if auth_errors:
                logger.warning("Skipping %s: Apple ID sign-in already failed in this run", mask_code(code))
                return OutcomeRecord.transient_error(code, auth_errors[0], operation=Operation.REDEEM)
            return self._redeem(session, code, creds, on_exhausted=lambda err: _exhausted(code, err))

        try:
            return run_batch(
                codes,
                _process,
                delay_seconds=self.config.delay_between_items_ms / 1000,
                sleep=self._sleep,
            )
        finally:
            session.save_storage_state()

    # ------------------------------------------------------------------
    # Single-code operations (retry-wrapped, never raise)

    def lookup(self, session: BrowserSession, code: str) -> OutcomeRecord:
        return with_retry(
            lambda attempt: self._attempt(session, code, attempt, operation=Operation.LOOKUP),
            max_attempts=self.config.retry_attempts,
            delay_seconds=self.config.retry_delay_ms / 1000,
            on_exhausted=lambda err: OutcomeRecord.transient_error(code, err, operation=Operation.LOOKUP),
            sleep=self._sleep,
            label=f"lookup {mask_code(code)}",
        )

    def redeem(self, session: BrowserSession, code: str, creds: AppleIdCredentials) -> OutcomeRecord:
        return self._redeem(
            session,
            code,
            creds,
            on_exhausted=lambda err: OutcomeRecord.transient_error(code, err, operation=Operation.REDEEM),
        )

    def _redeem(
        self,
        session: BrowserSession,
        code: str,
        creds: AppleIdCredentials,
        *,
        on_exhausted: Callable[[Optional[Exception]], OutcomeRecord],
    ) -> OutcomeRecord:
        return with_retry(
            lambda attempt: self._attempt(session, code, attempt, operation=Operation.REDEEM, creds=creds),
            max_attempts=self.config.retry_attempts,
            delay_seconds=self.config.retry_delay_ms / 1000,
            on_exhausted=on_exhausted,
            sleep=self._sleep,
            label=f"redeem {mask_code(code)}",
        )

    def _attempt(
        self,
        session: BrowserSession,
        code: str,
        attempt: int,
        *,
        operation: Operation,
        creds: Optional[AppleIdCredentials] = None,
    ) -> OutcomeRecord:
        page = session.new_page()
        try:
            page.set_default_timeout(self.config.timeout_ms)
            page.set_default_navigation_timeout(self.config.timeout_ms)
            if operation is Operation.REDEEM:
                if creds is None:
                    raise AuthenticationRequiredError("Redemption requires Apple ID credentials")
                return self._redeem_once(page, code, creds)
            return self._lookup_once(page, code)
        except Exception as e:
            if self.config.screenshot_on_error:
                stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
                self._save_debug(page, code=code, name_prefix=f"{operation.value}_error_{stamp}_a{attempt}")
            # Playwright messages can echo typed text; keep the raw code out of logs and records.
            if code and code in str(e):
                scrubbed = CheckerError(scrub_code(str(e), code))
                scrubbed.retryable = getattr(e, "retryable", True)
                raise scrubbed from None
            raise
        finally:
            try:
                page.close()
            except Exception:
                logger.debug("Failed to close page.", exc_info=True)

    def _lookup_once(self, page: Page, code: str) -> OutcomeRecord:
        capture = self._capture(
            page,
            code,
            url=self.config.balance_url(),
            input_candidates=self.selectors.balance_code_input,
            submit_candidates=self.selectors.balance_submit,
            settle_ms=self.config.settle_ms,
            label="lookup",
        )
        classification = classify_balance(
            capture.text, capture.html, region=self.config.region, patterns=self.patterns
        )
        return OutcomeRecord.from_classification(code, classification, operation=Operation.LOOKUP)

    def _redeem_once(self, page: Page, code: str, creds: AppleIdCredentials) -> OutcomeRecord:
        self._navigate(page, self.config.redeem_url)
        self._step(page, name="redeem_page_loaded")

        if self._looks_like_login_required(page):
            logger.info("Apple ID sign-in required")
            self._login(page, creds)

        capture = self._capture(
            page,
            code,
            url=None,
            input_candidates=self.selectors.redeem_code_input,
            submit_candidates=self.selectors.redeem_submit,
            settle_ms=self.config.redeem_settle_ms,
            label="redeem",
        )
        classification = classify_redemption(
            capture.text, capture.html, region=self.config.region, patterns=self.patterns
        )
        return OutcomeRecord.from_classification(code, classification, operation=Operation.REDEEM)

    # ------------------------------------------------------------------
    # Action sequencer

    def _capture(
        self,
        page: Page,
        code: str,
        *,
        url: Optional[str],
        input_candidates: Iterable[str],
        submit_candidates: Iterable[str],
        settle_ms: int,
        label: str,
    ) -> RawPageCapture:
        """
        navigate -> find input -> type code -> submit -> settle -> read text + markup.

        All-or-nothing: any step that cannot complete raises a StepError naming the step.
        """
        if url:
            self._navigate(page, url)
            self._step(page, name=f"{label}_page_loaded")

        hit = locate(page, input_candidates, require_visible=True)
        if hit is None:
            hit = locate_first_text_input(page, self.selectors.any_text_input)
            if hit is not None:
                logger.info("No known code input matched; using the first text input on the page")
        if hit is None:
            raise ElementNotFoundError("locate_input", "could not find the gift card code input")
        logger.info("Found code input: %s", hit.selector)

        try:
            self._type_into(page, hit, code)
        except Exception as e:
            raise StepError("type_code", "could not type into the code input", cause=e) from e
        self._step(page, name=f"{label}_code_typed")

        self._submit(page, submit_candidates)
        page.wait_for_timeout(settle_ms)
        self._step(page, name=f"{label}_result")

        try:
            text = page.inner_text("body")
            html = page.content()
        except Exception as e:
            raise CaptureError("capture", "could not read the result page", cause=e) from e

        return RawPageCapture(text=text, html=html, url=getattr(page, "url", "") or "")

    def _navigate(self, page: Page, url: str) -> None:
        logger.info("Opening %s", url)
        try:
            page.goto(url, wait_until="domcontentloaded", timeout=self.config.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError("navigate", f"timed out loading {url}", cause=e) from e
        except Exception as e:
            raise NavigationError("navigate", f"could not load {url}: {e}", cause=e) from e

        # Some pages never reach network idle (analytics beacons); fall back to the fixed window.
        try:
            page.wait_for_load_state("networkidle", timeout=min(self.config.timeout_ms, _NETWORK_IDLE_CAP_MS))
        except Exception:
            logger.debug("Network idle not reached; continuing.")
        page.wait_for_timeout(self.config.page_ready_ms)

    def _submit(self, page: Page, candidates: Iterable[str]) -> None:
        hit = locate(page, candidates, require_visible=True)
        if hit is not None:
            try:
                hit.handle.click()
                logger.info("Clicked submit control: %s", hit.selector)
                return
            except Exception:
                logger.warning("Clicking %s failed; falling back to Enter.", hit.selector, exc_info=True)
        else:
            logger.info("No submit control found; pressing Enter")

        try:
            page.keyboard.press("Enter")
        except Exception as e:
            raise SubmissionFailureError("submit", "neither a submit click nor Enter worked", cause=e) from e

    # ------------------------------------------------------------------
    # Apple ID sign-in

    def _find_in_frames(self, page: Page, candidates: Sequence[str]) -> Optional[ProbeHit]:
        """
        Apple's sign-in widget is usually rendered inside an iframe; probe every frame.
        """
        frames = []
        try:
            frames = list(page.frames)
        except Exception:
            pass
        for scope in [page, *frames]:
            hit = locate(scope, candidates, require_visible=True)
            if hit is not None:
                return hit
        return None

    def _looks_like_login_required(self, page: Page) -> bool:
        return self._find_in_frames(page, self.selectors.login_indicators) is not None

    def _looks_like_two_factor(self, page: Page) -> bool:
        pattern = re.compile(self.selectors.two_factor_text_pattern, re.I)
        scopes: list[Any] = [page]
        try:
            scopes.extend(page.frames)
        except Exception:
            pass
        for scope in scopes:
            try:
                if pattern.search(scope.inner_text("body") or ""):
                    return True
            except Exception:
                continue
        return False

    def _type_into(self, page: Page, hit: ProbeHit, value: str) -> None:
        hit.handle.click()
        page.wait_for_timeout(500)
        hit.handle.press_sequentially(value, delay=self.config.typing_delay_ms)

    def _login(self, page: Page, creds: AppleIdCredentials) -> None:
        email = self._find_in_frames(page, self.selectors.login_email_input)
        if email is None:
            raise ElementNotFoundError("login_email", "could not find the Apple ID field")
        self._type_into(page, email, creds.apple_id)
        page.keyboard.press("Enter")
        page.wait_for_timeout(2000)

        password = self._find_in_frames(page, self.selectors.login_password_input)
        if password is None:
            raise ElementNotFoundError("login_password", "could not find the password field")
        self._type_into(page, password, creds.password)
        page.keyboard.press("Enter")
        self._step(page, name="login_submitted")

        page.wait_for_timeout(self.config.login_settle_ms)

        if self._looks_like_two_factor(page):
            self._wait_for_two_factor(page)

        if self._find_in_frames(page, self.selectors.login_password_input) is not None:
            raise AuthenticationFailedError("Apple ID sign-in did not complete (password form still shown)")

        logger.info("Apple ID sign-in complete")
        self._step(page, name="login_complete")

    def _wait_for_two_factor(self, page: Page) -> None:
        if not self.manual_2fa:
            raise AuthenticationRequiredError(
                "Apple ID two-factor authentication is required. "
                "Re-run with --headful --manual-2fa and approve the sign-in in the browser."
            )

        timeout_ms = self.config.two_factor_timeout_ms
        logger.info("Two-factor prompt detected: complete it in the browser (waiting up to %.0fs).", timeout_ms / 1000)
        deadline = self._clock() + (timeout_ms / 1000)
        while self._clock() < deadline:
            if not self._looks_like_two_factor(page):
                return
            page.wait_for_timeout(1000)

        raise AuthenticationRequiredError("Timed out waiting for two-factor authentication.")

    # ------------------------------------------------------------------
    # Debug artifacts

    def _save_debug(self, page: Page, *, code: str, name_prefix: str) -> None:
        """
        Best-effort screenshot + HTML + text snapshot. Inputs are masked in the screenshot and the raw
        code is scrubbed from the saved text.
        """
        try:
            out_dir = Path(self.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            page.screenshot(
                path=str(out_dir / f"{name_prefix}.png"),
                full_page=True,
                mask=[page.locator("input")],
            )
            (out_dir / f"{name_prefix}.html").write_text(scrub_code(page.content(), code), encoding="utf-8")
            try:
                (out_dir / f"{name_prefix}.txt").write_text(
                    scrub_code(page.inner_text("body"), code), encoding="utf-8"
                )
            except Exception:
                pass
            logger.info("Saved debug snapshot: %s", out_dir / name_prefix)
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)

    def _step(self, page: Page, *, name: str) -> None:
        """
        If enabled, log step-by-step progress and save a screenshot per step.
        """
        if not self._step_debug_enabled:
            return

        self._step_counter += 1
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name).strip("_")[:60] or "step"
        prefix = f"step_{self._step_counter:02d}_{safe}"

        try:
            logger.info("Step %02d %s (url=%s)", self._step_counter, name, getattr(page, "url", ""))
        except Exception:
            pass

        try:
            out_dir = Path(self.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(out_dir / f"{prefix}.png"), full_page=True, mask=[page.locator("input")])
        except Exception:
            logger.debug("Failed to save step screenshot (name=%s).", name, exc_info=True)
