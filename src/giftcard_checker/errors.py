from __future__ import annotations

from typing import Optional


class CheckerError(RuntimeError):
    """Base class for failures raised while driving the retailer site."""

    retryable: bool = True


class StepError(CheckerError):
    """
    A single sequencer step could not complete.

    Carries the step name and the underlying cause so the terminal record can say what broke.
    """

    def __init__(self, step: str, message: str = "", *, cause: Optional[BaseException] = None) -> None:
        self.step = step
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "failed")
        super().__init__(f"{step}: {detail}")


class NavigationError(StepError):
    pass


class NavigationTimeoutError(NavigationError):
    pass


class ElementNotFoundError(StepError):
    """No candidate locator (nor the generic fallback) resolved to an element."""


class SubmissionFailureError(StepError):
    """Neither a submit control click nor the Enter-key fallback could be performed."""


class CaptureError(StepError):
    pass


class AuthenticationRequiredError(CheckerError):
    """The site asked for an interactive step (e.g. two-factor) that this run cannot complete."""

    retryable = False


class AuthenticationFailedError(CheckerError):
    """
    Credentials were submitted but the sign-in form is still shown.

    Not retried: repeating a rejected password risks locking the account.
    """

    retryable = False


class BrowserLaunchError(RuntimeError):
    """The browser session could not be started at all. Fatal to the whole run."""
