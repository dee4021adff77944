from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional


logger = logging.getLogger(__name__)

# Cap on how many matches we inspect for visibility per selector.
_MAX_VISIBILITY_SCAN = 25


@dataclass(frozen=True)
class ProbeHit:
    selector: str
    handle: Any  # playwright Locator


def _first_visible(loc: Any) -> Optional[Any]:
    try:
        n = min(int(loc.count()), _MAX_VISIBILITY_SCAN)
    except Exception:
        n = 0
    for i in range(n):
        cand = loc.nth(i)
        try:
            if cand.is_visible():
                return cand
        except Exception:
            continue
    return None


def locate(scope: Any, candidates: Iterable[str], *, require_visible: bool = False) -> Optional[ProbeHit]:
    """
    Try each candidate selector in order and return the first that resolves.

    `scope` is a Playwright Page or Frame. Returns None (never raises) when nothing matches so callers
    can apply their own fallback. Selectors that Playwright rejects are skipped.
    """
    for selector in candidates:
        try:
            loc = scope.locator(selector)
            if require_visible:
                handle = _first_visible(loc)
            else:
                handle = loc.first if loc.count() > 0 else None
        except Exception:
            logger.debug("Selector probe failed: %s", selector, exc_info=True)
            continue
        if handle is not None:
            logger.debug("Selector matched: %s", selector)
            return ProbeHit(selector=selector, handle=handle)
    return None


def locate_first_text_input(scope: Any, selector: str) -> Optional[ProbeHit]:
    """Fallback: the first visible text-like input on the page."""
    return locate(scope, (selector,), require_visible=True)
