from .client import AppleIdCredentials, GiftCardPortalClient
from .session import BrowserSession, browser_session

__all__ = [
    "GiftCardPortalClient",
    "AppleIdCredentials",
    "BrowserSession",
    "browser_session",
]
