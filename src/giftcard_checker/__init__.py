"""Apple gift card balance lookup and redemption through a Playwright-driven browser."""

__version__ = "0.1.0"
