"""
Browser automation for the gateway.

Provides Playwright-based page rendering with:
- One isolated browser session per request (chromium, firefox or webkit)
- Optional stealth fingerprint masking and upstream proxy binding
- Credential-driven auto-login
- Markup, screenshot, PDF or cookie extraction
"""
from .engine import ScrapeEngine, validate_scrape_request
from .models import ScrapeRequest, ScrapeOutcome

__all__ = ["ScrapeEngine", "ScrapeRequest", "ScrapeOutcome", "validate_scrape_request"]
