"""
BrowserSession - one Playwright browser, context and page for one request.

A session is created at the start of an automation request and closed when it
finishes, on every exit path. Nothing is pooled or shared between requests.
"""
import asyncio
from typing import Any, Dict

from ..destination import is_blocked_url
from ..errors import TeardownError
from ..logging_config import get_logger
from .models import BrowserType, SessionState
from .stealth import STEALTH_INIT_SCRIPT, launch_args

logger = get_logger("uniproxy.browser.session")


class CancellationToken:
    """Set once by session teardown; waiters race against it."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        self._event.set()

    async def wait(self):
        await self._event.wait()


async def cancellable_sleep(delay_ms: int, token: CancellationToken) -> bool:
    """Sleep for ``delay_ms`` unless the token fires first.

    Returns True if the full delay elapsed, False if it was cancelled.
    """
    if token.cancelled:
        return False

    sleeper = asyncio.ensure_future(asyncio.sleep(delay_ms / 1000))
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
    return sleeper in done and not token.cancelled


async def guard_route(route: Any):
    """Abort a browser request to a blocked host.

    Playwright only routes the first request of a redirect chain; the engine
    checks where the page finally landed.
    """
    if is_blocked_url(route.request.url):
        logger.warning("Blocked browser request to a private or internal host")
        await route.abort("blockedbyclient")
        return
    await route.continue_()


class BrowserSession:
    """Owns the browser engine, isolation context and page of one request."""

    def __init__(self, browser_type: BrowserType):
        self.browser_type = browser_type
        self.state = SessionState.IDLE
        self.token = CancellationToken()
        self.browser = None
        self.context = None
        self.page = None

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    # ==================== Session Lifecycle ====================

    async def launch(self, playwright: Any, stealth: bool):
        """Start the headless engine."""
        launcher = {
            BrowserType.CHROMIUM: playwright.chromium,
            BrowserType.FIREFOX: playwright.firefox,
            BrowserType.WEBKIT: playwright.webkit,
        }[self.browser_type]

        self.browser = await launcher.launch(headless=True, args=launch_args(stealth))
        self.state = SessionState.LAUNCHED
        logger.debug(f"Launched {self.browser_type.value} (stealth={stealth})")

    async def open_context(self, context_options: Dict[str, Any], stealth: bool):
        """Create the isolated context and its single page."""
        self.context = await self.browser.new_context(**context_options)
        await self.context.route("**/*", guard_route)
        if stealth:
            await self.context.add_init_script(script=STEALTH_INIT_SCRIPT)

        self.page = await self.context.new_page()
        # A page closed underneath us must abandon any pending settle delay
        self.page.on("close", lambda _page: self.token.cancel())
        self.state = SessionState.CONTEXT_READY

    async def close(self):
        """Close page, context and browser in that order. Never raises."""
        self.token.cancel()

        for label in ("page", "context", "browser"):
            handle = getattr(self, label)
            if handle is None:
                continue
            try:
                await handle.close()
            except Exception as e:
                error = TeardownError(f"Failed to close {label}: {e}")
                logger.warning(f"{error.kind}: {error.message}")
            finally:
                setattr(self, label, None)

        self.state = SessionState.CLOSED
        logger.debug(f"Closed {self.browser_type.value} session")

    def __repr__(self) -> str:
        return f"BrowserSession({self.browser_type.value}, state={self.state.value})"
