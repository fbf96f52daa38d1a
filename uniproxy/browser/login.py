"""
Credential-driven login performed before the target page is scraped.

Only navigation to the login page is fatal. Once the login form is loaded,
any failure is logged as LoginFailed and the scrape continues, since the
target may still be partially accessible.
"""
import asyncio
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..credentials import LoginCredential
from ..errors import LoginFailed, Timeout, UpstreamUnreachable
from ..logging_config import get_logger
from .session import CancellationToken, cancellable_sleep

logger = get_logger("uniproxy.browser.login")

FIELD_TIMEOUT_MS = 10000
COMPLETION_TIMEOUT_MS = 10000


async def _first_success(*coros):
    """Run the awaitables concurrently; return on the first one that succeeds.

    Raises the first error only if every awaitable fails.
    """
    pending = {asyncio.ensure_future(coro) for coro in coros}
    first_error = None
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task.exception() is None:
                    return task.result()
                if first_error is None:
                    first_error = task.exception()
        raise first_error
    finally:
        for task in pending:
            task.cancel()


async def _wait_for_completion(page: Any, credential: LoginCredential, navigation):
    await _first_success(
        page.wait_for_selector(credential.success_indicator, timeout=COMPLETION_TIMEOUT_MS),
        navigation,
    )


async def perform_login(
    page: Any,
    credential: LoginCredential,
    timeout_ms: int,
    token: CancellationToken,
) -> bool:
    """Log in with ``credential``. Returns True on success, False on a non-fatal failure."""
    logger.info(f"Performing automatic login for {credential.login_url}")

    try:
        await page.goto(credential.login_url, wait_until="networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise Timeout(f"Login page did not load within {timeout_ms}ms") from e
    except PlaywrightError as e:
        raise UpstreamUnreachable(f"Login failed: {e.message}") from e

    try:
        await page.wait_for_selector(credential.username_selector, timeout=FIELD_TIMEOUT_MS)
        await page.wait_for_selector(credential.password_selector, timeout=FIELD_TIMEOUT_MS)

        await page.fill(credential.username_selector, credential.username)
        await page.fill(credential.password_selector, credential.password)

        # Listen before clicking so a fast redirect is not missed
        navigation = asyncio.ensure_future(
            page.wait_for_event(
                "framenavigated",
                predicate=lambda frame: frame == page.main_frame,
                timeout=COMPLETION_TIMEOUT_MS,
            )
        )
        try:
            await page.click(credential.submit_selector)
        except BaseException:
            navigation.cancel()
            raise
        await _wait_for_completion(page, credential, navigation)
    except PlaywrightError as e:
        error = LoginFailed(f"Login may have failed, continuing anyway: {e.message}")
        logger.warning(f"{error.kind}: {error.message}")
        return False

    if not await cancellable_sleep(credential.wait_after_login_ms, token):
        logger.warning("Post-login wait interrupted: session closed")

    logger.info("Login successful")
    return True
