"""
ScrapeEngine - renders a destination in a headless browser and extracts one artifact.

Each call owns its own Playwright driver, browser, context and page:

    IDLE -> LAUNCHED -> CONTEXT_READY -> (login) -> NAVIGATED -> EXTRACTED -> CLOSED

Validation happens before anything is launched. Teardown runs on every exit
path, innermost first, and never masks the primary result or error.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..credentials import CredentialStore, LoginCredential
from ..destination import Destination, check_destination, is_blocked_url, normalize_url
from ..errors import (
    AccessDenied,
    GatewayError,
    InvalidRequest,
    SelectorNotFound,
    Timeout,
    UnsupportedForEngine,
    UpstreamUnreachable,
)
from ..logging_config import get_logger
from ..proxy_agent import ProxyAgentDescriptor, to_playwright_proxy
from .login import perform_login
from .models import (
    MAX_TIMEOUT_MS,
    OUTPUT_ALIASES,
    BrowserType,
    CookieFormat,
    CookieOutcome,
    ImageOutcome,
    MarkupOutcome,
    OutputType,
    PdfOutcome,
    ScrapeOutcome,
    ScrapeRequest,
    ScreenshotFormat,
    SessionState,
)
from .session import BrowserSession
from .stealth import default_user_agent

logger = get_logger("uniproxy.browser.engine")

SELECTOR_TIMEOUT_MS = 10000
WAIT_CONDITIONS = ("load", "domcontentloaded", "networkidle", "commit")


@dataclass(frozen=True)
class ScrapePlan:
    """The validated, typed form of a ScrapeRequest."""
    destination: Destination
    browser_type: BrowserType
    output: OutputType


def _choice(enum_cls, value: str, message: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidRequest(message) from None


def validate_scrape_request(request: ScrapeRequest) -> ScrapePlan:
    """Check every caller option before any browser resource is acquired."""
    destination = check_destination(request.url)

    browser_type = _choice(
        BrowserType, request.browser,
        "Invalid browser choice. Use: chromium, firefox, or webkit",
    )

    if request.timeout > MAX_TIMEOUT_MS:
        raise InvalidRequest("Timeout cannot exceed 60 seconds")

    if request.wait_for not in WAIT_CONDITIONS:
        raise InvalidRequest(f"Invalid wait condition. Use: {', '.join(WAIT_CONDITIONS)}")

    output = _choice(
        OutputType, OUTPUT_ALIASES.get(request.output, request.output),
        "Invalid output type. Use: html, screenshot, pdf, or cookies",
    )

    if output == OutputType.SCREENSHOT:
        _choice(ScreenshotFormat, request.format, "Invalid screenshot format. Use: png or jpeg")

    if output == OutputType.COOKIES:
        _choice(CookieFormat, request.cookie_format, "Invalid cookie format. Use: header or json")

    if output == OutputType.PDF and browser_type != BrowserType.CHROMIUM:
        raise UnsupportedForEngine("PDF generation only works with Chromium browser")

    return ScrapePlan(destination=destination, browser_type=browser_type, output=output)


class ScrapeEngine:
    """Runs one isolated browser session per scrape request."""

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self._credentials = credential_store
        self._playwright_factory = playwright_factory

    async def scrape(
        self,
        request: ScrapeRequest,
        proxy: Optional[ProxyAgentDescriptor] = None,
    ) -> ScrapeOutcome:
        plan = validate_scrape_request(request)
        session = BrowserSession(plan.browser_type)

        logger.info(f"Playwright {plan.browser_type.value} scraping: {plan.destination.origin}")
        try:
            async with self._playwright_factory() as playwright:
                try:
                    return await self._run(playwright, session, request, plan, proxy)
                finally:
                    await session.close()
        except GatewayError as e:
            logger.error(f"Playwright scraping error: {e.kind}: {e.message}")
            raise
        except PlaywrightTimeoutError as e:
            logger.error(f"Playwright scraping timed out: {e.message}")
            raise Timeout(f"Scraping timed out: {e.message}") from e
        except PlaywrightError as e:
            logger.error(f"Playwright scraping error: {e.message}")
            raise UpstreamUnreachable(f"Scraping failed: {e.message}") from e

    def _login_credential(self, request: ScrapeRequest) -> Optional[LoginCredential]:
        if not request.auto_login or self._credentials is None:
            return None
        if not self._credentials.has_credentials(request.url):
            return None
        return self._credentials.get_credentials(request.url)

    def _context_options(
        self,
        request: ScrapeRequest,
        plan: ScrapePlan,
        proxy: Optional[ProxyAgentDescriptor],
    ) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "viewport": {"width": request.viewport.width, "height": request.viewport.height},
            "extra_http_headers": dict(request.headers),
            "ignore_https_errors": True,
            "java_script_enabled": request.javascript,
        }

        user_agent = request.user_agent or (
            default_user_agent(plan.browser_type) if request.stealth else None
        )
        if user_agent:
            options["user_agent"] = user_agent

        if proxy is not None:
            options["proxy"] = to_playwright_proxy(proxy)
            logger.info(f"Playwright using {proxy.tier} proxy")

        return options

    async def _run(
        self,
        playwright: Any,
        session: BrowserSession,
        request: ScrapeRequest,
        plan: ScrapePlan,
        proxy: Optional[ProxyAgentDescriptor],
    ) -> ScrapeOutcome:
        await session.launch(playwright, request.stealth)
        await session.open_context(self._context_options(request, plan, proxy), request.stealth)
        page = session.page

        credential = self._login_credential(request)
        if credential is not None:
            if await perform_login(page, credential, request.timeout, session.token):
                session.state = SessionState.LOGGED_IN

        # After a login the browser may already sit on the target
        target = plan.destination.canonical
        if credential is None or normalize_url(page.url) != normalize_url(target):
            await page.goto(target, wait_until=request.wait_for, timeout=request.timeout)
        if is_blocked_url(page.url):
            raise AccessDenied("Access to private/internal networks is not allowed")
        session.state = SessionState.NAVIGATED

        if request.selector:
            try:
                await page.wait_for_selector(request.selector, timeout=SELECTOR_TIMEOUT_MS)
            except PlaywrightTimeoutError as e:
                raise SelectorNotFound(f'Selector "{request.selector}" not found') from e

        outcome = await self._extract(session, request, plan)
        session.state = SessionState.EXTRACTED
        logger.info(f"Extracted {plan.output.value} ({outcome.content_length}) from {plan.destination.origin}")
        return outcome

    async def _extract(
        self,
        session: BrowserSession,
        request: ScrapeRequest,
        plan: ScrapePlan,
    ) -> ScrapeOutcome:
        page = session.page
        meta = {
            "url": page.url,
            "title": await page.title(),
            "browser": plan.browser_type.value,
        }

        if plan.output == OutputType.SCREENSHOT:
            options: Dict[str, Any] = {"full_page": request.full_page, "type": request.format}
            if request.format == ScreenshotFormat.JPEG.value:
                options["quality"] = request.quality
            return ImageOutcome(data=await page.screenshot(**options), format=request.format, **meta)

        if plan.output == OutputType.PDF:
            pdf = await page.pdf(
                format=request.pdf_format,
                landscape=request.landscape,
                print_background=request.print_background,
                margin=request.margin.model_dump(),
            )
            return PdfOutcome(data=pdf, **meta)

        if plan.output == OutputType.COOKIES:
            cookies = await session.context.cookies()
            return CookieOutcome(cookies=list(cookies), cookie_format=request.cookie_format, **meta)

        if request.selector:
            element = await page.query_selector(request.selector)
            if element is None:
                raise SelectorNotFound(f'Selector "{request.selector}" not found')
            content = await element.inner_html()
        else:
            content = await page.content()
        return MarkupOutcome(content=content, **meta)
