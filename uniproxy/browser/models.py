"""
Browser automation data models.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class BrowserType(Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class OutputType(Enum):
    HTML = "html"
    SCREENSHOT = "screenshot"
    PDF = "pdf"
    COOKIES = "cookies"


class ScreenshotFormat(Enum):
    PNG = "png"
    JPEG = "jpeg"


class CookieFormat(Enum):
    HEADER = "header"
    JSON = "json"


class SessionState(Enum):
    IDLE = "idle"
    LAUNCHED = "launched"
    CONTEXT_READY = "context_ready"
    LOGGED_IN = "logged_in"
    NAVIGATED = "navigated"
    EXTRACTED = "extracted"
    CLOSED = "closed"


# "markup" is accepted as a synonym for the html output
OUTPUT_ALIASES = {"markup": "html"}

MAX_TIMEOUT_MS = 60000


class Viewport(BaseModel):
    width: int = Field(1920, ge=320, le=3840)
    height: int = Field(1080, ge=240, le=2160)


class PdfMargin(BaseModel):
    top: str = "1cm"
    right: str = "1cm"
    bottom: str = "1cm"
    left: str = "1cm"


class ScrapeRequest(BaseModel):
    """Caller options for one automation request.

    Allow-listed fields (browser, output, format, cookie_format) stay plain
    strings here and are checked by the engine so that a bad value surfaces as
    a typed gateway error rather than a schema error.
    """
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., min_length=1, max_length=2000)
    browser: str = "chromium"
    wait_for: str = Field("networkidle", alias="waitFor")
    timeout: int = Field(30000, ge=1)
    selector: Optional[str] = Field(None, max_length=500)
    javascript: bool = False
    user_agent: Optional[str] = Field(None, alias="userAgent", max_length=500)
    viewport: Viewport = Field(default_factory=Viewport)
    headers: Dict[str, str] = Field(default_factory=dict)
    stealth: bool = True
    output: str = "html"
    full_page: bool = Field(False, alias="fullPage")
    format: str = "png"
    quality: int = Field(90, ge=0, le=100)
    pdf_format: str = Field("A4", alias="pdfFormat")
    landscape: bool = False
    print_background: bool = Field(True, alias="printBackground")
    margin: PdfMargin = Field(default_factory=PdfMargin)
    auto_login: bool = Field(True, alias="autoLogin")
    cookie_format: str = Field("header", alias="cookieFormat")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ScrapeOutcome:
    """Base of the four extraction results; metadata shared by all."""
    url: str
    title: str = ""
    browser: str = "chromium"
    timestamp: str = field(default_factory=_now)

    @property
    def content_length(self) -> int:
        return 0


@dataclass
class MarkupOutcome(ScrapeOutcome):
    content: str = ""

    @property
    def content_length(self) -> int:
        return len(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "browser": self.browser,
            "output": OutputType.HTML.value,
            "timestamp": self.timestamp,
            "contentLength": self.content_length,
        }


@dataclass
class ImageOutcome(ScrapeOutcome):
    data: bytes = b""
    format: str = ScreenshotFormat.PNG.value

    @property
    def content_length(self) -> int:
        return len(self.data)

    @property
    def media_type(self) -> str:
        return f"image/{self.format}"


@dataclass
class PdfOutcome(ScrapeOutcome):
    data: bytes = b""
    media_type: str = "application/pdf"

    @property
    def content_length(self) -> int:
        return len(self.data)


@dataclass
class CookieOutcome(ScrapeOutcome):
    cookies: List[Dict[str, Any]] = field(default_factory=list)
    cookie_format: str = CookieFormat.HEADER.value

    @property
    def cookie_header(self) -> str:
        return "; ".join(f"{cookie['name']}={cookie['value']}" for cookie in self.cookies)

    @property
    def content_length(self) -> int:
        return len(self.cookies)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url}
        if self.cookie_format == CookieFormat.HEADER.value:
            data["cookieHeader"] = self.cookie_header
        else:
            data["cookies"] = self.cookies
        data["cookieCount"] = len(self.cookies)
        data["timestamp"] = self.timestamp
        return data

