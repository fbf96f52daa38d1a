"""
Parsed outbound target references.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from .errors import AccessDenied, InvalidDestination, ProtocolNotAllowed
from .ssrf import is_blocked

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

# Browsers read a backslash as "/" in http(s) URLs and drop tabs and newlines,
# while urlsplit keeps both, so the two would disagree on the host.
_AMBIGUOUS_CHARS = frozenset("\\\x7f") | frozenset(chr(c) for c in range(0x21))


@dataclass(frozen=True)
class Destination:
    """A validated http(s) URL broken into its parts."""
    url: str
    scheme: str
    hostname: str
    port: Optional[int]
    path: str
    query: str

    @classmethod
    def parse(cls, url: str) -> "Destination":
        if not url or not isinstance(url, str):
            raise InvalidDestination("Target URL is required and must be a string")

        url = url.strip()
        if any(char in _AMBIGUOUS_CHARS for char in url):
            raise InvalidDestination("Target URL contains backslashes, whitespace or control characters")

        try:
            parts = urlsplit(url)
            port = parts.port
        except ValueError as e:
            raise InvalidDestination(f"Invalid target URL format: {e}") from e

        if not parts.scheme:
            raise InvalidDestination("Invalid target URL format")

        scheme = parts.scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            raise ProtocolNotAllowed("Only HTTP and HTTPS protocols are allowed")

        if not parts.netloc:
            raise InvalidDestination("Invalid target URL format")

        if not parts.hostname:
            raise InvalidDestination("Target URL has no hostname")

        return cls(
            url=url,
            scheme=scheme,
            hostname=parts.hostname.lower(),
            port=port,
            path=parts.path or "/",
            query=parts.query,
        )

    @property
    def origin(self) -> str:
        """Scheme, host and port only; safe to log (no path or query)."""
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        if self.port:
            return f"{self.scheme}://{host}:{self.port}"
        return f"{self.scheme}://{host}"

    @property
    def canonical(self) -> str:
        """The URL rebuilt from the checked parts. Userinfo and fragment are dropped."""
        if self.query:
            return f"{self.origin}{self.path}?{self.query}"
        return f"{self.origin}{self.path}"


def normalize_url(url: str) -> str:
    """Comparable form of a URL: lower-case scheme and host, no default port, "/" for an empty path."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url
    scheme = parts.scheme.lower()
    netloc = parts.netloc.rsplit("@", 1)[-1].lower()
    if port is not None and DEFAULT_PORTS.get(scheme) == port:
        netloc = netloc.rsplit(":", 1)[0]
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def is_blocked_url(url: str) -> bool:
    """True for an http(s) URL whose host is blocked or missing. Other schemes (data:, blob:) pass."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return True
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return False
    return not parts.hostname or is_blocked(parts.hostname)


def check_destination(url: str) -> Destination:
    """Parse a URL and reject it unless it points at a public http(s) host."""
    destination = Destination.parse(url)
    if is_blocked(destination.hostname):
        raise AccessDenied("Access to private/internal networks is not allowed")
    return destination
