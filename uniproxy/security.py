"""
Security middleware for the gateway.

Provides:
- API key authentication
- Per-route rate limiting
- Security headers

Both auth and rate limiting run before any service is dispatched, so the
mediation core can assume every call it receives has passed these gates.
"""
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Tuple

from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger

logger = get_logger("uniproxy.security")

PUBLIC_PATHS = {"/health", "/api/services"}


def _error_body(kind: str, message: str) -> str:
    return json.dumps({
        "success": False,
        "error": {"kind": kind, "message": message},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


def get_client_ip(request: Request) -> str:
    """Get client IP from request, respecting X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # Take the first IP in the chain
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# ==================== Rate Limiting ====================

SWEEP_INTERVAL_SECONDS = 60


class RateLimiter:
    """
    Simple in-memory sliding-window rate limiter.

    Tracks request timestamps per (category, client IP). A key is dropped as
    soon as its window is empty, and a periodic sweep drops keys of clients
    that never came back.
    """

    def __init__(self):
        self._requests: Dict[Tuple[str, str], List[float]] = {}
        self._windows: Dict[str, int] = {}
        self._last_sweep = time.time()

    def _cleanup_old_requests(self, key: Tuple[str, str], window: int) -> List[float]:
        """Remove requests older than the window and return the rest."""
        cutoff = time.time() - window
        recent = [t for t in self._requests.get(key, ()) if t > cutoff]
        if recent:
            self._requests[key] = recent
        else:
            self._requests.pop(key, None)
        return recent

    def _sweep(self):
        now = time.time()
        if now - self._last_sweep < SWEEP_INTERVAL_SECONDS:
            return
        self._last_sweep = now
        for key in list(self._requests):
            self._cleanup_old_requests(key, self._windows[key[0]])

    def check_rate_limit(self, category: str, ip: str, limit: int, window: int) -> bool:
        """
        Check if a request is within the rate limit and record it if so.

        Args:
            category: Rate limit bucket (e.g. "playwright")
            ip: Client address
            limit: Max requests per window
            window: Time window in seconds

        Returns:
            True if allowed, False if rate limited
        """
        key = (category, ip)
        self._windows[category] = window
        self._sweep()

        if len(self._cleanup_old_requests(key, window)) >= limit:
            return False

        self._requests.setdefault(key, []).append(time.time())
        return True

    def get_remaining(self, category: str, ip: str, limit: int, window: int) -> int:
        return max(0, limit - len(self._cleanup_old_requests((category, ip), window)))


WINDOW_SECONDS = 15 * 60

# Rate limit configurations: (requests, window seconds)
RATE_LIMITS = {
    "playwright": (20, WINDOW_SECONDS),   # browser sessions are very resource intensive
    "tts": (50, WINDOW_SECONDS),
    "proxy": (200, WINDOW_SECONDS),
    "default": (1000, WINDOW_SECONDS),
}

RATE_LIMIT_MESSAGES = {
    "playwright": "Browser scraping rate limit exceeded",
    "tts": "TTS rate limit exceeded",
    "proxy": "Proxy rate limit exceeded",
    "default": "Rate limit exceeded",
}


def rate_limit_category(path: str) -> str:
    if path.startswith("/api/playwright"):
        return "playwright"
    if path.startswith("/api/elevenlabs"):
        return "tts"
    if path.startswith("/proxy") or path.startswith("/api/generic-http"):
        return "proxy"
    return "default"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies per-category rate limiting to all non-public requests."""

    def __init__(self, app, limiter: RateLimiter = None):
        super().__init__(app)
        self.limiter = limiter or RateLimiter()

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path in PUBLIC_PATHS:
            return await call_next(request)

        category = rate_limit_category(path)
        limit, window = RATE_LIMITS[category]
        ip = get_client_ip(request)

        if not self.limiter.check_rate_limit(category, ip, limit, window):
            logger.warning(f"Rate limit hit ({category}) from {ip}")
            return Response(
                content=_error_body("RateLimited", RATE_LIMIT_MESSAGES[category]),
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(window)},
            )

        response = await call_next(request)

        response.headers["RateLimit-Limit"] = str(limit)
        response.headers["RateLimit-Remaining"] = str(self.limiter.get_remaining(category, ip, limit, window))
        response.headers["RateLimit-Reset"] = str(window)

        return response


# ==================== API Key Authentication ====================

class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Requires a valid x-api-key header when API keys are configured."""

    def __init__(self, app, api_keys: Iterable[str] = ()):
        super().__init__(app)
        self.api_keys = [key for key in api_keys if key]

    def _is_valid(self, candidate: str) -> bool:
        return any(hmac.compare_digest(candidate, key) for key in self.api_keys)

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path in PUBLIC_PATHS:
            return await call_next(request)

        if self.api_keys:
            api_key = request.headers.get("x-api-key", "")
            if not api_key or not self._is_valid(api_key):
                logger.warning(f"Unauthorized request from {get_client_ip(request)}: {path}")
                return Response(
                    content=_error_body("Unauthorized", "Invalid or missing API key"),
                    status_code=401,
                    media_type="application/json",
                )

        # Query strings are never logged, they may carry secrets
        logger.info(f"{request.method} {path} from {get_client_ip(request)}")
        return await call_next(request)


# ==================== Security Headers ====================

# Gateway responses are JSON or relayed bytes, never pages to render
API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamps hardening headers on every response, including relayed ones."""

    def __init__(self, app, hsts: bool = False):
        super().__init__(app)
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["Referrer-Policy"] = "no-referrer"
        headers["Cross-Origin-Resource-Policy"] = "same-site"
        headers.setdefault("Content-Security-Policy", API_CSP)
        if self.hsts:
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
