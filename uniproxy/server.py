"""
FastAPI application exposing the service registry over HTTP.
"""
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from . import responses
from .config import Settings
from .credentials import CredentialStore
from .crypto import CredentialEncryption
from .errors import GatewayError, PayloadTooLarge, ServiceNotFound
from .logging_config import get_logger
from .proxy_agent import resolve_from_request
from .security import ApiKeyMiddleware, RateLimiter, RateLimitMiddleware, SecurityHeadersMiddleware
from .services import DispatchRequest, ServiceRegistry, build_registry

logger = get_logger("uniproxy.server")

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
MAX_REQUEST_BODY_BYTES = 10 * 1024 * 1024


def load_credential_store(settings: Settings) -> CredentialStore:
    if settings.credentials_file is None:
        return CredentialStore(production=settings.is_production)
    return CredentialStore.from_file(
        settings.credentials_file,
        encryption=CredentialEncryption(),
        production=settings.is_production,
    )


async def read_body(request: Request, limit: int) -> bytes:
    """Read the inbound body, refusing it as soon as it passes ``limit`` bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(f"Request body exceeds {limit} bytes")

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise PayloadTooLarge(f"Request body exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ServiceRegistry] = None,
    credential_store: Optional[CredentialStore] = None,
    rate_limiter: Optional[RateLimiter] = None,
    max_body_bytes: int = MAX_REQUEST_BODY_BYTES,
) -> FastAPI:
    """Build the gateway app. Everything shared is created here, once."""
    settings = settings or Settings.from_env()
    if registry is None:
        if credential_store is None:
            credential_store = load_credential_store(settings)
        registry = build_registry(settings, credential_store=credential_store)

    app = FastAPI(title="Universal Proxy", version=__version__)
    app.state.settings = settings
    app.state.registry = registry
    app.state.started_at = time.monotonic()

    app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
    app.add_middleware(ApiKeyMiddleware, api_keys=settings.api_keys)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)

    # Added last so it wraps everything, including auth rejections
    allow_all = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins,
        allow_credentials=not allow_all,
        allow_methods=ALL_METHODS,
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Target-URL", "X-Use-Proxy", "X-Proxy-Type"],
    )

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(request: Request, exc: GatewayError):
        return responses.gateway_error(exc, settings.is_production)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return responses.error("HTTPError", message, exc.status_code, settings.is_production)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return responses.error("InternalError", "Internal server error", 500, settings.is_production)

    async def _dispatch(service: str, endpoint: str, request: Request) -> Response:
        handler = registry.get(service)
        headers = {key.lower(): value for key, value in request.headers.items()}
        query = dict(request.query_params)

        dispatch_request = DispatchRequest(
            method=request.method,
            headers=headers,
            query=query,
            body=await read_body(request, max_body_bytes),
            proxy=resolve_from_request(headers, query, settings.proxy_tiers),
        )

        result = await handler.handle(endpoint, dispatch_request)
        if isinstance(result, Response):
            return result
        return responses.success(result)

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "Universal Proxy",
            "modules": registry.names(),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
        }

    @app.get("/api/services")
    async def list_services():
        return {"services": registry.describe()}

    @app.api_route("/api/{service}/{endpoint:path}", methods=ALL_METHODS)
    async def service_route(service: str, endpoint: str, request: Request):
        return await _dispatch(service, endpoint, request)

    @app.api_route("/proxy/{path:path}", methods=ALL_METHODS)
    async def proxy_route(path: str, request: Request):
        if "generic-http" not in registry:
            raise ServiceNotFound("Generic HTTP proxy module not available")
        return await _dispatch("generic-http", "proxy", request)

    logger.info(f"Gateway ready with services: {', '.join(registry.names())}")
    return app


def run_server(host: str = "127.0.0.1", port: int = 3001, settings: Optional[Settings] = None):
    """
    Run the gateway under uvicorn.

    Args:
        host: Bind address. Default is 127.0.0.1 (localhost only).
        port: Port to listen on (default: 3001)
        settings: Pre-built settings, read from the environment if omitted
    """
    import uvicorn

    settings = settings or Settings.from_env()

    if host == "0.0.0.0" and not settings.auth_enabled:
        logger.warning(
            "Server is binding to 0.0.0.0 but no API keys are configured. "
            "Set UNIPROXY_API_KEYS or restrict to localhost."
        )

    uvicorn.run(create_app(settings), host=host, port=port)
