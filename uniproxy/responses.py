"""
JSON envelopes returned by the HTTP surface.
"""
from datetime import datetime, timezone
from typing import Any

from fastapi.responses import JSONResponse

from .errors import GatewayError
from .logging_config import get_logger

logger = get_logger("uniproxy.responses")

SANITIZED_MESSAGE = "Internal server error"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def success(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "data": data, "timestamp": _now()},
    )


def sanitize_message(message: str, status_code: int, production: bool) -> str:
    """Hide internal error detail from clients in production."""
    if production and status_code >= 500:
        return SANITIZED_MESSAGE
    return message


def error(kind: str, message: str, status_code: int, production: bool = False) -> JSONResponse:
    # Full message is logged, the client may get a sanitized one
    logger.error(f"Error {status_code} ({kind}): {message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"kind": kind, "message": sanitize_message(message, status_code, production)},
            "timestamp": _now(),
        },
    )


def gateway_error(exc: GatewayError, production: bool = False) -> JSONResponse:
    return error(exc.kind, exc.message, exc.status_code, production)
