"""
Typed failures raised by the outbound mediation core.

Every error carries a stable machine-readable ``kind`` and the HTTP status the
dispatch layer maps it to. Raw transport exceptions never cross this boundary.
"""
from typing import Any, Dict


class GatewayError(Exception):
    """Base class for all gateway failures."""

    kind = "GatewayError"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class InvalidDestination(GatewayError):
    kind = "InvalidDestination"
    status_code = 400


class ProtocolNotAllowed(GatewayError):
    kind = "ProtocolNotAllowed"
    status_code = 400


class AccessDenied(GatewayError):
    """Destination resolves to a private, internal or metadata address."""

    kind = "AccessDenied"
    status_code = 403


class ConfigurationError(GatewayError):
    kind = "ConfigurationError"
    status_code = 500


class UpstreamUnreachable(GatewayError):
    """Connection-level failure: DNS, TLS, timeout, redirect or size limits."""

    kind = "UpstreamUnreachable"
    status_code = 502


class SelectorNotFound(GatewayError):
    kind = "SelectorNotFound"
    status_code = 404


class UnsupportedForEngine(GatewayError):
    kind = "UnsupportedForEngine"
    status_code = 400


class Timeout(GatewayError):
    kind = "Timeout"
    status_code = 504


class LoginFailed(GatewayError):
    """Logged and continued past; never surfaced to the caller."""

    kind = "LoginFailed"
    status_code = 502


class TeardownError(GatewayError):
    """Logged and swallowed during session cleanup."""

    kind = "TeardownError"
    status_code = 500


class InvalidRequest(GatewayError):
    kind = "InvalidRequest"
    status_code = 400


class ServiceNotFound(GatewayError):
    kind = "ServiceNotFound"
    status_code = 404


class PayloadTooLarge(GatewayError):
    kind = "PayloadTooLarge"
    status_code = 413
