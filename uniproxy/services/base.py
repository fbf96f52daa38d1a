"""
Base types shared by the dispatchable services.
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import httpx
from fastapi.responses import Response

from ..errors import InvalidRequest, ServiceNotFound
from ..proxy_agent import ProxyAgentDescriptor, to_httpx_proxy

ServiceResult = Union[Dict[str, Any], Response]


@dataclass
class DispatchRequest:
    """What the inbound dispatch layer hands to a service."""
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    proxy: Optional[ProxyAgentDescriptor] = None

    def json(self) -> Any:
        if not self.body:
            return {}
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise InvalidRequest("Invalid JSON request body") from e


class ServiceHandler(ABC):
    """A named service reachable under /api/{name}/{endpoint}.

    Handlers return either a dict (wrapped in the success envelope) or a
    ready-made Response that is relayed as-is.
    """

    name: str = ""
    description: str = "No description"
    endpoints: List[str] = []

    async def handle(self, endpoint: str, request: DispatchRequest) -> ServiceResult:
        if endpoint not in self.endpoints:
            raise ServiceNotFound(f"Unknown endpoint: {endpoint}")
        return await self.dispatch(endpoint, request)

    @abstractmethod
    async def dispatch(self, endpoint: str, request: DispatchRequest) -> ServiceResult:
        ...

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "endpoints": list(self.endpoints),
        }


# ==================== Provider API helpers ====================

def provider_client(
    base_url: str,
    headers: Dict[str, str],
    proxy: Optional[ProxyAgentDescriptor] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 120.0,
) -> httpx.AsyncClient:
    """Request-scoped client for a third-party provider API."""
    client_kwargs: Dict[str, Any] = {
        "base_url": base_url,
        "headers": headers,
        "timeout": timeout,
        "trust_env": False,
    }
    if proxy is not None:
        client_kwargs["proxy"] = to_httpx_proxy(proxy)
    elif transport is not None:
        client_kwargs["transport"] = transport
    return httpx.AsyncClient(**client_kwargs)


def relay_error(response: httpx.Response) -> Response:
    """Relay a provider API error verbatim."""
    return Response(
        content=response.content,
        status_code=response.status_code,
        media_type=response.headers.get("content-type", "application/json"),
    )
