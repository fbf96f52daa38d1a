"""
Generic HTTP forwarder.

Performs one bounded request to a validated public destination, optionally
through an upstream proxy, and relays a sanitized response. Upstream 4xx/5xx
responses are relayed as-is; only connection-level failures are errors.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import httpx

from .destination import ALLOWED_SCHEMES, check_destination
from .errors import AccessDenied, ProtocolNotAllowed, UpstreamUnreachable
from .logging_config import get_logger
from .proxy_agent import ProxyAgentDescriptor, to_httpx_proxy
from .ssrf import is_blocked, is_metadata_host

logger = get_logger("uniproxy.forwarder")

REQUEST_TIMEOUT_SECONDS = 15.0
MAX_REDIRECTS = 3
MAX_BODY_BYTES = 10 * 1024 * 1024

# Gateway routing/auth headers and hop-by-hop headers never go upstream
STRIPPED_REQUEST_HEADERS = frozenset({
    "x-target-url",
    "x-use-proxy",
    "x-proxy-type",
    "x-api-key",
    "host",
    "connection",
    "transfer-encoding",
    "content-encoding",
    "content-length",
    "accept-encoding",
})

RELAYED_RESPONSE_HEADERS = (
    "content-type",
    "content-length",
    "cache-control",
    "expires",
    "last-modified",
    "etag",
)


@dataclass
class ForwardedResponse:
    """Normalized ``{status, headers, body}`` triple of a forwarded call."""
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def sanitize_request_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in STRIPPED_REQUEST_HEADERS
    }


def filter_response_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    relayed = {}
    for name in RELAYED_RESPONSE_HEADERS:
        value = headers.get(name)
        if value:
            relayed[name] = value
    return relayed


async def _check_hop(request: httpx.Request):
    """Re-validate every hop, including redirect targets."""
    if request.url.scheme not in ALLOWED_SCHEMES:
        raise ProtocolNotAllowed("Redirect to a non-HTTP protocol is not allowed")
    host = request.url.host
    if is_blocked(host) or is_metadata_host(host):
        raise AccessDenied("Redirect to a private/internal network is not allowed")


class HttpForwarder:
    """Forwards single requests with fixed timeout, redirect and size bounds."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self.timeout = REQUEST_TIMEOUT_SECONDS
        self.max_redirects = MAX_REDIRECTS
        self.max_body_bytes = MAX_BODY_BYTES

    def _client(self, proxy: Optional[ProxyAgentDescriptor]) -> httpx.AsyncClient:
        client_kwargs = {
            "timeout": httpx.Timeout(self.timeout),
            "follow_redirects": True,
            "max_redirects": self.max_redirects,
            "trust_env": False,
            "event_hooks": {"request": [_check_hop]},
        }
        if proxy is not None:
            client_kwargs["proxy"] = to_httpx_proxy(proxy)
        elif self._transport is not None:
            client_kwargs["transport"] = self._transport
        return httpx.AsyncClient(**client_kwargs)

    async def forward(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
        proxy: Optional[ProxyAgentDescriptor] = None,
    ) -> ForwardedResponse:
        destination = check_destination(url)
        if is_metadata_host(destination.hostname):
            raise AccessDenied("Access to metadata services is not allowed")

        if body and len(body) > self.max_body_bytes:
            raise UpstreamUnreachable("Request body exceeds the 10 MiB limit")

        method = method.upper()
        outbound_headers = sanitize_request_headers(headers or {})
        content = body if body and method != "GET" else None

        if proxy is not None:
            logger.info(f"Proxying {method} {destination.origin} through {proxy.tier}")
        else:
            logger.info(f"Direct request: {method} {destination.origin}")

        try:
            return await asyncio.wait_for(
                self._send(method, destination.url, outbound_headers, content, proxy),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamUnreachable(f"Upstream request timed out after {self.timeout:g}s") from e
        except httpx.TooManyRedirects as e:
            raise UpstreamUnreachable(f"Exceeded the limit of {self.max_redirects} redirects") from e
        except httpx.HTTPError as e:
            raise UpstreamUnreachable(f"Proxy request failed: {e}") from e

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes],
        proxy: Optional[ProxyAgentDescriptor],
    ) -> ForwardedResponse:
        async with self._client(proxy) as client:
            async with client.stream(method, url, headers=headers, content=content) as response:
                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > self.max_body_bytes:
                    raise UpstreamUnreachable("Response body exceeds the 10 MiB limit")

                buf = bytearray()
                async for chunk in response.aiter_bytes():
                    buf += chunk
                    if len(buf) > self.max_body_bytes:
                        raise UpstreamUnreachable("Response body exceeds the 10 MiB limit")

                relayed = filter_response_headers(response.headers)
                # Body is relayed decoded, so the length must describe the decoded bytes
                if "content-length" in relayed:
                    relayed["content-length"] = str(len(buf))

                logger.info_with("Upstream responded", status=response.status_code, bytes=len(buf))
                return ForwardedResponse(
                    status_code=response.status_code,
                    headers=relayed,
                    body=bytes(buf),
                )
