"""
Upstream proxy tiers and request-scoped proxy descriptors.

A tier (``residential``, ``datacenter``) is read from the environment. When a
request asks for proxying, the tier is resolved into a ``ProxyAgentDescriptor``
which is handed to exactly one outbound call and then discarded. Transport
adapters translate the descriptor into the shape httpx or Playwright expect.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from .errors import ConfigurationError
from .logging_config import get_logger

logger = get_logger("uniproxy.proxy")

DEFAULT_TIER = "residential"
DEFAULT_TIER_PORTS = {
    "residential": 10000,
    "datacenter": 8080,
}

TRUTHY = ("true", "1")


@dataclass(frozen=True)
class ProxyTier:
    """Named upstream proxy configuration."""
    name: str
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = field(default="", repr=False)
    protocol: str = "http"

    @property
    def usable(self) -> bool:
        return bool(self.host and self.username and self.password)


@dataclass(frozen=True)
class ProxyAgentDescriptor:
    """Authenticated forwarding handle for a single outbound call."""
    tier: str
    protocol: str
    host: str
    port: int
    username: str
    password: str = field(repr=False)

    @property
    def secure(self) -> bool:
        return self.protocol == "https"

    @property
    def server(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def url(self) -> str:
        user = quote(self.username, safe="")
        password = quote(self.password, safe="")
        return f"{self.protocol}://{user}:{password}@{self.host}:{self.port}"


def _parse_port(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


def load_proxy_tiers(environ: Optional[Mapping[str, str]] = None) -> Dict[str, ProxyTier]:
    """Build the configured tiers from PROXY_<TIER>_* environment variables."""
    env = os.environ if environ is None else environ
    tiers = {}
    for name, default_port in DEFAULT_TIER_PORTS.items():
        prefix = f"PROXY_{name.upper()}_"
        tiers[name] = ProxyTier(
            name=name,
            host=env.get(prefix + "HOST", "") or "",
            port=_parse_port(env.get(prefix + "PORT"), default_port),
            username=env.get(prefix + "USERNAME", "") or "",
            password=env.get(prefix + "PASSWORD", "") or "",
            protocol=(env.get(prefix + "PROTOCOL") or "http").lower(),
        )
    return tiers


def resolve(tier_name: str, tiers: Mapping[str, ProxyTier]) -> ProxyAgentDescriptor:
    """Turn a tier name into a descriptor, or raise ConfigurationError."""
    tier = tiers.get(tier_name)
    if tier is None:
        raise ConfigurationError(f"Proxy type '{tier_name}' not configured")

    if not tier.usable:
        raise ConfigurationError(
            f"Incomplete proxy configuration for '{tier_name}'. "
            "Missing host, username, or password."
        )

    return ProxyAgentDescriptor(
        tier=tier.name,
        protocol=tier.protocol,
        host=tier.host,
        port=tier.port,
        username=tier.username,
        password=tier.password,
    )


def resolve_from_request(
    headers: Mapping[str, str],
    query: Mapping[str, str],
    tiers: Mapping[str, ProxyTier],
) -> Optional[ProxyAgentDescriptor]:
    """Resolve a descriptor if the inbound request asked for proxy routing."""
    use_proxy = headers.get("x-use-proxy") or query.get("proxy") or ""
    if use_proxy.lower() not in TRUTHY:
        return None

    tier_name = headers.get("x-proxy-type") or query.get("proxy_type") or DEFAULT_TIER
    descriptor = resolve(tier_name, tiers)
    logger.info(f"Request routed through {descriptor.tier} proxy")
    return descriptor


# ==================== Transport Adapters ====================

def to_httpx_proxy(descriptor: ProxyAgentDescriptor) -> httpx.Proxy:
    return httpx.Proxy(url=descriptor.url)


def to_playwright_proxy(descriptor: ProxyAgentDescriptor) -> Dict[str, str]:
    return {
        "server": descriptor.server,
        "username": descriptor.username,
        "password": descriptor.password,
    }
