"""
SSRF guard for outbound destinations.

Classifies a literal hostname or IP string as public or internal. No DNS
resolution is performed: a public name that later resolves to a private
address (DNS rebinding) is not caught here, so callers must not treat this
check as their only line of defence.
"""
import re

LOOPBACK_NAMES = {"localhost", "0.0.0.0", "::1", "::"}
LOOPBACK_PREFIXES = ("127.", "fe80:")

INTERNAL_PATTERNS = (
    "internal", "local", "corp", "intranet", "private",
    ".internal.", ".local.", ".corp.", ".intranet.", ".private.",
)

METADATA_HOSTS = ("169.254.169.254", "metadata.google.internal")

_IPV4 = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")


def normalize_hostname(hostname: str) -> str:
    """Lower-case a hostname and strip IPv6 brackets."""
    host = (hostname or "").strip().lower()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host


def _is_private_ipv4(host: str) -> bool:
    match = _IPV4.match(host)
    if not match:
        return False
    octets = [int(part) for part in match.groups()]
    if any(octet > 255 for octet in octets):
        return False
    a, b = octets[0], octets[1]
    return (
        a == 10
        or (a == 172 and 16 <= b <= 31)
        or (a == 192 and b == 168)
        or (a == 169 and b == 254)
    )


def is_metadata_host(hostname: str) -> bool:
    host = normalize_hostname(hostname)
    return host in METADATA_HOSTS or "metadata" in host


def is_blocked(hostname: str) -> bool:
    """Return True if the hostname points at a loopback, private or metadata target."""
    host = normalize_hostname(hostname)
    if not host:
        return True

    if host in LOOPBACK_NAMES or host.startswith(LOOPBACK_PREFIXES):
        return True

    if _is_private_ipv4(host):
        return True

    if any(pattern in host for pattern in INTERNAL_PATTERNS):
        return True

    return is_metadata_host(host)
