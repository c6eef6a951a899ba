from __future__ import annotations

"""Edge network membership test for resolved IPv4 addresses."""

import ipaddress
from typing import Optional, Tuple

# Published Cloudflare IPv4 edge ranges.
PROXY_IPV4_RANGES: Tuple[str, ...] = (
    "173.245.48.0/20",
    "103.21.244.0/22",
    "103.22.200.0/22",
    "103.31.4.0/22",
    "141.101.64.0/18",
    "108.162.192.0/18",
    "190.93.240.0/20",
    "188.114.96.0/20",
    "197.234.240.0/22",
    "198.41.128.0/17",
    "162.158.0.0/15",
    "104.16.0.0/13",
    "104.24.0.0/14",
    "172.64.0.0/13",
    "131.0.72.0/22",
)

_FULL_MASK = 0xFFFFFFFF


def _ipv4_to_int(ip: str) -> Optional[int]:
    try:
        return int(ipaddress.IPv4Address(ip.strip()))
    except ValueError:
        return None


def _prefix_mask(prefix_len: int) -> int:
    return ~(2 ** (32 - prefix_len) - 1) & _FULL_MASK


def _compile_ranges(ranges: Tuple[str, ...]) -> Tuple[Tuple[int, int], ...]:
    compiled = []
    for cidr in ranges:
        network, bits = cidr.split("/")
        mask = _prefix_mask(int(bits))
        compiled.append((int(ipaddress.IPv4Address(network)) & mask, mask))
    return tuple(compiled)


_COMPILED_RANGES = _compile_ranges(PROXY_IPV4_RANGES)


def is_known_proxy_ip(ip: str) -> bool:
    """Return True when `ip` falls inside one of the edge ranges.

    IPv6 literals are never classified as proxied.
    """
    if ":" in (ip or ""):
        return False
    value = _ipv4_to_int(ip or "")
    if value is None:
        return False
    return any((value & mask) == network for network, mask in _COMPILED_RANGES)
