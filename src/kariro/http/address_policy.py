"""Destination address policy for outbound fetches (SSRF guard)."""

from __future__ import annotations

import ipaddress
import socket
from collections.abc import Callable

BLOCKED_HOSTNAMES: frozenset[str] = frozenset({"localhost", "0.0.0.0"})  # noqa: S104

_CURRENT_NETWORK = ipaddress.ip_network("0.0.0.0/8")

Resolver = Callable[[str], list[str]]


def is_blocked_hostname(hostname: str) -> bool:
    """Return True for hostnames rejected before any DNS lookup."""

    normalized = hostname.strip().lower().rstrip(".")
    if normalized in BLOCKED_HOSTNAMES:
        return True
    return normalized.endswith(".localhost")


def is_blocked_address(address: str) -> bool:
    """Return True when the address points at a non-public network.

    IPv4-mapped (``::ffff:10.0.0.5``) and 6to4 (``2002:a9fe:a9fe::1``) IPv6
    addresses are unwrapped and checked against the IPv4 rules.
    """

    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return True

    if isinstance(ip, ipaddress.IPv6Address):
        embedded = ip.ipv4_mapped or ip.sixtofour
        if embedded is not None:
            return _is_blocked_ipv4(embedded)
        return (
            ip.is_loopback
            or ip.is_unspecified
            or ip.is_link_local
            or ip.is_site_local
            or ip.is_private
            or ip.is_multicast
            or ip.is_reserved
            or not ip.is_global
        )
    return _is_blocked_ipv4(ip)


def resolve_host(hostname: str) -> list[str]:
    """Resolve hostname once and return unique addresses in resolver order."""

    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    addresses: list[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        address = str(sockaddr[0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def _is_blocked_ipv4(ip: ipaddress.IPv4Address) -> bool:
    return (
        ip in _CURRENT_NETWORK
        or ip.is_loopback
        or ip.is_unspecified
        or ip.is_link_local
        or ip.is_private
        or ip.is_multicast
        or ip.is_reserved
        or not ip.is_global
    )
