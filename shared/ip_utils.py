"""
Client IP resolution for FastAPI requests.

The resolved IP is the source key for the rate limiter and the value stored
as ``signup_ip`` on registration.

Forwarding headers are client-controlled. They are only read when the socket
peer is one of the configured trusted proxies (``TRUSTED_PROXIES``); any other
caller is keyed by its own peer address.
"""

from __future__ import annotations

import ipaddress
from typing import Iterable

from fastapi import Request

# Checked in priority order before the socket peer address
_PROXY_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",  # Cloudflare
    "True-Client-IP",  # Akamai and others
    "X-Forwarded-For",  # standard proxy header, first hop wins
    "X-Real-IP",  # nginx
)


def is_trusted_proxy(peer: str, trusted_proxies: Iterable[str]) -> bool:
    """``True`` if *peer* is an address inside one of *trusted_proxies*
    (single addresses or CIDR networks)."""
    try:
        address = ipaddress.ip_address(peer)
    except ValueError:
        return False
    return any(
        address in ipaddress.ip_network(network, strict=False)
        for network in trusted_proxies
    )


def get_client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    Returns:
        The resolved client IP string, or ``""`` if none can be found.
    """
    peer: str = request.client.host if request.client else ""
    if not is_trusted_proxy(peer, trusted_proxies):
        return peer

    for header in _PROXY_HEADERS:
        ip_value: str | None = request.headers.get(header)
        if ip_value:
            client_ip: str = ip_value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return peer


def source_key(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """Rate-limit bucket key for the caller: ``ip:<address>``."""
    return f"ip:{get_client_ip(request, trusted_proxies) or 'unknown'}"
