"""Rate limiting for bulk write endpoints.

Sync pushes and imports rewrite many rows per request, so they are keyed
per client IP. X-Forwarded-For is honoured only from local/private proxy
addresses (override with HOLARCHY_TRUSTED_PROXY_CIDRS, comma-separated).
"""

import ipaddress
import os
from functools import lru_cache

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("rate_limit")

_DEFAULT_TRUSTED_CIDRS = (
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
)


@lru_cache
def _trusted_networks() -> tuple:
    raw = os.environ.get("HOLARCHY_TRUSTED_PROXY_CIDRS", "")
    cidrs = [s.strip() for s in raw.split(",") if s.strip()] or list(_DEFAULT_TRUSTED_CIDRS)
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
    return tuple(networks)


def _is_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in _trusted_networks())


def get_client_ip(request) -> str:
    """Client IP, taking the leftmost X-Forwarded-For hop only behind a trusted proxy."""
    direct_ip = get_remote_address(request)
    if _is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip
    return direct_ip


def bulk_write_limit() -> str:
    """Limit string for sync push and import, read from settings."""
    return get_settings().sync_rate_limit


limiter = Limiter(key_func=get_client_ip)
