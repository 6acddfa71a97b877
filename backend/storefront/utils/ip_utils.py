"""
IP Utilities

Client IP extraction for rate limiting. X-Forwarded-For is honoured only
when the direct peer is a configured trusted proxy.
"""
import ipaddress
import logging
from fastapi import Request

from storefront.configuration import get_settings

logger = logging.getLogger(__name__)


def _is_trusted_proxy(ip: str) -> bool:
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False

    for proxy in get_settings().trusted_proxies:
        try:
            if addr in ipaddress.ip_network(proxy, strict=False):
                return True
        except ValueError:
            logger.warning(f"Ignoring malformed TRUSTED_PROXIES entry: {proxy}")
    return False


def get_client_ip(request: Request) -> str:
    direct_ip = request.client.host if request.client else None

    if direct_ip and _is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # "client, proxy1, proxy2": first hop that is not ours
            hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
            for hop in hops:
                if not _is_trusted_proxy(hop):
                    return hop
            if hops:
                return hops[0]

    return direct_ip or "unknown"
