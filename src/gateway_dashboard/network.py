# src/gateway_dashboard/network.py

import ipaddress
import logging
import re
from typing import Optional

log = logging.getLogger(__name__)

_DOTTED_QUAD = re.compile(r"^([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})$")

BLOCKED_NETWORKS = (
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("224.0.0.0/4"),
    ipaddress.ip_network("240.0.0.0/4"),
)
BROADCAST_ADDRESS = ipaddress.ip_address("255.255.255.255")

ALLOWED_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


def _parse_gateway_ip(ip: Optional[str]) -> Optional[ipaddress.IPv4Address]:
    if not ip or not isinstance(ip, str):
        return None
    match = _DOTTED_QUAD.fullmatch(ip.strip())
    if not match:
        return None
    if any(int(octet) > 255 for octet in match.groups()):
        return None

    addr = ipaddress.IPv4Address(".".join(str(int(octet)) for octet in match.groups()))
    if addr == BROADCAST_ADDRESS:
        return None
    if any(addr in net for net in BLOCKED_NETWORKS):
        return None
    if not any(addr in net for net in ALLOWED_NETWORKS):
        return None
    return addr


def is_valid_gateway_ip(ip: Optional[str]) -> bool:
    """
    True when `ip` is a dotted-quad IPv4 address inside an RFC1918 range and
    outside the loopback/link-local/multicast/reserved/broadcast blocks.
    """
    return _parse_gateway_ip(ip) is not None


def resolve_gateway_ip(candidate: Optional[str], default: str) -> str:
    """
    Returns the canonical form of `candidate` when it is a usable gateway
    address, `default` otherwise.

    Never raises: a rejected address is replaced, not reported to the caller.
    """
    if candidate is None or not candidate.strip():
        return default
    addr = _parse_gateway_ip(candidate)
    if addr is not None:
        return str(addr)
    log.warning("Rejected gateway address %r, using default %s", candidate, default)
    return default
