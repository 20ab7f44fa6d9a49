"""Client address resolution.

Precedence:
    1. `?host=` query parameter, debug configuration only
    2. the configured trusted header (Settings.ip_header), when non-empty
    3. the transport peer address

Some front ends send the address with a port attached; it is stripped when
the value parses as host:port and kept verbatim otherwise.
"""

from __future__ import annotations

import ipaddress
from typing import Optional

from .config import Settings
from .errors import ResolutionError
from .models import AddressFamily, RequestInfo, ResolvedAddress

DEBUG_HOST_PARAM = "host"


def split_host_port(value: str) -> tuple[str, str]:
    """Split "host:port", "[v6]:port" or "[v6]" style values.

    Raises ValueError when the value is not a host:port pair (bare IPv4,
    bare IPv6, or garbage).
    """
    if value.startswith("["):
        end = value.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {value!r}")
        host = value[1:end]
        rest = value[end + 1 :]
        if not rest.startswith(":"):
            raise ValueError(f"missing port in address {value!r}")
        port = rest[1:]
    else:
        if value.count(":") != 1:
            if ":" in value:
                raise ValueError(f"too many colons in address {value!r}")
            raise ValueError(f"missing port in address {value!r}")
        host, port = value.split(":", 1)

    if "[" in port or "]" in port or ":" in port:
        raise ValueError(f"invalid port in address {value!r}")
    return host, port


def strip_port(value: str) -> str:
    try:
        host, _ = split_host_port(value)
    except ValueError:
        # Not host:port; take the value as a bare address.
        return value
    return host


def address_family(address: str) -> AddressFamily:
    """Return "IPv4" or "IPv6"; raises ValueError for non-IP strings."""
    ip = ipaddress.ip_address(address)
    return "IPv4" if ip.version == 4 else "IPv6"


def pick_remote_addr(request: RequestInfo, settings: Settings) -> str:
    """Apply override/header/peer precedence and strip any port. Never fails."""
    override = request.query.get(DEBUG_HOST_PARAM, "")
    if override and settings.debug:
        return override

    remote_addr = request.peer_addr
    if settings.ip_header:
        addr = request.header(settings.ip_header).strip()
        if addr:
            remote_addr = addr

    return strip_port(remote_addr)


def resolve_remote_addr(request: RequestInfo, settings: Settings) -> ResolvedAddress:
    """Resolve the client address; only an empty address is an error.

    A value that is not an IP literal is kept verbatim with no family, and
    the address-based lookups fail on it one by one.
    """
    addr = pick_remote_addr(request, settings)
    if not addr:
        raise ResolutionError("unable to determine remote address")

    try:
        family: Optional[AddressFamily] = address_family(addr)
    except ValueError:
        family = None

    return ResolvedAddress(address=addr, family=family)
