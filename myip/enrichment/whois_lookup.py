"""WHOIS lookups for IP addresses.

Uses python-whois' NICClient against ARIN, which answers for every address
and refers to the owning registry (RIPE, APNIC, ...) when it is not the
authority. The raw text is returned untouched; parsing WHOIS output for IPs
is registry-specific and the text report shows the body as-is.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional

from whois import NICClient

from ..errors import LookupFailed
from .base import Enricher, EnrichmentContext

START_SERVER = NICClient.ANICHOST

# Largest body we keep; some registries return very long records.
MAX_BODY = 64 * 1024

_REFER_RE = re.compile(r"^\s*(?:refer|whois|ReferralServer):\s*(?:whois://)?(\S+)", re.I | re.M)


def _referral(text: str) -> Optional[str]:
    m = _REFER_RE.search(text)
    if not m:
        return None
    server = m.group(1).strip().rstrip("/")
    # ReferralServer may carry a port ("whois.ripe.net:43").
    return server.split(":", 1)[0] or None


def whois_query(address: str, timeout: float = 10.0) -> dict[str, Any]:
    try:
        ipaddress.ip_address(address)
    except ValueError:
        raise LookupFailed(f"invalid address {address!r}") from None

    client = NICClient()
    try:
        body = client.whois(address, START_SERVER, NICClient.WHOIS_RECURSE, timeout=timeout)
    except OSError as e:
        raise LookupFailed(f"whois query failed: {e}") from e

    if not body or not body.strip():
        raise LookupFailed(f"empty whois response for {address}")
    # NICClient reports socket errors in-band by default.
    if body.startswith("Socket not responding"):
        raise LookupFailed(f"whois query failed: {body.strip()}")

    return {
        "Query": address,
        "Server": _referral(body) or START_SERVER,
        "Body": body[:MAX_BODY].strip(),
    }


class WhoisEnricher(Enricher):
    name = "whois"

    def enrich(self, value: str, ctx: EnrichmentContext) -> dict[str, Any]:
        return whois_query(value, timeout=ctx.timeout)
