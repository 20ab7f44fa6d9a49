"""Reverse DNS (PTR) lookups via dnspython."""

from __future__ import annotations

from typing import Any

import dns.exception
import dns.resolver
import dns.reversename

from ..errors import LookupFailed
from .base import Enricher, EnrichmentContext


def reverse_lookup(address: str, timeout: float = 5.0) -> list[str]:
    """Return the PTR names for `address`, without the trailing dot."""
    try:
        qname = dns.reversename.from_address(address)
    except (ValueError, dns.exception.SyntaxError) as e:
        raise LookupFailed(f"invalid address for reverse lookup: {address}") from e

    resolver = dns.resolver.Resolver()
    resolver.timeout = timeout
    resolver.lifetime = timeout

    try:
        answers = resolver.resolve(qname, "PTR")
    except dns.resolver.NXDOMAIN as e:
        raise LookupFailed(f"no PTR record for {address}") from e
    except dns.resolver.NoAnswer as e:
        raise LookupFailed(f"no PTR record for {address}") from e
    except dns.exception.Timeout as e:
        raise LookupFailed(f"reverse lookup timed out for {address}") from e
    except dns.exception.DNSException as e:
        raise LookupFailed(f"reverse lookup failed: {e}") from e

    return [str(r).rstrip(".") for r in answers]


class ReverseDnsEnricher(Enricher):
    name = "dns"

    def enrich(self, value: str, ctx: EnrichmentContext) -> dict[str, Any]:
        return {"Names": reverse_lookup(value, timeout=ctx.timeout)}
