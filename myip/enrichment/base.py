"""Enrichment interface.

An Enricher is a thin adapter over one external lookup (reverse DNS, WHOIS,
geolocation, user-agent parsing). Enrichers run in parallel threads and must
not share mutable state.

On failure an enricher raises (usually `LookupFailed`); the fan-out turns the
exception into an error entry for that source only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

EnricherInput = Literal["address", "user_agent"]


@dataclass(frozen=True)
class EnrichmentContext:
    timeout: float = 5.0


class Enricher:
    # Stable source tag, also used as the insights key.
    name: str

    # Which request value the enricher is fed.
    input: EnricherInput = "address"

    def enrich(self, value: str, ctx: EnrichmentContext) -> dict[str, Any]:
        raise NotImplementedError
