"""Enrichment fan-out.

Every selected enricher is submitted at once and joined with a single bounded
wait. All sources start together, so the shared deadline gives each one the
full per-source timeout. A source that fails or is still running at the
deadline yields an error entry; it never affects the other sources and is
never retried.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Optional, cast

from ..models import EnrichmentResult, SourceName
from .base import Enricher, EnricherInput, EnrichmentContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichmentRegistry:
    """Enrichers keyed by source tag. Insertion order is the order results are reported in."""

    enrichers: dict[str, Enricher]

    def __post_init__(self):
        for tag, enricher in self.enrichers.items():
            if enricher.name != tag:
                raise ValueError(f"enricher {enricher.name!r} registered under source tag {tag!r}")

    @property
    def sources(self) -> list[str]:
        return list(self.enrichers)

    def enrichers_for(
        self, sources: Optional[Iterable[str]] = None, *, input: Optional[EnricherInput] = None
    ) -> list[Enricher]:
        """Enrichers for `sources` (all by default), skipping unknown tags.

        `input` keeps only the enrichers fed that part of the request.
        """
        wanted = self.sources if sources is None else sources
        selected = [self.enrichers[s] for s in wanted if s in self.enrichers]
        if input is not None:
            selected = [e for e in selected if e.input == input]
        return selected


def _input_for(enricher: Enricher, address: str, user_agent: str) -> str:
    return user_agent if enricher.input == "user_agent" else address


def _run(enricher: Enricher, value: str, ctx: EnrichmentContext) -> dict[str, Any]:
    out = enricher.enrich(value, ctx)
    if not isinstance(out, dict):
        raise TypeError("enricher returned non-dict result")
    return out


def enrich_address(
    address: str,
    user_agent: str,
    *,
    registry: EnrichmentRegistry,
    timeout: float = 5.0,
    names: Optional[Iterable[str]] = None,
) -> list[EnrichmentResult]:
    """Run the enrichers concurrently; one result per enricher, in registry order."""
    enrichers = registry.enrichers_for(names)
    if not enrichers:
        return []

    ctx = EnrichmentContext(timeout=timeout)
    executor = ThreadPoolExecutor(max_workers=len(enrichers), thread_name_prefix="myip-enrich")
    try:
        futures = [
            (e, executor.submit(_run, e, _input_for(e, address, user_agent), ctx))
            for e in enrichers
        ]
        _, not_done = wait([f for _, f in futures], timeout=timeout)

        results: list[EnrichmentResult] = []
        for enricher, future in futures:
            source = cast(SourceName, enricher.name)

            if future in not_done:
                future.cancel()
                logger.info("enrichment source=%s address=%s timed out after %.1fs", source, address, timeout)
                results.append(
                    EnrichmentResult(source=source, error=f"timed out after {timeout:g}s", timed_out=True)
                )
                continue

            err = future.exception()
            if err is not None:
                logger.debug("enrichment source=%s address=%s failed: %s", source, address, err)
                results.append(EnrichmentResult(source=source, error=str(err) or type(err).__name__))
                continue

            results.append(EnrichmentResult(source=source, value=future.result()))
    finally:
        # Do not wait for abandoned lookups; they finish (or die) in the background.
        executor.shutdown(wait=False, cancel_futures=True)

    return results
