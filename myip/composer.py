"""Request pipeline: resolve -> enrich -> compose.

`handle_request` never raises. It returns `Success` with an AggregateResponse,
or `Failure` with the ErrorRecord for the wire plus a best-effort diagnostic
response built from what the request itself carries.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import Settings
from .enrichment.service import EnrichmentRegistry, enrich_address
from .errors import ResolutionError
from .models import (
    AggregateResponse,
    EnrichmentResult,
    ErrorRecord,
    Failure,
    Outcome,
    RequestInfo,
    ResolvedAddress,
    Success,
)
from .resolver import resolve_remote_addr, strip_port

logger = logging.getLogger(__name__)

# Source tag -> AggregateResponse field.
FIELD_BY_SOURCE = {
    "dns": "remote_addr_reverse",
    "whois": "remote_addr_whois",
    "geo": "location",
    "ua": "user_agent",
}

TRACE_HEADER = "X-Cloud-Trace-Context"


def canonical_header_key(name: str) -> str:
    """Canonical MIME form, e.g. "x-real-ip" -> "X-Real-Ip"."""
    return "-".join(p[:1].upper() + p[1:].lower() for p in name.split("-"))


def header_snapshot(request: RequestInfo) -> dict[str, list[str]]:
    out: dict[str, list[str]] = {}
    for k, v in request.headers:
        out.setdefault(canonical_header_key(k), []).append(v)
    return out


def request_id_for(request: RequestInfo, settings: Settings) -> Optional[str]:
    if settings.request_id_header:
        rid = request.header(settings.request_id_header).strip()
        if rid:
            return rid

    # "TRACE_ID/SPAN_ID;o=1"
    trace = request.header(TRACE_HEADER).strip()
    if trace:
        return trace.split("/", 1)[0].split(";", 1)[0] or None
    return None


def compose(
    resolved: ResolvedAddress,
    request: RequestInfo,
    results: list[EnrichmentResult],
    *,
    request_id: Optional[str] = None,
    extra_insights: Optional[dict[str, str]] = None,
) -> AggregateResponse:
    """Merge enrichment results into a response by source tag.

    Failed sources leave their field unset and are noted in Insights.
    """
    fields: dict[str, object] = {}
    insights: dict[str, str] = {}

    for r in results:
        attr = FIELD_BY_SOURCE.get(r.source)
        if attr is None:
            continue
        if r.ok:
            fields[attr] = r.value
        else:
            insights[r.source] = r.error or "no result"

    if resolved.address and resolved.family is None:
        insights["address"] = "not an IP address"
    if extra_insights:
        insights.update(extra_insights)

    peer = strip_port(request.peer_addr)
    actual = peer if peer and peer != resolved.address else None

    return AggregateResponse(
        request_id=request_id,
        remote_addr=resolved.address,
        remote_addr_family=resolved.family,
        actual_remote_addr=actual,
        method=request.method,
        url=request.url,
        proto=request.proto,
        header=header_snapshot(request),
        insights=insights or None,
        **fields,
    )


def _diagnose(
    request: RequestInfo,
    settings: Settings,
    registry: EnrichmentRegistry,
    err: ResolutionError,
) -> AggregateResponse:
    """Best-effort response for a request with no usable address.

    Only the sources fed from the request itself (the User-Agent) can run.
    """
    insights = {"error": str(err), "peer_addr": request.peer_addr or "(none)"}
    if settings.ip_header:
        insights["ip_header"] = f"{settings.ip_header}: {request.header(settings.ip_header)!r}"

    names = [e.name for e in registry.enrichers_for(input="user_agent")]
    results = enrich_address(
        "", request.user_agent, registry=registry, timeout=settings.lookup_timeout, names=names
    )
    return compose(
        ResolvedAddress(address=""),
        request,
        results,
        request_id=request_id_for(request, settings),
        extra_insights=insights,
    )


def handle_request(
    request: RequestInfo, settings: Settings, registry: EnrichmentRegistry
) -> Outcome:
    try:
        try:
            resolved = resolve_remote_addr(request, settings)
        except ResolutionError as e:
            diagnostics = _diagnose(request, settings, registry, e)
            logger.warning("address resolution failed: %s insights=%s", e, diagnostics.insights)
            return Failure(error=ErrorRecord(message=str(e)), diagnostics=diagnostics)

        results = enrich_address(
            resolved.address,
            request.user_agent,
            registry=registry,
            timeout=settings.lookup_timeout,
        )
        response = compose(
            resolved, request, results, request_id=request_id_for(request, settings)
        )
        return Success(response=response)
    except Exception as e:
        logger.exception("request pipeline failed")
        return Failure(error=ErrorRecord(message=str(e) or type(e).__name__))
