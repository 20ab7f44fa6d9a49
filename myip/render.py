"""Content negotiation and rendering.

Scripts (curl, wget, ...) get a short plain-text report; every other client
gets JSON. Both renderers take an Outcome, so a body is always exactly one of
AggregateResponse or ErrorRecord.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

from starlette.responses import Response

from .models import AggregateResponse, ErrorRecord, Failure, Outcome, Success

logger = logging.getLogger(__name__)

# Case-sensitive User-Agent prefixes of command line tools.
SCRIPT_PREFIXES = ("curl/", "Wget/", "HTTPie/")


class ClientKind(str, Enum):
    SCRIPT = "script"
    BROWSER = "browser"


def classify(user_agent: Optional[str]) -> ClientKind:
    if user_agent and user_agent.startswith(SCRIPT_PREFIXES):
        return ClientKind.SCRIPT
    return ClientKind.BROWSER


def _number(x: Any) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return 0.0


def format_location(location: Optional[dict[str, Any]]) -> str:
    """City, region and country, with coordinates only when both are non-zero."""
    loc = location or {}
    line = f"{loc.get('City') or ''} {loc.get('Region') or ''} {loc.get('Country') or ''}"
    lat, lon = _number(loc.get("Lat")), _number(loc.get("Long"))
    if lat != 0.0 and lon != 0.0:
        line += f" ({lat:.4f}, {lon:.4f}) "
    return line


def format_text(response: AggregateResponse) -> str:
    reverse = response.remote_addr_reverse or {}
    whois = response.remote_addr_whois or {}

    lines = [f"IP: {response.remote_addr}"]
    for name in reverse.get("Names") or []:
        lines.append(f"DNS: {name}")
    lines.append("")
    lines.append("WHOIS:")
    lines.append(str(whois.get("Body") or ""))
    lines.append("")
    lines.append(f"Location: {format_location(response.location)}")
    lines.append("")
    lines.append(f"ID: {response.request_id or ''}")
    return "\n".join(lines) + "\n"


def render_text(outcome: Outcome) -> Response:
    if isinstance(outcome, Failure):
        return Response(outcome.error.message, status_code=500, media_type="text/plain")

    try:
        body = format_text(outcome.response)
    except Exception as e:
        logger.exception("text rendering failed")
        return Response(str(e), status_code=500, media_type="text/plain")

    return Response(body, status_code=200, media_type="text/plain")


def allowed_origin(host: str, *, tls: bool) -> str:
    # Reflects TLS terminated by this process only; a TLS proxy in front still yields http.
    scheme = "https://" if tls else "http://"
    return scheme + host


def render_json(outcome: Outcome, *, tls: bool, host: str) -> Response:
    headers = {
        "Access-Control-Allow-Origin": allowed_origin(host, tls=tls),
        "Vary": "Origin",
    }

    status = 200
    if isinstance(outcome, Success):
        obj: Any = outcome.response
    else:
        status = 500
        obj = outcome.error

    try:
        body = json.dumps(obj.to_wire()) + "\n"
    except Exception as e:
        logger.exception("json rendering failed")
        status = 500
        body = json.dumps(ErrorRecord(message=str(e) or type(e).__name__).to_wire()) + "\n"

    return Response(body, status_code=status, headers=headers, media_type="application/json")
