"""IP geolocation via ip-api.com (JSON over HTTP, no API key).

Non-routable addresses are rejected before any network I/O.
"""

from __future__ import annotations

import ipaddress
import json
from typing import Any, Optional
from urllib.parse import quote, urlsplit, urlunsplit
from urllib.request import Request, urlopen

from ..errors import LookupFailed
from .base import Enricher, EnrichmentContext

DEFAULT_URL = "http://ip-api.com/json/{ip}"

# ip-api fields: keep small and stable.
FIELDS = ",".join(
    [
        "status",
        "message",
        "country",
        "countryCode",
        "regionName",
        "city",
        "lat",
        "lon",
        "timezone",
        "isp",
        "org",
        "as",
        "query",
    ]
)

USER_AGENT = "myip/geo"


def _http_get_json(url: str, *, timeout: float) -> dict[str, Any]:
    req = Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"})
    with urlopen(req, timeout=timeout) as resp:
        raw = resp.read()
    try:
        out = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise LookupFailed("geolocation service returned invalid JSON") from e
    if not isinstance(out, dict):
        raise LookupFailed("geolocation service returned unexpected JSON")
    return out


def _float(x: Any) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return 0.0


def _not_routable(address: str) -> Optional[str]:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return "invalid address"
    if ip.is_loopback:
        return "loopback address"
    if ip.is_private:
        return "private address"
    if ip.is_link_local or ip.is_reserved or ip.is_multicast or ip.is_unspecified:
        return "non-routable address"
    return None


def _with_fields(url: str) -> str:
    """Add the fields parameter, keeping any query the configured URL already has."""
    parts = urlsplit(url)
    query = f"{parts.query}&fields={FIELDS}" if parts.query else f"fields={FIELDS}"
    return urlunsplit(parts._replace(query=query))


def geolocate(address: str, *, timeout: float = 5.0, url_template: str = DEFAULT_URL) -> dict[str, Any]:
    reason = _not_routable(address)
    if reason:
        raise LookupFailed(f"no location for {reason} {address}")

    url = _with_fields(url_template.format(ip=quote(address, safe=":.")))
    try:
        j = _http_get_json(url, timeout=timeout)
    except OSError as e:
        raise LookupFailed(f"geolocation request failed: {type(e).__name__}") from e

    if (j.get("status") or "").lower() != "success":
        msg = j.get("message")
        raise LookupFailed(f"geolocation failed: {msg}" if msg else "geolocation failed")

    return {
        "City": j.get("city") or "",
        "Region": j.get("regionName") or "",
        "Country": j.get("country") or "",
        "CountryCode": j.get("countryCode") or "",
        "Lat": _float(j.get("lat")),
        "Long": _float(j.get("lon")),
        "Timezone": j.get("timezone") or "",
        "ISP": j.get("isp") or "",
        "Org": j.get("org") or "",
        "AS": j.get("as") or "",
    }


class GeoEnricher(Enricher):
    name = "geo"

    def __init__(self, url_template: str = DEFAULT_URL):
        self.url_template = url_template

    def enrich(self, value: str, ctx: EnrichmentContext) -> dict[str, Any]:
        return geolocate(value, timeout=ctx.timeout, url_template=self.url_template)
