"""Built-in enrichers.

- dns, whois, geo: fed the resolved client address
- ua: fed the request's User-Agent header
"""

from __future__ import annotations

from typing import Optional

from ..config import Settings
from .base import Enricher
from .geo import GeoEnricher
from .service import EnrichmentRegistry
from .reverse_dns import ReverseDnsEnricher
from .useragent import UserAgentEnricher
from .whois_lookup import WhoisEnricher


def builtin_enrichers(settings: Optional[Settings] = None) -> dict[str, Enricher]:
    settings = settings or Settings()
    return {
        "dns": ReverseDnsEnricher(),
        "whois": WhoisEnricher(),
        "geo": GeoEnricher(url_template=settings.geo_url),
        "ua": UserAgentEnricher(),
    }


def default_registry(settings: Optional[Settings] = None) -> EnrichmentRegistry:
    return EnrichmentRegistry(builtin_enrichers(settings))
