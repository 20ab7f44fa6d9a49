from .base import Enricher, EnrichmentContext
from .builtins import builtin_enrichers, default_registry
from .service import EnrichmentRegistry, enrich_address

__all__ = [
    "Enricher",
    "EnrichmentContext",
    "EnrichmentRegistry",
    "builtin_enrichers",
    "default_registry",
    "enrich_address",
]
