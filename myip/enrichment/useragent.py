"""User-agent parsing via ua-parser (uap-core regexes)."""

from __future__ import annotations

from typing import Any, Optional

import ua_parser

from ..errors import LookupFailed
from .base import Enricher, EnrichmentContext


def _part(obj: Optional[Any], fields: tuple[str, ...]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields:
        key = "".join(p.capitalize() for p in f.split("_"))
        out[key] = getattr(obj, f, None) if obj is not None else None
    if obj is None:
        out["Family"] = "Other"
    return out


def parse_user_agent(user_agent: str) -> dict[str, Any]:
    if not user_agent.strip():
        raise LookupFailed("no user agent supplied")

    result = ua_parser.parse(user_agent)
    return {
        "UserAgent": _part(result.user_agent, ("family", "major", "minor", "patch")),
        "Os": _part(result.os, ("family", "major", "minor", "patch", "patch_minor")),
        "Device": _part(result.device, ("family", "brand", "model")),
    }


class UserAgentEnricher(Enricher):
    name = "ua"
    input = "user_agent"

    def enrich(self, value: str, ctx: EnrichmentContext) -> dict[str, Any]:
        return parse_user_agent(value)
