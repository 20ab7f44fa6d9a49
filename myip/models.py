"""Models for myip.

Internal values are plain dataclasses. The two shapes that go on the wire
(AggregateResponse, ErrorRecord) are pydantic models whose aliases keep the
historical JSON keys (`RemoteAddr`, `RemoteAddrReverse`, ...).

A handled request always ends as an `Outcome`: either `Success` or `Failure`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

AddressFamily = Literal["IPv4", "IPv6"]
SourceName = Literal["dns", "whois", "geo", "ua"]


@dataclass(frozen=True)
class RequestInfo:
    """What the pipeline needs to know about an inbound HTTP request."""

    method: str
    url: str
    proto: str

    # Raw (name, value) pairs in arrival order; names as sent by the client.
    headers: list[tuple[str, str]] = field(default_factory=list)
    query: dict[str, str] = field(default_factory=dict)

    # Address observed on the transport (no port).
    peer_addr: str = ""

    # True only when TLS was terminated by this process.
    tls: bool = False

    def header(self, name: str) -> str:
        """Return the first value of header `name` (case-insensitive), or ""."""
        wanted = name.lower()
        for k, v in self.headers:
            if k.lower() == wanted:
                return v
        return ""

    @property
    def user_agent(self) -> str:
        return self.header("User-Agent")


@dataclass(frozen=True)
class ResolvedAddress:
    address: str
    family: Optional[AddressFamily] = None


@dataclass(frozen=True)
class EnrichmentResult:
    source: SourceName
    value: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


class AggregateResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    request_id: Optional[str] = Field(default=None, alias="RequestID")

    remote_addr: str = Field(alias="RemoteAddr")
    remote_addr_family: Optional[str] = Field(default=None, alias="RemoteAddrFamily")
    remote_addr_reverse: Optional[dict[str, Any]] = Field(default=None, alias="RemoteAddrReverse")
    remote_addr_whois: Optional[dict[str, Any]] = Field(default=None, alias="RemoteAddrWhois")

    # The address observed on the transport, when a header overrode it.
    actual_remote_addr: Optional[str] = Field(default=None, alias="ActualRemoteAddr")

    method: str = Field(alias="Method")
    url: str = Field(alias="URL")
    proto: str = Field(alias="Proto")
    header: dict[str, list[str]] = Field(default_factory=dict, alias="Header")

    location: Optional[dict[str, Any]] = Field(default=None, alias="Location")
    user_agent: Optional[dict[str, Any]] = Field(default=None, alias="UserAgent")

    insights: Optional[dict[str, str]] = Field(default=None, alias="Insights")

    def to_wire(self) -> dict[str, Any]:
        """JSON-safe dict using wire keys; unset optional fields are omitted."""
        out = self.model_dump(mode="json", by_alias=True)
        return {k: v for k, v in out.items() if v is not None}


class ErrorRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str = Field(alias="Error")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class Success:
    response: AggregateResponse


@dataclass(frozen=True)
class Failure:
    error: ErrorRecord

    # Best-effort response built from the request alone. Logged, never sent.
    diagnostics: Optional[AggregateResponse] = None


Outcome = Union[Success, Failure]
