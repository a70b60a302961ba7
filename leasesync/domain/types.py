# leasesync/domain/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

RawListing = dict[str, Any]


class PaginationType(str, Enum):
    page = "page"
    offset = "offset"
    cursor = "cursor"
    bounds = "bounds"
    none = "none"


@dataclass(frozen=True)
class Contact:
    phone: str | None = None
    email: str | None = None
    name: str | None = None

    def as_dict(self) -> dict[str, str] | None:
        out = {k: v for k, v in (("phone", self.phone), ("email", self.email), ("name", self.name)) if v}
        return out or None


@dataclass(frozen=True)
class NormalizedListing:
    canonical_url: str
    source_listing_id: str | None = None
    title: str | None = None

    street: str | None = None
    unit: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    lat: float | None = None
    lng: float | None = None

    price_min: int | None = None
    price_max: int | None = None
    beds: int | None = None
    baths: float | None = None
    sqft: int | None = None
    property_type: str | None = None

    availability_date: datetime | None = None
    lease_term: str | None = None
    deposit: int | None = None
    fees_json: Any = None
    amenities_json: list[str] | None = None
    description: str | None = None
    contact_json: dict[str, str] | None = None

    image_urls: tuple[str, ...] = ()
    # size metadata some platforms embed in the image reference, keyed by url
    image_dimensions: dict[str, "ImageDimensions"] = field(default_factory=dict, compare=False)
    raw_json: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def dedupe_key(self) -> str:
        return self.source_listing_id or self.canonical_url


@dataclass(frozen=True)
class Bounds:
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float


@dataclass
class DiscoveredEndpoint:
    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    pagination_type: PaginationType = PaginationType.none
    listings_path: str = "$"
    sample_count: int = 0
    discovered_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "url": self.url,
            "method": self.method,
            "headers": dict(self.headers),
            "paginationType": self.pagination_type.value,
            "listingsPath": self.listings_path,
            "sampleCount": self.sample_count,
            "discoveredAt": self.discovered_at,
        }
        if self.body is not None:
            out["body"] = self.body
        return out

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "DiscoveredEndpoint":
        try:
            pagination = PaginationType(d.get("paginationType") or "none")
        except ValueError:
            pagination = PaginationType.none
        return cls(
            url=str(d["url"]),
            method=str(d.get("method") or "GET").upper(),
            headers={str(k): str(v) for k, v in (d.get("headers") or {}).items()},
            body=d.get("body"),
            pagination_type=pagination,
            listings_path=str(d.get("listingsPath") or "$"),
            sample_count=int(d.get("sampleCount") or 0),
            discovered_at=str(d.get("discoveredAt") or ""),
        )


@dataclass
class DiscoveryConfig:
    source: str
    target_url: str
    endpoints: list[DiscoveredEndpoint] = field(default_factory=list)

    def best_endpoint(self) -> DiscoveredEndpoint | None:
        """Highest sample count wins; ties keep the earliest."""
        best: DiscoveredEndpoint | None = None
        for ep in self.endpoints:
            if best is None or ep.sample_count > best.sample_count:
                best = ep
        return best

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "targetUrl": self.target_url,
            "endpoints": [ep.to_dict() for ep in self.endpoints],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "DiscoveryConfig":
        return cls(
            source=str(d.get("source") or ""),
            target_url=str(d.get("targetUrl") or ""),
            endpoints=[DiscoveredEndpoint.from_dict(ep) for ep in d.get("endpoints") or [] if isinstance(ep, dict)],
        )


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int
