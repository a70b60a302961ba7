# leasesync/adapters/ingestion/fetcher.py
from __future__ import annotations

import copy
import logging
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ...domain.detection import extract_listings
from ...domain.types import Bounds, DiscoveredEndpoint, RawListing
from ..clients.http_resilience import ResilientHttp
from .pagination import FetchLimits, strategy_for

log = logging.getLogger(__name__)

# canonical param -> names an upstream may already be using for it
PARAM_ALIASES: dict[str, tuple[str, ...]] = {
    "page": ("page", "pageNumber"),
    "offset": ("offset", "skip"),
    "limit": ("limit", "pageSize", "size", "take"),
    "cursor": ("cursor", "after"),
}

BODY_BOUNDS_KEYS = ("bounds", "bbox", "boundingBox", "boundingbox")


def _bounds_string(b: Bounds) -> str:
    return f"{b.min_lat},{b.min_lng},{b.max_lat},{b.max_lng}"


def _pick_key(existing: list[str], canonical: str) -> str:
    lowered = {k.lower(): k for k in existing}
    for alias in PARAM_ALIASES.get(canonical, (canonical,)):
        if alias.lower() in lowered:
            return lowered[alias.lower()]
    return canonical


def _set_query(url: str, updates: dict[str, Any]) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    keys = [k for k, _ in query]
    merged: dict[str, str] = dict(query)
    for k, v in updates.items():
        merged[k] = str(v)
    # keep original order, new keys last
    ordered = [(k, merged[k]) for k in dict.fromkeys(keys + list(updates))]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(ordered), parts.fragment))


def _bounds_query(url: str, b: Bounds) -> dict[str, Any]:
    params = {k for k, _ in parse_qsl(urlsplit(url).query, keep_blank_values=True)}
    if "bounds" in params or "bbox" in params:
        return {"bounds": _bounds_string(b)}
    return {"minLat": b.min_lat, "minLng": b.min_lng, "maxLat": b.max_lat, "maxLng": b.max_lng}


def apply_params(endpoint: DiscoveredEndpoint, params: dict[str, Any] | None) -> tuple[str, Any]:
    """
    (url, body) for one request. POST endpoints with a JSON object body take
    the params in the body under whatever key names they already use;
    everything else goes on the query string.
    """
    url = endpoint.url
    body = copy.deepcopy(endpoint.body)
    if not params:
        return url, body

    use_body = endpoint.method.upper() == "POST" and isinstance(body, dict)

    bounds = params.get("bounds")
    rest = {k: v for k, v in params.items() if k != "bounds"}

    if isinstance(bounds, Bounds):
        if use_body and any(k in body for k in BODY_BOUNDS_KEYS):
            for k in BODY_BOUNDS_KEYS:
                if k in body:
                    body[k] = _bounds_string(bounds)
        elif use_body and ("sw_lat" in body or "ne_lat" in body):
            body.update(
                {"sw_lat": bounds.min_lat, "sw_lng": bounds.min_lng, "ne_lat": bounds.max_lat, "ne_lng": bounds.max_lng}
            )
        else:
            url = _set_query(url, _bounds_query(url, bounds))

    if rest:
        if use_body:
            for k, v in rest.items():
                body[_pick_key(list(body.keys()), k)] = v
        else:
            existing = [k for k, _ in parse_qsl(urlsplit(url).query, keep_blank_values=True)]
            url = _set_query(url, {_pick_key(existing, k): v for k, v in rest.items()})

    return url, body


class ListingFetcher:
    """
    Walks one discovered endpoint to exhaustion using the strategy named by
    its pagination tag. `limit` truncates the final result.
    """

    def __init__(self, endpoint: DiscoveredEndpoint, http: ResilientHttp, *, limits: FetchLimits | None = None) -> None:
        self.endpoint = endpoint
        self.http = http
        self.limits = limits or FetchLimits.from_settings()
        self.requests_made = 0

    async def fetch_page(self, params: dict[str, Any] | None) -> tuple[Any, list[RawListing]]:
        url, body = apply_params(self.endpoint, params)
        self.requests_made += 1
        data = await self.http.get_json(
            url,
            method=self.endpoint.method,
            headers=self.endpoint.headers,
            body=body,
        )
        items = extract_listings(data, self.endpoint.listings_path)
        if items is None:
            log.warning("Listings path %r did not resolve to an array (%s)", self.endpoint.listings_path, url[:120])
            return data, []
        return data, items

    async def fetch_all(self, limit: int | None = None) -> list[RawListing]:
        strategy = strategy_for(self.endpoint.pagination_type, self.limits)
        log.info(
            "Fetching %s via %s pagination (path=%s)",
            self.endpoint.url[:120],
            strategy.tag.value,
            self.endpoint.listings_path,
        )
        results = await strategy.collect(self, limit)
        log.info("Fetching complete: %d listings in %d requests", len(results), self.requests_made)
        if limit and limit > 0:
            return results[:limit]
        return results
