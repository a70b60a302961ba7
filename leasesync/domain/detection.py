# leasesync/domain/detection.py
"""
Pure heuristics used by endpoint discovery and the listing fetcher.

Nothing in here touches the network or a browser; everything operates on
plain decoded JSON values so it can be exercised directly in tests.
"""
from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlsplit

from .types import PaginationType

# Keys that suggest a container holding listings
LISTING_KEYS: tuple[str, ...] = (
    "listings",
    "properties",
    "results",
    "items",
    "data",
    "records",
    "units",
    "rentals",
    "apartments",
)

# Keys that suggest a single listing object
LISTING_FIELD_KEYS: tuple[str, ...] = (
    "lat",
    "lng",
    "latitude",
    "longitude",
    "address",
    "price",
    "rent",
    "beds",
    "bedrooms",
    "baths",
    "bathrooms",
)

LISTING_SCORE_THRESHOLD = 2
MAX_DETECT_DEPTH = 5

CURSOR_KEYS: tuple[str, ...] = ("nextCursor", "cursor", "next", "nextPage", "after", "endCursor")
CURSOR_CONTAINERS: tuple[str, ...] = ("pagination", "meta")

KEPT_HEADERS: frozenset[str] = frozenset({"content-type", "authorization", "x-api-key", "accept"})
JSON_CONTENT_TYPES: tuple[str, ...] = ("application/json", "text/json")

# (tag, query param names, lowercased body keys) in priority order
_PAGINATION_RULES: tuple[tuple[PaginationType, tuple[str, ...], tuple[str, ...]], ...] = (
    (PaginationType.page, ("page", "pageNumber"), ("page", "pagenumber")),
    (PaginationType.offset, ("offset", "skip"), ("offset", "skip")),
    (PaginationType.cursor, ("cursor", "after"), ("cursor", "after")),
    (PaginationType.bounds, ("bounds", "bbox", "minLat", "sw_lat"), ("bounds", "bbox", "boundingbox", "sw_lat", "ne_lat")),
)


def listing_score(obj: Any) -> int:
    """Number of listing-ish field names present (case-insensitive)."""
    if not isinstance(obj, dict):
        return 0
    keys = {str(k).lower() for k in obj.keys()}
    return sum(1 for f in LISTING_FIELD_KEYS if f in keys)


def looks_like_listing(obj: Any) -> bool:
    return listing_score(obj) >= LISTING_SCORE_THRESHOLD


def _is_listing_array(val: Any) -> bool:
    return isinstance(val, list) and len(val) > 0 and looks_like_listing(val[0])


def detect_listings_path(obj: Any, depth: int = 0, path: str = "") -> tuple[str, int] | None:
    """
    Locate the listings array inside a decoded JSON body.

    Returns (dot_path, count) or None. "$" means the body itself is the array.
    Known container keys are checked before recursing into other values.
    """
    if depth > MAX_DETECT_DEPTH:
        return None
    if not isinstance(obj, (dict, list)):
        return None

    if isinstance(obj, list):
        if _is_listing_array(obj):
            return (path or "$", len(obj))
        return None

    for key in LISTING_KEYS:
        val = obj.get(key)
        if _is_listing_array(val):
            return (f"{path}.{key}" if path else key, len(val))

    for key, val in obj.items():
        if isinstance(val, (dict, list)) and val:
            found = detect_listings_path(val, depth + 1, f"{path}.{key}" if path else str(key))
            if found:
                return found

    return None


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dot path produced by detect_listings_path. "$" is the root."""
    if path == "$" or not path:
        return data
    cur: Any = data
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def extract_listings(data: Any, path: str) -> list[dict[str, Any]] | None:
    """Listing dicts at `path`, or None when the path isn't an array."""
    raw = resolve_path(data, path)
    if not isinstance(raw, list):
        return None
    return [x for x in raw if isinstance(x, dict)]


def find_next_cursor(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in CURSOR_KEYS:
        v = data.get(key)
        if isinstance(v, str) and v:
            return v
        for container in CURSOR_CONTAINERS:
            nested = data.get(container)
            if isinstance(nested, dict):
                v = nested.get(key)
                if isinstance(v, str) and v:
                    return v
    return None


def detect_pagination_type(url: str, body: Any = None) -> PaginationType:
    """
    Infer pagination from query params first, then from POST body keys.
    page -> offset -> cursor -> bounds -> none.
    """
    try:
        params = {k for k, _ in parse_qsl(urlsplit(url).query, keep_blank_values=True)}
    except ValueError:
        params = set()

    url_lower = url.lower()
    for tag, query_names, _ in _PAGINATION_RULES:
        if any(n in params for n in query_names):
            return tag
        if tag is PaginationType.bounds and ("bound" in url_lower or "bbox" in url_lower):
            return tag

    if isinstance(body, dict):
        body_keys = {str(k).lower() for k in body.keys()}
        for tag, _, body_names in _PAGINATION_RULES:
            if any(n in body_keys for n in body_names):
                return tag

    return PaginationType.none


def is_json_response(content_type: str | None, status: int) -> bool:
    if not (200 <= int(status) < 300):
        return False
    ct = (content_type or "").lower()
    return any(t in ct for t in JSON_CONTENT_TYPES)


def filter_headers(headers: dict[str, str] | None) -> dict[str, str]:
    return {k: v for k, v in (headers or {}).items() if k.lower() in KEPT_HEADERS}
