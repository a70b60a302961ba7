# leasesync/adapters/ingestion/pagination.py
"""
One class per pagination style. Each owns its own termination rules; the
hard caps in FetchLimits are what guarantees a misbehaving upstream can't
keep us looping.
"""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ...config import settings
from ...domain.detection import find_next_cursor
from ...domain.types import Bounds, PaginationType, RawListing

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchLimits:
    max_pages: int = 100
    page_size: int = 50
    max_iterations: int = 200
    grid: int = 4
    bounds: Bounds = field(default_factory=lambda: Bounds(min_lat=41.7, min_lng=-90.4, max_lat=46.0, max_lng=-82.4))

    @classmethod
    def from_settings(cls) -> "FetchLimits":
        return cls(
            max_pages=int(settings.FETCH_MAX_PAGES),
            page_size=int(settings.FETCH_OFFSET_PAGE_SIZE),
            max_iterations=int(settings.FETCH_MAX_ITERATIONS),
            grid=int(settings.FETCH_BOUNDS_GRID),
            bounds=Bounds(
                min_lat=float(settings.FETCH_BOUNDS_MIN_LAT),
                min_lng=float(settings.FETCH_BOUNDS_MIN_LNG),
                max_lat=float(settings.FETCH_BOUNDS_MAX_LAT),
                max_lng=float(settings.FETCH_BOUNDS_MAX_LNG),
            ),
        )


class PageSource(Protocol):
    async def fetch_page(self, params: dict[str, Any] | None) -> tuple[Any, list[RawListing]]:
        """(decoded body, listings at the endpoint's listings path)."""
        ...


def _reached(results: list[RawListing], limit: int | None) -> bool:
    return bool(limit) and len(results) >= int(limit)


class PaginationStrategy:
    tag: PaginationType = PaginationType.none

    def __init__(self, limits: FetchLimits) -> None:
        self.limits = limits

    async def collect(self, source: PageSource, limit: int | None = None) -> list[RawListing]:
        raise NotImplementedError


class SingleRequest(PaginationStrategy):
    tag = PaginationType.none

    async def collect(self, source: PageSource, limit: int | None = None) -> list[RawListing]:
        _, items = await source.fetch_page(None)
        return list(items)


class PageNumberPagination(PaginationStrategy):
    tag = PaginationType.page

    async def collect(self, source: PageSource, limit: int | None = None) -> list[RawListing]:
        results: list[RawListing] = []
        for page in range(1, self.limits.max_pages + 1):
            log.info("Fetching page %d", page)
            _, items = await source.fetch_page({"page": page})
            if not items:
                break
            results.extend(items)
            if _reached(results, limit):
                break
        return results


class OffsetPagination(PaginationStrategy):
    tag = PaginationType.offset

    async def collect(self, source: PageSource, limit: int | None = None) -> list[RawListing]:
        results: list[RawListing] = []
        size = self.limits.page_size
        for i in range(self.limits.max_iterations):
            offset = i * size
            log.info("Fetching offset %d", offset)
            _, items = await source.fetch_page({"offset": offset, "limit": size})
            if not items:
                break
            results.extend(items)
            if _reached(results, limit):
                break
        return results


class CursorPagination(PaginationStrategy):
    tag = PaginationType.cursor

    async def collect(self, source: PageSource, limit: int | None = None) -> list[RawListing]:
        results: list[RawListing] = []
        cursor: str | None = None
        for _ in range(self.limits.max_iterations):
            log.info("Fetching cursor %s", cursor)
            data, items = await source.fetch_page({"cursor": cursor} if cursor else None)
            if not items:
                break
            results.extend(items)

            nxt = find_next_cursor(data)
            if not nxt or nxt == cursor:
                break
            cursor = nxt
            if _reached(results, limit):
                break
        return results


def listing_identity(listing: RawListing) -> str:
    """Own id, then sourceListingId, then a hash of the whole record."""
    for key in ("id", "sourceListingId"):
        v = listing.get(key)
        if v is not None and str(v).strip():
            return f"{key}:{v}"
    blob = json.dumps(listing, sort_keys=True, default=str)
    return "sha256:" + hashlib.sha256(blob.encode("utf-8")).hexdigest()


def split_bounds(bounds: Bounds, grid: int) -> list[Bounds]:
    """grid x grid tiles, row-major from the south-west corner."""
    grid = max(1, int(grid))
    lat_step = (bounds.max_lat - bounds.min_lat) / grid
    lng_step = (bounds.max_lng - bounds.min_lng) / grid
    tiles: list[Bounds] = []
    for i in range(grid):
        for j in range(grid):
            tiles.append(
                Bounds(
                    min_lat=bounds.min_lat + i * lat_step,
                    min_lng=bounds.min_lng + j * lng_step,
                    max_lat=bounds.min_lat + (i + 1) * lat_step,
                    max_lng=bounds.min_lng + (j + 1) * lng_step,
                )
            )
    return tiles


class BoundsPagination(PaginationStrategy):
    """
    Tiles the configured box and queries each tile once. Neighbouring tiles
    overlap in what they return, so results are deduplicated by identity.
    A failing tile is logged and skipped.
    """

    tag = PaginationType.bounds

    async def collect(self, source: PageSource, limit: int | None = None) -> list[RawListing]:
        results: list[RawListing] = []
        seen: set[str] = set()
        for tile in split_bounds(self.limits.bounds, self.limits.grid):
            try:
                _, items = await source.fetch_page({"bounds": tile})
            except Exception as e:
                log.warning("Failed to fetch bounds tile %s: %s", tile, e)
                continue

            for item in items:
                key = listing_identity(item)
                if key in seen:
                    continue
                seen.add(key)
                results.append(item)

            if _reached(results, limit):
                break
        return results


STRATEGIES: dict[PaginationType, type[PaginationStrategy]] = {
    cls.tag: cls
    for cls in (SingleRequest, PageNumberPagination, OffsetPagination, CursorPagination, BoundsPagination)
}


def strategy_for(tag: PaginationType, limits: FetchLimits) -> PaginationStrategy:
    return STRATEGIES.get(tag, SingleRequest)(limits)
