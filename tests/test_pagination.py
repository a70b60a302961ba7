import json

import httpx
import pytest

from conftest import make_http
from leasesync.adapters.ingestion.fetcher import ListingFetcher, apply_params
from leasesync.adapters.ingestion.pagination import (
    BoundsPagination,
    CursorPagination,
    FetchLimits,
    OffsetPagination,
    PageNumberPagination,
    SingleRequest,
    split_bounds,
    strategy_for,
)
from leasesync.domain.types import Bounds, DiscoveredEndpoint, PaginationType

SMALL = FetchLimits(max_pages=3, page_size=2, max_iterations=4, grid=2, bounds=Bounds(0.0, 0.0, 2.0, 2.0))


class FakeSource:
    """Records params; `respond(params)` returns (data, items)."""

    def __init__(self, respond):
        self.respond = respond
        self.calls = []

    async def fetch_page(self, params):
        self.calls.append(params)
        return self.respond(params)


def _items(n, prefix="x"):
    return [{"id": f"{prefix}{i}", "lat": 1, "lng": 2} for i in range(n)]


def test_strategy_registry():
    assert isinstance(strategy_for(PaginationType.page, SMALL), PageNumberPagination)
    assert isinstance(strategy_for(PaginationType.bounds, SMALL), BoundsPagination)
    assert isinstance(strategy_for(PaginationType.none, SMALL), SingleRequest)


async def test_page_pagination_stops_at_max_pages():
    src = FakeSource(lambda p: (None, _items(1, prefix=str(p["page"]))))
    out = await PageNumberPagination(SMALL).collect(src)
    assert [c["page"] for c in src.calls] == [1, 2, 3]
    assert len(out) == 3


async def test_page_pagination_stops_on_empty_page():
    src = FakeSource(lambda p: (None, _items(2) if p["page"] == 1 else []))
    out = await PageNumberPagination(SMALL).collect(src)
    assert len(src.calls) == 2
    assert len(out) == 2


async def test_offset_pagination_stops_at_max_iterations():
    src = FakeSource(lambda p: (None, _items(2, prefix=str(p["offset"]))))
    out = await OffsetPagination(SMALL).collect(src)
    assert [c["offset"] for c in src.calls] == [0, 2, 4, 6]
    assert all(c["limit"] == 2 for c in src.calls)
    assert len(out) == 8


async def test_cursor_pagination_first_call_bare_and_stops_without_cursor():
    pages = {None: ({"nextCursor": "c1"}, _items(1, "a")), "c1": ({"meta": {"next": ""}}, _items(1, "b"))}
    src = FakeSource(lambda p: pages[p["cursor"] if p else None])
    out = await CursorPagination(SMALL).collect(src)
    assert src.calls == [None, {"cursor": "c1"}]
    assert [i["id"] for i in out] == ["a0", "b0"]


async def test_cursor_pagination_stops_at_max_iterations():
    counter = {"n": 0}

    def respond(p):
        counter["n"] += 1
        return {"nextCursor": f"c{counter['n']}"}, _items(1, str(counter["n"]))

    src = FakeSource(respond)
    await CursorPagination(SMALL).collect(src)
    assert len(src.calls) == SMALL.max_iterations


async def test_cursor_pagination_stops_on_repeated_cursor():
    src = FakeSource(lambda p: ({"nextCursor": "same"}, _items(1)))
    await CursorPagination(SMALL).collect(src)
    assert len(src.calls) == 2


def test_split_bounds_grid():
    tiles = split_bounds(Bounds(0.0, 0.0, 2.0, 4.0), 2)
    assert len(tiles) == 4
    assert tiles[0] == Bounds(0.0, 0.0, 1.0, 2.0)
    assert tiles[-1] == Bounds(1.0, 2.0, 2.0, 4.0)


async def test_bounds_pagination_dedupes_and_skips_failed_tile():
    seen_tiles = []

    def respond(p):
        tile = p["bounds"]
        seen_tiles.append(tile)
        if len(seen_tiles) == 2:
            raise httpx.ConnectError("boom")
        # every tile returns the shared listing plus one of its own
        return None, [{"id": "shared", "lat": 1, "lng": 1}, {"id": f"t{len(seen_tiles)}", "lat": 1, "lng": 1}]

    out = await BoundsPagination(SMALL).collect(FakeSource(respond))
    assert len(seen_tiles) == 4
    assert [i["id"] for i in out] == ["shared", "t1", "t3", "t4"]


async def test_bounds_pagination_hash_identity_for_id_less_records():
    rec = {"lat": 1, "lng": 2, "price": 900}
    out = await BoundsPagination(SMALL).collect(FakeSource(lambda p: (None, [dict(rec)])))
    assert out == [rec]


def test_apply_params_query_string():
    ep = DiscoveredEndpoint(url="https://api.x.com/list?pageNumber=1&q=mi")
    url, body = apply_params(ep, {"page": 3})
    assert url == "https://api.x.com/list?pageNumber=3&q=mi"
    assert body is None

    url, _ = apply_params(DiscoveredEndpoint(url="https://api.x.com/list"), {"offset": 50, "limit": 50})
    assert url == "https://api.x.com/list?offset=50&limit=50"


def test_apply_params_bounds_query():
    b = Bounds(1.0, 2.0, 3.0, 4.0)
    url, _ = apply_params(DiscoveredEndpoint(url="https://api.x.com/map?bbox=0,0,0,0"), {"bounds": b})
    assert "bounds=1.0%2C2.0%2C3.0%2C4.0" in url

    url, _ = apply_params(DiscoveredEndpoint(url="https://api.x.com/map"), {"bounds": b})
    assert url == "https://api.x.com/map?minLat=1.0&minLng=2.0&maxLat=3.0&maxLng=4.0"


def test_apply_params_post_body_keeps_existing_key_names():
    ep = DiscoveredEndpoint(url="https://api.x.com/search", method="POST", body={"skip": 0, "take": 20, "q": "mi"})
    url, body = apply_params(ep, {"offset": 40, "limit": 20})
    assert url == "https://api.x.com/search"
    assert body == {"skip": 40, "take": 20, "q": "mi"}
    # stored body untouched
    assert ep.body == {"skip": 0, "take": 20, "q": "mi"}

    ep = DiscoveredEndpoint(url="https://api.x.com/map", method="POST", body={"sw_lat": 0, "ne_lat": 0})
    _, body = apply_params(ep, {"bounds": Bounds(1.0, 2.0, 3.0, 4.0)})
    assert body == {"sw_lat": 1.0, "sw_lng": 2.0, "ne_lat": 3.0, "ne_lng": 4.0}


async def test_fetcher_walks_pages_over_http():
    def handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        items = _items(2, prefix=f"p{page}") if page <= 2 else []
        return httpx.Response(200, json={"data": {"items": items}})

    http = make_http(handler)
    ep = DiscoveredEndpoint(url="https://api.x.com/list", pagination_type=PaginationType.page, listings_path="data.items")
    fetcher = ListingFetcher(ep, http, limits=SMALL)
    out = await fetcher.fetch_all()
    assert [i["id"] for i in out] == ["p10", "p11", "p20", "p21"]
    assert fetcher.requests_made == 3
    await http.client.aclose()


async def test_fetcher_truncates_to_limit_and_sends_post_body():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_items(5))

    http = make_http(handler)
    ep = DiscoveredEndpoint(url="https://api.x.com/search", method="POST", body={"filters": {"city": "Flint"}})
    out = await ListingFetcher(ep, http, limits=SMALL).fetch_all(limit=3)
    assert len(out) == 3
    assert bodies == [{"filters": {"city": "Flint"}}]
    await http.client.aclose()


async def test_fetcher_unresolvable_path_is_empty_page():
    http = make_http(lambda request: httpx.Response(200, json={"data": {"items": {"not": "a list"}}}))
    ep = DiscoveredEndpoint(url="https://api.x.com/list", listings_path="data.items")
    assert await ListingFetcher(ep, http, limits=SMALL).fetch_all() == []
    await http.client.aclose()
