from datetime import datetime, timezone

from leasesync.adapters.discovery.config_store import load_config, save_config
from leasesync.adapters.discovery.interceptor import CandidateCollector
from leasesync.domain.detection import (
    detect_listings_path,
    detect_pagination_type,
    extract_listings,
    filter_headers,
    find_next_cursor,
    is_json_response,
    listing_score,
)
from leasesync.domain.types import DiscoveredEndpoint, DiscoveryConfig, PaginationType

LISTING = {"id": 1, "lat": 42.1, "lng": -83.2, "price": 1200}


def test_listing_score_is_case_insensitive():
    assert listing_score({"Latitude": 1, "Longitude": 2}) == 2
    assert listing_score({"name": "x", "price": 1}) == 1
    assert listing_score(["not", "a", "dict"]) == 0


def test_detect_root_array():
    assert detect_listings_path([LISTING, LISTING]) == ("$", 2)


def test_detect_container_key_before_recursion():
    body = {"meta": {"listings": [LISTING]}, "results": [LISTING, LISTING, LISTING]}
    assert detect_listings_path(body) == ("results", 3)


def test_detect_nested_path():
    body = {"payload": {"page": {"items": [LISTING]}}}
    assert detect_listings_path(body) == ("payload.page.items", 1)


def test_detect_rejects_weak_or_deep_matches():
    assert detect_listings_path({"items": [{"name": "x", "price": 1}]}) is None
    deep = [LISTING]
    for i in range(7):
        deep = {f"k{i}": deep}
    assert detect_listings_path(deep) is None


def test_extract_listings_path_must_be_array():
    data = {"data": {"items": [LISTING, "junk"]}}
    assert extract_listings(data, "data.items") == [LISTING]
    assert extract_listings(data, "data") is None
    assert extract_listings([LISTING], "$") == [LISTING]


def test_find_next_cursor_locations():
    assert find_next_cursor({"nextCursor": "abc"}) == "abc"
    assert find_next_cursor({"pagination": {"endCursor": "e1"}}) == "e1"
    assert find_next_cursor({"meta": {"next": "n2"}}) == "n2"
    assert find_next_cursor({"nextCursor": ""}) is None
    assert find_next_cursor([1, 2]) is None


def test_detect_pagination_priority():
    assert detect_pagination_type("https://x.com/api?page=1&offset=0") == PaginationType.page
    assert detect_pagination_type("https://x.com/api?skip=0&cursor=a") == PaginationType.offset
    assert detect_pagination_type("https://x.com/api?after=zz") == PaginationType.cursor
    assert detect_pagination_type("https://x.com/api?minLat=1&maxLat=2") == PaginationType.bounds
    assert detect_pagination_type("https://x.com/api/map-bounds") == PaginationType.bounds
    assert detect_pagination_type("https://x.com/api", {"PageNumber": 1}) == PaginationType.page
    assert detect_pagination_type("https://x.com/api", {"sw_lat": 1, "ne_lat": 2}) == PaginationType.bounds
    assert detect_pagination_type("https://x.com/api", {"q": "x"}) == PaginationType.none


def test_json_response_and_headers():
    assert is_json_response("application/json; charset=utf-8", 200)
    assert is_json_response("text/json", 204)
    assert not is_json_response("application/json", 404)
    assert not is_json_response("text/html", 200)
    kept = filter_headers({"Content-Type": "application/json", "Cookie": "s=1", "X-API-Key": "k", "Accept": "*/*"})
    assert kept == {"Content-Type": "application/json", "X-API-Key": "k", "Accept": "*/*"}


def test_collector_dedupes_by_path_and_method():
    c = CandidateCollector()
    c.offer(url="https://api.x.com/search?page=1", method="get", headers={}, post_data=None, body=[LISTING])
    c.offer(url="https://api.x.com/search?page=2", method="GET", headers={}, post_data=None, body=[LISTING] * 3)
    c.offer(
        url="https://api.x.com/search",
        method="POST",
        headers={"content-type": "application/json", "cookie": "x"},
        post_data='{"bounds": "1,2,3,4"}',
        body={"listings": [LISTING] * 2},
    )
    assert c.offer(url="https://api.x.com/config", method="GET", headers={}, post_data=None, body={"a": 1}) is None

    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    endpoints = {(e.method, e.sample_count): e for e in c.build_endpoints(now=now)}
    assert set(endpoints) == {("GET", 3), ("POST", 2)}

    get_ep = endpoints[("GET", 3)]
    assert get_ep.url == "https://api.x.com/search?page=2"
    assert get_ep.pagination_type == PaginationType.page
    assert get_ep.listings_path == "$"
    assert get_ep.discovered_at == now.isoformat()

    post_ep = endpoints[("POST", 2)]
    assert post_ep.body == {"bounds": "1,2,3,4"}
    assert post_ep.pagination_type == PaginationType.bounds
    assert post_ep.listings_path == "listings"
    assert post_ep.headers == {"content-type": "application/json"}


def test_config_roundtrip_and_best_endpoint(tmp_path):
    config = DiscoveryConfig(
        source="demo",
        target_url="https://x.com/map",
        endpoints=[
            DiscoveredEndpoint(url="https://x.com/a", sample_count=5, pagination_type=PaginationType.offset),
            DiscoveredEndpoint(url="https://x.com/b", sample_count=9, listings_path="data.items"),
            DiscoveredEndpoint(url="https://x.com/c", sample_count=9),
        ],
    )
    path = save_config(config, tmp_path / "nested" / "demo.json")
    assert '"paginationType": "offset"' in path.read_text()

    loaded = load_config(path)
    assert loaded.source == "demo"
    assert [e.url for e in loaded.endpoints] == ["https://x.com/a", "https://x.com/b", "https://x.com/c"]
    assert loaded.best_endpoint().url == "https://x.com/b"
    assert loaded.best_endpoint().listings_path == "data.items"

    assert load_config(tmp_path / "missing.json") is None
    assert DiscoveryConfig(source="s", target_url="t").best_endpoint() is None


def test_unreadable_config_loads_as_none(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    listish = tmp_path / "list.json"
    listish.write_text("[1, 2]", encoding="utf-8")

    assert load_config(broken) is None
    assert load_config(listish) is None
