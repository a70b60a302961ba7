import json

from leasesync.adapters.repos.listings import ListingFilters, ListingRepository, content_hash
from leasesync.adapters.repos.sources import SourceRepository
from leasesync.domain.normalize import normalize_listing
from leasesync.domain.types import Bounds

BASE = "https://rentals.example.com"


def _listing(**overrides):
    raw = {
        "id": "L-9",
        "url": f"{BASE}/listing/L-9",
        "title": "Loft downtown",
        "price": 1800,
        "city": "Detroit",
        "state": "MI",
        "lat": 42.33,
        "lng": -83.05,
        "beds": 1,
    }
    raw.update(overrides)
    return normalize_listing(raw, BASE)


async def test_upsert_listing_idempotent(async_session_maker):
    async with async_session_maker() as session:
        src = await SourceRepository(session).ensure("testsrc", base_url=BASE)
        row1, changed1 = await ListingRepository(session).upsert_normalized(src.id, _listing())
        await session.commit()

    async with async_session_maker() as session:
        row2, changed2 = await ListingRepository(session).upsert_normalized(src.id, _listing())
        await session.commit()
        assert await ListingRepository(session).count(src.id) == 1

    assert row1.id == row2.id
    assert changed1 is True
    assert changed2 is False


async def test_changed_content_updates_same_row(session):
    src = await SourceRepository(session).ensure("testsrc", base_url=BASE)
    repo = ListingRepository(session)

    row1, _ = await repo.upsert_normalized(src.id, _listing())
    row2, changed = await repo.upsert_normalized(src.id, _listing(price="$1,850 - $1,900"))

    assert row1.id == row2.id
    assert changed is True
    assert (row2.price_min, row2.price_max) == (1850, 1900)
    assert row2.content_hash == content_hash(_listing(price="$1,850 - $1,900"))


async def test_falls_back_to_canonical_url_without_ids(session):
    src = await SourceRepository(session).ensure("testsrc", base_url=BASE)
    repo = ListingRepository(session)

    a, _ = await repo.upsert_normalized(src.id, _listing(id=None, url=f"{BASE}/listing/x/?utm_source=fb"))
    b, _ = await repo.upsert_normalized(src.id, _listing(id=None, url=f"{BASE}/listing/x", title="Renamed"))

    assert a.id == b.id
    assert b.title == "Renamed"
    assert b.source_listing_id is None


async def test_backfilled_contact_survives_resync(session):
    src = await SourceRepository(session).ensure("testsrc", base_url=BASE)
    repo = ListingRepository(session)

    row, _ = await repo.upsert_normalized(src.id, _listing())
    row.contact_json = json.dumps({"phone": "313-555-0101"})
    await session.flush()

    row, changed = await repo.upsert_normalized(src.id, _listing(title="Loft downtown (updated)"))
    assert changed is True
    assert json.loads(row.contact_json) == {"phone": "313-555-0101"}


async def test_raw_payload_is_kept(session):
    src = await SourceRepository(session).ensure("testsrc", base_url=BASE)
    row, _ = await ListingRepository(session).upsert_normalized(src.id, _listing(extra_field="kept"))
    assert json.loads(row.raw_json)["extra_field"] == "kept"


async def test_search_filters(session):
    src = await SourceRepository(session).ensure("testsrc", base_url=BASE)
    repo = ListingRepository(session)
    await repo.upsert_normalized(src.id, _listing())
    await repo.upsert_normalized(
        src.id,
        _listing(id="L-10", url=f"{BASE}/listing/L-10", title="Family house", price=2400, city="Troy", lat=42.6, beds=4),
    )

    rows, total = await repo.search(ListingFilters(city="detroit"))
    assert total == 1 and rows[0].title == "Loft downtown"

    rows, total = await repo.search(ListingFilters(min_price=2000))
    assert [r.city for r in rows] == ["Troy"]

    rows, total = await repo.search(ListingFilters(beds=2, max_price=3000))
    assert total == 1 and rows[0].beds == 4

    rows, total = await repo.search(ListingFilters(bounds=Bounds(42.0, -84.0, 42.5, -83.0)))
    assert [r.city for r in rows] == ["Detroit"]

    rows, total = await repo.search(ListingFilters(q="house"))
    assert [r.title for r in rows] == ["Family house"]

    rows, total = await repo.search(ListingFilters(), offset=1, limit=1)
    assert total == 2 and len(rows) == 1
