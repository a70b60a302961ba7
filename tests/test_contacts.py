import json

import pytest

from leasesync.adapters.clients.http_resilience import HostRateLimiter
from leasesync.domain.errors import SourceNotFoundError
from leasesync.models import Listing
from leasesync.service_layer.use_cases.contacts import backfill_contacts


class _Renderer:
    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def render(self, url, *, settle_ms=2000, timeout_ms=None):
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        return page or "<html><body></body></html>"


async def test_backfill_sets_contact(session, seeded_listing):
    url = seeded_listing.canonical_url
    renderer = _Renderer({url: '<html><body><a href="tel:734-555-0100">Call</a></body></html>'})

    res = await backfill_contacts(session, renderer=renderer, limiter=HostRateLimiter(0))

    assert (res.checked, res.updated, res.failed) == (1, 1, 0)
    row = await session.get(Listing, seeded_listing.id)
    assert json.loads(row.contact_json) == {"phone": "734-555-0100"}

    again = await backfill_contacts(session, renderer=renderer, limiter=HostRateLimiter(0))
    assert again.checked == 0
    assert renderer.calls == [url]


async def test_backfill_counts_render_failures(session, seeded_listing):
    renderer = _Renderer({seeded_listing.canonical_url: TimeoutError("page hung")})

    res = await backfill_contacts(session, renderer=renderer, limiter=HostRateLimiter(0))

    assert (res.checked, res.updated, res.failed) == (1, 0, 1)
    row = await session.get(Listing, seeded_listing.id)
    assert row.contact_json is None


async def test_backfill_page_without_contact(session, seeded_listing):
    res = await backfill_contacts(session, source="testsrc", renderer=_Renderer({}), limiter=HostRateLimiter(0))
    assert (res.checked, res.updated, res.failed) == (1, 0, 0)


async def test_backfill_unknown_source(session):
    with pytest.raises(SourceNotFoundError):
        await backfill_contacts(session, source="nope", renderer=_Renderer({}))
