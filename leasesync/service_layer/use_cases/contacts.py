# leasesync/service_layer/use_cases/contacts.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from playwright.async_api import Error as PlaywrightError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...domain.errors import SourceNotFoundError
from ...domain.urls import host_of
from ...adapters.clients.browser import BrowserSession
from ...adapters.clients.http_resilience import HostRateLimiter
from ...adapters.ingestion.html_fallback import extract_contact_from_html
from ...adapters.repos.listings import ListingRepository
from ...adapters.repos.sources import SourceRepository

log = logging.getLogger(__name__)


class PageRenderer(Protocol):
    async def render(self, url: str, *, settle_ms: int = 2000, timeout_ms: int | None = None) -> str: ...


@dataclass
class ContactBackfillResult:
    checked: int = 0
    updated: int = 0
    failed: int = 0


async def backfill_contacts(
    session: AsyncSession,
    *,
    source: str | None = None,
    limit: int | None = None,
    renderer: PageRenderer | None = None,
    limiter: HostRateLimiter | None = None,
) -> ContactBackfillResult:
    """
    Visit stored listings with no contact info and scrape phone/email/name
    from their detail page. Commits per listing.
    """
    source_id: int | None = None
    if source:
        src = await SourceRepository(session).get_by_name(source)
        if src is None:
            raise SourceNotFoundError(f"Unknown source {source!r}")
        source_id = src.id

    todo = await ListingRepository(session).missing_contact(source_id, limit=limit or settings.CONTACT_SCRAPE_LIMIT)
    targets = [(row.id, row.canonical_url) for row in todo]
    log.info("Contact backfill: %d listings without contact", len(targets))

    result = ContactBackfillResult()
    if not targets:
        return result

    limiter = limiter or HostRateLimiter(settings.HTML_FALLBACK_RPS)

    async def _walk(page: PageRenderer) -> None:
        repo = ListingRepository(session)
        for listing_id, url in targets:
            result.checked += 1
            try:
                await limiter.wait(host_of(url))
                html = await page.render(url, settle_ms=2000)
            except (PlaywrightError, TimeoutError) as e:
                log.warning("Contact scrape failed listing=%s url=%s: %s", listing_id, url[:120], e)
                result.failed += 1
                continue

            contact = extract_contact_from_html(html)
            if not contact:
                continue

            row = await repo.get(listing_id)
            if row is None:
                continue
            row.contact_json = json.dumps(contact, sort_keys=True)
            await session.commit()
            result.updated += 1
            log.info("Contact found listing=%s %s", listing_id, sorted(contact))

    if renderer is not None:
        await _walk(renderer)
    else:
        async with BrowserSession(timeout_s=settings.DISCOVERY_TIMEOUT_S) as browser:
            await _walk(browser)

    log.info(
        "Contact backfill complete: checked=%d updated=%d failed=%d",
        result.checked,
        result.updated,
        result.failed,
    )
    return result
