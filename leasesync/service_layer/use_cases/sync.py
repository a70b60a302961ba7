# leasesync/service_layer/use_cases/sync.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...db import async_session
from ...domain.errors import error_entry
from ...domain.registry import get_normalizer
from ...domain.types import DiscoveryConfig, NormalizedListing, RawListing
from ...models import IngestRunStatus, Source
from ...adapters.clients.http_resilience import ResilientHttp, build_client
from ...adapters.discovery.config_store import default_config_path, load_config, save_config
from ...adapters.discovery.interceptor import EndpointDiscoverer
from ...adapters.images.downloader import ImageDownloader
from ...adapters.ingestion.fetcher import ListingFetcher
from ...adapters.ingestion.html_fallback import HtmlFallbackScraper
from ...adapters.ingestion.pagination import FetchLimits
from ...adapters.repos.listings import ListingRepository
from ...adapters.repos.sources import SourceRepository
from ..ingest_runs import fail_run, finish_run, get_run, start_run

log = logging.getLogger(__name__)


class Discoverer(Protocol):
    async def discover(self, target_url: str) -> DiscoveryConfig: ...


class RawScraper(Protocol):
    async def scrape(self, target_url: str, *, limit: int | None = None) -> list[RawListing]: ...


@dataclass
class SyncResult:
    run_id: int
    source: str
    status: IngestRunStatus
    listings_fetched: int = 0
    listings_upserted: int = 0
    listings_skipped: int = 0
    images_downloaded: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def errors_preview(self) -> list[dict[str, Any]]:
        return self.errors[: settings.ERRORS_PREVIEW_LIMIT]

    def as_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "source": self.source,
            "status": self.status.value,
            "listingsFetched": self.listings_fetched,
            "listingsUpserted": self.listings_upserted,
            "listingsSkipped": self.listings_skipped,
            "imagesDownloaded": self.images_downloaded,
            "errorCount": len(self.errors),
            "errors": self.errors_preview,
            "durationMs": self.duration_ms,
        }


def dedupe_listings(listings: list[NormalizedListing]) -> list[NormalizedListing]:
    """First occurrence per source_listing_id (else canonical_url) wins."""
    seen: set[str] = set()
    out: list[NormalizedListing] = []
    for item in listings:
        key = item.dedupe_key
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


def normalize_all(
    raw_listings: list[RawListing],
    source: Source,
) -> tuple[list[NormalizedListing], list[dict[str, Any]]]:
    normalize = get_normalizer(source.normalizer)
    out: list[NormalizedListing] = []
    errors: list[dict[str, Any]] = []
    for raw in raw_listings:
        try:
            out.append(normalize(raw, source.base_url))
        except Exception as e:
            ref = raw if isinstance(raw, dict) else {}
            errors.append(
                error_entry(
                    f"Normalization failed: {e}",
                    listing_id=ref.get("id") or ref.get("_id"),
                    url=ref.get("url") if isinstance(ref.get("url"), str) else None,
                )
            )
    return out, errors


class SyncEngine:
    """
    fetch -> normalize -> dedupe -> upsert -> images, bookkept as one IngestRun.

    Commits once per listing: a failure on one listing rolls back only that
    listing and is recorded on the run. Anything raised outside the
    per-listing loop fails the whole run.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        http: ResilientHttp | None = None,
        images: ImageDownloader | None = None,
        discoverer: Discoverer | None = None,
        html_scraper: RawScraper | None = None,
        config_path: str | Path | None = None,
        html_fallback: bool | None = None,
        limits: FetchLimits | None = None,
    ) -> None:
        self.session = session
        self.http = http
        self.images = images
        self.discoverer = discoverer
        self.html_scraper = html_scraper
        self.config_path = config_path
        self.html_fallback = settings.HTML_FALLBACK if html_fallback is None else bool(html_fallback)
        self.limits = limits

    async def run(self, source_name: str, *, limit: int | None = None, run_id: int | None = None) -> SyncResult:
        started = time.monotonic()
        session = self.session

        source = await SourceRepository(session).ensure(source_name)
        run = await start_run(session, source.id, run_id)
        await session.commit()

        # plain values: a per-listing rollback expires ORM state
        source_id, label = source.id, source.name
        result = SyncResult(run_id=run.id, source=label, status=IngestRunStatus.running)
        log.info("Sync start source=%s run=%s limit=%s", label, run.id, limit)

        owns_http = self.http is None
        http = self.http or ResilientHttp(build_client())
        try:
            raw = await self.fetch_raw(source, http, limit)
            if limit and limit > 0:
                raw = raw[:limit]
            result.listings_fetched = len(raw)

            normalized, norm_errors = normalize_all(raw, source)
            result.errors.extend(norm_errors)
            unique = dedupe_listings(normalized)
            log.info(
                "Normalized %d/%d listings (%d unique)",
                len(normalized),
                len(raw),
                len(unique),
            )

            images = self.images or ImageDownloader.from_settings(http)
            for listing in unique:
                await self._sync_one(source_id, listing, images, result)

            run = await get_run(session, result.run_id)
            await finish_run(
                session,
                run,
                upserted=result.listings_upserted,
                skipped=result.listings_skipped,
                images=result.images_downloaded,
                errors=result.errors,
            )
            await session.commit()
            result.status = run.status
        except Exception as e:
            log.exception("Sync failed source=%s run=%s", label, result.run_id)
            await session.rollback()
            result.errors.append(error_entry(f"Fatal error: {e}"))
            run = await get_run(session, result.run_id)
            run.listings_upserted = result.listings_upserted
            run.listings_skipped = result.listings_skipped
            run.images_downloaded = result.images_downloaded
            await fail_run(session, run, result.errors)
            await session.commit()
            result.status = IngestRunStatus.failed
        finally:
            if owns_http:
                await http.client.aclose()

        result.duration_ms = int((time.monotonic() - started) * 1000)
        log.info(
            "Sync done source=%s run=%s status=%s upserted=%d skipped=%d images=%d errors=%d in %dms",
            label,
            result.run_id,
            result.status.value,
            result.listings_upserted,
            result.listings_skipped,
            result.images_downloaded,
            len(result.errors),
            result.duration_ms,
        )
        return result

    async def fetch_raw(self, source: Source, http: ResilientHttp, limit: int | None) -> list[RawListing]:
        target = source.target_url or source.base_url

        if self.html_fallback:
            log.info("HTML fallback forced for source=%s", source.name)
            return await self._scrape_html(target, limit)

        path = Path(self.config_path) if self.config_path else default_config_path(source.name)
        config = load_config(path)
        if config is None:
            log.info("No discovery config at %s; discovering %s", path, target)
            discoverer = self.discoverer or EndpointDiscoverer(source.name)
            config = await discoverer.discover(target)
            save_config(config, path)

        endpoint = config.best_endpoint()
        if endpoint is None:
            log.warning("No API endpoints discovered for source=%s; using HTML fallback", source.name)
            return await self._scrape_html(target, limit)

        log.info("Using endpoint %s %s (%d samples)", endpoint.method, endpoint.url[:120], endpoint.sample_count)
        fetcher = ListingFetcher(endpoint, http, limits=self.limits)
        return await fetcher.fetch_all(limit)

    async def _scrape_html(self, target_url: str, limit: int | None) -> list[RawListing]:
        scraper = self.html_scraper or HtmlFallbackScraper()
        return await scraper.scrape(target_url, limit=limit)

    async def _sync_one(
        self,
        source_id: int,
        listing: NormalizedListing,
        images: ImageDownloader,
        result: SyncResult,
    ) -> None:
        session = self.session
        try:
            row, changed = await ListingRepository(session).upsert_normalized(source_id, listing)
            listing_id = row.id
            await session.commit()
        except Exception as e:
            await session.rollback()
            log.warning("Upsert failed for %s: %s", listing.canonical_url[:120], e)
            result.errors.append(
                error_entry(f"Upsert failed: {e}", listing_id=listing.dedupe_key, url=listing.canonical_url)
            )
            return

        if not changed:
            # unchanged content keeps the images it already has
            result.listings_skipped += 1
            return
        result.listings_upserted += 1

        if not listing.image_urls:
            return

        try:
            batch = await images.download_listing_images(
                session,
                listing_id,
                listing.image_urls,
                dimension_hints=listing.image_dimensions,
            )
            await session.commit()
        except Exception as e:
            await session.rollback()
            log.warning("Image sync failed for listing=%s: %s", listing_id, e)
            result.errors.append(
                error_entry(f"Image download failed: {e}", listing_id=listing.dedupe_key, url=listing.canonical_url)
            )
            return

        result.images_downloaded += batch.stored
        result.errors.extend(batch.errors)


async def run_sync_job(source_name: str, *, run_id: int | None = None, limit: int | None = None) -> SyncResult:
    """Own-session entry point for background tasks, the scheduler and the CLI."""
    async with async_session() as session:
        return await SyncEngine(session).run(source_name, limit=limit, run_id=run_id)
