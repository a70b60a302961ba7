# leasesync/adapters/images/downloader.py
from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...domain.errors import error_entry
from ...domain.image_size import detect_image_dimensions
from ...domain.types import ImageDimensions
from ...domain.urls import extension_from_mime, extension_from_url
from ...models import ListingImage
from ..clients.http_resilience import HostRateLimiter, ResilientHttp
from ..repos.images import ImageRepository
from .storage import LocalImageStore

log = logging.getLogger(__name__)


@dataclass
class ImageBatchResult:
    stored: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


class ImageDownloader:
    """
    Mirrors listing photos into content-addressed storage.

    Bytes are fetched in batches of `concurrency` (a failure never cancels
    its siblings); rows are then written in URL order so sort_order and
    checksum dedup stay deterministic.
    """

    def __init__(
        self,
        http: ResilientHttp,
        store: LocalImageStore,
        *,
        concurrency: int | None = None,
        skip_download: bool | None = None,
    ) -> None:
        self.http = http
        self.store = store
        self.concurrency = max(1, int(concurrency or settings.IMAGE_CONCURRENCY))
        self.skip_download = settings.SKIP_IMAGE_DOWNLOAD if skip_download is None else bool(skip_download)

    @classmethod
    def from_settings(cls, http: ResilientHttp) -> "ImageDownloader":
        # images get their own, faster per-host clock
        image_http = ResilientHttp(
            http.client,
            limiter=HostRateLimiter(settings.IMAGE_RATE_LIMIT_RPS),
            policy=http.policy,
        )
        return cls(image_http, LocalImageStore.from_settings())

    async def download_listing_images(
        self,
        session: AsyncSession,
        listing_id: int,
        urls: list[str] | tuple[str, ...],
        *,
        dimension_hints: dict[str, ImageDimensions] | None = None,
    ) -> ImageBatchResult:
        result = ImageBatchResult()
        if not urls:
            return result

        repo = ImageRepository(session)
        if self.skip_download:
            await self._store_urls_only(repo, listing_id, urls, result)
            return result

        hints = dimension_hints or {}
        for start in range(0, len(urls), self.concurrency):
            batch = list(urls[start : start + self.concurrency])
            fetched = await asyncio.gather(*(self.http.get_bytes(u) for u in batch), return_exceptions=True)

            for offset, (url, res) in enumerate(zip(batch, fetched)):
                if isinstance(res, BaseException) and not isinstance(res, Exception):
                    raise res
                if isinstance(res, Exception):
                    log.warning("Image download failed listing=%s url=%s: %s", listing_id, url[:120], res)
                    result.errors.append(error_entry(f"Image download failed: {res}", listing_id=listing_id, url=url))
                    continue

                data, mime = res
                try:
                    created = await self._persist(repo, listing_id, url, data, mime, start + offset, hints.get(url))
                except OSError as e:
                    log.warning("Image write failed listing=%s url=%s: %s", listing_id, url[:120], e)
                    result.errors.append(error_entry(f"Image write failed: {e}", listing_id=listing_id, url=url))
                    continue

                if created:
                    result.stored += 1
                else:
                    result.skipped += 1

        log.info(
            "Images listing=%s stored=%d skipped=%d failed=%d",
            listing_id,
            result.stored,
            result.skipped,
            len(result.errors),
        )
        return result

    async def _persist(
        self,
        repo: ImageRepository,
        listing_id: int,
        url: str,
        data: bytes,
        mime: str,
        sort_order: int,
        hint: ImageDimensions | None,
    ) -> bool:
        """True when a new image was stored for this listing."""
        checksum = hashlib.sha256(data).hexdigest()

        existing = await repo.by_checksum(checksum)
        if existing is not None and existing.listing_id == listing_id:
            log.debug("Image %s already stored for listing %s", checksum[:12], listing_id)
            return False

        ext = extension_from_url(url) or extension_from_mime(mime)
        rel = self.store.relative_path(listing_id, checksum, ext)
        self.store.write(rel, data)

        dims = detect_image_dimensions(data) or hint

        row = existing or ListingImage(checksum_sha256=checksum)
        row.listing_id = listing_id
        row.original_url = url
        row.stored_path = rel
        row.stored_url = self.store.url_for(rel)
        row.width = dims.width if dims else None
        row.height = dims.height if dims else None
        row.mime_type = mime
        row.sort_order = sort_order

        if existing is None:
            await repo.add(row)
        else:
            # same bytes previously attached to another listing: checksum is unique, so it moves
            await repo.session.flush()
        return True

    async def _store_urls_only(
        self,
        repo: ImageRepository,
        listing_id: int,
        urls: list[str] | tuple[str, ...],
        result: ImageBatchResult,
    ) -> None:
        for i, url in enumerate(urls):
            if await repo.by_listing_and_url(listing_id, url) is not None:
                result.skipped += 1
                continue
            await repo.add(ListingImage(listing_id=listing_id, original_url=url, sort_order=i))
            result.stored += 1
