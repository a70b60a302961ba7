# leasesync/adapters/repos/listings.py
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.types import Bounds, NormalizedListing
from ...models import Listing

# columns copied 1:1 from the normalized value
_PLAIN_FIELDS = (
    "source_listing_id",
    "canonical_url",
    "title",
    "street",
    "unit",
    "city",
    "state",
    "zip",
    "lat",
    "lng",
    "price_min",
    "price_max",
    "beds",
    "baths",
    "sqft",
    "property_type",
    "availability_date",
    "lease_term",
    "deposit",
    "description",
)

# serialized into *_json Text columns
_JSON_FIELDS = ("fees_json", "amenities_json", "contact_json")


def _dumps(v: Any) -> str | None:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def content_hash(listing: NormalizedListing) -> str:
    """sha256 over the normalized fields (raw payload excluded)."""
    payload: dict[str, Any] = {name: getattr(listing, name) for name in _PLAIN_FIELDS + _JSON_FIELDS}
    payload["image_urls"] = list(listing.image_urls)
    blob = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


@dataclass
class ListingFilters:
    city: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    beds: int | None = None
    baths: float | None = None
    bounds: Bounds | None = None
    available_before: datetime | None = None
    available_after: datetime | None = None
    q: str | None = None


class ListingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, listing_id: int) -> Listing | None:
        return await self.session.get(Listing, listing_id)

    async def find_existing(self, source_id: int, listing: NormalizedListing) -> Listing | None:
        """
        Natural-key match:
          1) (source_id, source_listing_id) if the upstream has ids
          2) (source_id, canonical_url) fallback
        """
        if listing.source_listing_id:
            q = select(Listing).where(
                Listing.source_id == source_id,
                Listing.source_listing_id == listing.source_listing_id,
            )
            row = (await self.session.execute(q)).scalars().first()
            if row is not None:
                return row

        q = select(Listing).where(
            Listing.source_id == source_id,
            Listing.canonical_url == listing.canonical_url,
        )
        return (await self.session.execute(q)).scalars().first()

    async def upsert_normalized(self, source_id: int, listing: NormalizedListing) -> tuple[Listing, bool]:
        """
        Insert or update one listing. Returns (row, changed); changed is False
        when the stored content hash already matches, in which case only
        scraped_at moves.
        """
        now = datetime.utcnow()
        digest = content_hash(listing)

        row = await self.find_existing(source_id, listing)
        if row is not None and row.content_hash == digest:
            row.scraped_at = now
            await self.session.flush()
            return row, False

        if row is None:
            row = Listing(source_id=source_id, created_at=now)
            self.session.add(row)

        for name in _PLAIN_FIELDS:
            setattr(row, name, getattr(listing, name))
        for name in _JSON_FIELDS:
            value = getattr(listing, name)
            if name == "contact_json" and value is None and row.contact_json:
                # backfilled from the detail page; upstream never had it
                continue
            setattr(row, name, _dumps(value))

        row.raw_json = _dumps(listing.raw_json or None)
        row.content_hash = digest
        row.scraped_at = now
        row.updated_at = now

        await self.session.flush()
        return row, True

    async def missing_contact(self, source_id: int | None = None, limit: int = 1000) -> list[Listing]:
        q = select(Listing).where(
            Listing.contact_json.is_(None),
            Listing.canonical_url.is_not(None),
            Listing.canonical_url != "",
        )
        if source_id is not None:
            q = q.where(Listing.source_id == source_id)
        q = q.order_by(Listing.id).limit(limit)
        return list((await self.session.execute(q)).scalars().all())

    async def search(self, f: ListingFilters, *, offset: int = 0, limit: int = 20) -> tuple[list[Listing], int]:
        q = select(Listing)

        if f.city:
            q = q.where(func.lower(Listing.city) == f.city.strip().lower())
        if f.min_price is not None:
            q = q.where(func.coalesce(Listing.price_max, Listing.price_min) >= f.min_price)
        if f.max_price is not None:
            q = q.where(func.coalesce(Listing.price_min, Listing.price_max) <= f.max_price)
        if f.beds is not None:
            q = q.where(Listing.beds >= f.beds)
        if f.baths is not None:
            q = q.where(Listing.baths >= f.baths)
        if f.bounds is not None:
            b = f.bounds
            q = q.where(
                Listing.lat.between(b.min_lat, b.max_lat),
                Listing.lng.between(b.min_lng, b.max_lng),
            )
        if f.available_before is not None:
            q = q.where(Listing.availability_date <= f.available_before)
        if f.available_after is not None:
            q = q.where(Listing.availability_date >= f.available_after)
        if f.q:
            like = f"%{f.q.strip()}%"
            q = q.where(
                or_(
                    Listing.title.ilike(like),
                    Listing.description.ilike(like),
                    Listing.street.ilike(like),
                    Listing.city.ilike(like),
                )
            )

        total = (await self.session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()
        rows = (
            await self.session.execute(q.order_by(Listing.updated_at.desc(), Listing.id.desc()).offset(offset).limit(limit))
        ).scalars().all()
        return list(rows), int(total)

    async def count(self, source_id: int | None = None) -> int:
        q = select(func.count()).select_from(Listing)
        if source_id is not None:
            q = q.where(Listing.source_id == source_id)
        return int((await self.session.execute(q)).scalar_one())
