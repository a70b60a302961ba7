# leasesync/entrypoints/api/routers/listings.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.repos.images import ImageRepository
from ....adapters.repos.listings import ListingFilters, ListingRepository
from ....domain.types import Bounds
from ....models import Listing
from ....schemas import ImageOut, ListingDetailOut, ListingOut, ListingPage
from ..deps import bounds_param, get_session

router = APIRouter(tags=["listings"])


def _loads(v: str | None) -> Any:
    if not v:
        return None
    try:
        return json.loads(v)
    except ValueError:
        return None


def _listing_fields(row: Listing) -> dict[str, Any]:
    return {
        "id": row.id,
        "source_id": row.source_id,
        "source_listing_id": row.source_listing_id,
        "canonical_url": row.canonical_url,
        "title": row.title,
        "street": row.street,
        "unit": row.unit,
        "city": row.city,
        "state": row.state,
        "zip": row.zip,
        "lat": row.lat,
        "lng": row.lng,
        "price_min": row.price_min,
        "price_max": row.price_max,
        "beds": row.beds,
        "baths": row.baths,
        "sqft": row.sqft,
        "property_type": row.property_type,
        "availability_date": row.availability_date,
        "lease_term": row.lease_term,
        "deposit": row.deposit,
        "fees": _loads(row.fees_json),
        "amenities": _loads(row.amenities_json),
        "description": row.description,
        "contact": _loads(row.contact_json),
        "scraped_at": row.scraped_at,
        "updated_at": row.updated_at,
    }


@router.get("/listings", response_model=ListingPage)
async def search_listings(
    city: str | None = Query(None),
    min_price: int | None = Query(None, ge=0),
    max_price: int | None = Query(None, ge=0),
    beds: int | None = Query(None, ge=0),
    baths: float | None = Query(None, ge=0),
    bounds: Bounds | None = Depends(bounds_param),
    available_before: datetime | None = Query(None),
    available_after: datetime | None = Query(None),
    q: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> ListingPage:
    filters = ListingFilters(
        city=city,
        min_price=min_price,
        max_price=max_price,
        beds=beds,
        baths=baths,
        bounds=bounds,
        available_before=available_before,
        available_after=available_after,
        q=q,
    )
    rows, total = await ListingRepository(session).search(filters, offset=(page - 1) * limit, limit=limit)
    return ListingPage(
        items=[ListingOut(**_listing_fields(r)) for r in rows],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/listings/{listing_id}", response_model=ListingDetailOut)
async def get_listing(
    listing_id: int,
    session: AsyncSession = Depends(get_session),
) -> ListingDetailOut:
    row = await ListingRepository(session).get(listing_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Listing not found")

    images = await ImageRepository(session).for_listing(listing_id)
    return ListingDetailOut(
        **_listing_fields(row),
        images=[
            ImageOut(
                id=img.id,
                original_url=img.original_url,
                stored_url=img.stored_url,
                width=img.width,
                height=img.height,
                mime_type=img.mime_type,
                sort_order=img.sort_order,
            )
            for img in images
        ],
    )
