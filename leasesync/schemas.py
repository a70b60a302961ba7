from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Literal

RunStatus = Literal["queued", "running", "completed", "completed_with_errors", "failed"]


class ImageOut(BaseModel):
    id: int
    original_url: str
    stored_url: str | None = None
    width: int | None = None
    height: int | None = None
    mime_type: str | None = None
    sort_order: int = 0


class ListingOut(BaseModel):
    id: int
    source_id: int
    source_listing_id: str | None = None
    canonical_url: str
    title: str | None = None

    street: str | None = None
    unit: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    lat: float | None = None
    lng: float | None = None

    price_min: int | None = None
    price_max: int | None = None
    beds: int | None = None
    baths: float | None = None
    sqft: int | None = None
    property_type: str | None = None

    availability_date: datetime | None = None
    lease_term: str | None = None
    deposit: int | None = None
    fees: Any = None
    amenities: list[str] | None = None
    description: str | None = None
    contact: dict[str, str] | None = None

    scraped_at: datetime
    updated_at: datetime


class ListingDetailOut(ListingOut):
    images: list[ImageOut] = Field(default_factory=list)


class ListingPage(BaseModel):
    items: list[ListingOut]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)


class RunError(BaseModel):
    message: str
    listingId: str | None = None
    url: str | None = None


class IngestRunOut(BaseModel):
    id: int
    source_id: int
    status: RunStatus
    listings_upserted: int
    listings_skipped: int
    images_downloaded: int
    error_count: int
    errors: list[RunError]
    started_at: datetime
    finished_at: datetime | None = None


class IngestRunPage(BaseModel):
    items: list[IngestRunOut]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)


class SourceOut(BaseModel):
    id: int
    name: str
    base_url: str
    target_url: str | None = None
    normalizer: str
    enabled: bool
    created_at: datetime
