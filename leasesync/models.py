# leasesync/models.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class IngestRunStatus(str, enum.Enum):
    queued = "queued"
    running = "running"
    completed = "completed"
    completed_with_errors = "completed_with_errors"
    failed = "failed"


ACTIVE_RUN_STATUSES = (IngestRunStatus.queued, IngestRunStatus.running)


# -----------------------------
# Models
# -----------------------------
class Source(Base):
    __tablename__ = "sources"
    __table_args__ = (UniqueConstraint("name", name="uq_source_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(80))
    base_url: Mapped[str] = mapped_column(String(255))

    # page discovery/html fallback start from; defaults to base_url
    target_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # generic|wix|reso
    normalizer: Mapped[str] = mapped_column(String(20), default="generic")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        UniqueConstraint("source_id", "source_listing_id", name="uq_listing_source_ref"),
        UniqueConstraint("source_id", "canonical_url", name="uq_listing_source_url"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_id: Mapped[int] = mapped_column(ForeignKey("sources.id"), index=True)

    source_listing_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    canonical_url: Mapped[str] = mapped_column(String(1000))
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)

    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(80), nullable=True)
    city: Mapped[str | None] = mapped_column(String(80), nullable=True, index=True)
    state: Mapped[str | None] = mapped_column(String(20), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(10), nullable=True)

    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    price_min: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    price_max: Mapped[int | None] = mapped_column(Integer, nullable=True)

    beds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    baths: Mapped[float | None] = mapped_column(Float, nullable=True)
    sqft: Mapped[int | None] = mapped_column(Integer, nullable=True)
    property_type: Mapped[str | None] = mapped_column(String(40), nullable=True)

    availability_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    lease_term: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deposit: Mapped[int | None] = mapped_column(Integer, nullable=True)

    fees_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    amenities_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # upstream record, kept for replay
    raw_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # sha256 over the normalized fields; unchanged hash => skipped on re-sync
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    scraped_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    images: Mapped[list["ListingImage"]] = relationship(
        back_populates="listing",
        order_by="ListingImage.sort_order",
        lazy="selectin",
    )


class ListingImage(Base):
    __tablename__ = "listing_images"
    __table_args__ = (UniqueConstraint("checksum_sha256", name="uq_listing_image_checksum"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("listings.id"), index=True)

    original_url: Mapped[str] = mapped_column(String(1000))
    stored_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    stored_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(40), nullable=True)

    # null only for url-only rows (SKIP_IMAGE_DOWNLOAD)
    checksum_sha256: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    listing: Mapped[Listing] = relationship(back_populates="images")


class IngestRun(Base):
    """
    One row per sync invocation. Written by the sync engine; the admin
    trigger only creates it in `queued`.
    """
    __tablename__ = "ingest_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_id: Mapped[int] = mapped_column(ForeignKey("sources.id"), index=True)

    status: Mapped[IngestRunStatus] = mapped_column(
        Enum(IngestRunStatus), default=IngestRunStatus.queued, index=True
    )

    listings_upserted: Mapped[int] = mapped_column(Integer, default=0)
    listings_skipped: Mapped[int] = mapped_column(Integer, default=0)
    images_downloaded: Mapped[int] = mapped_column(Integer, default=0)

    # full list of {"message", "listingId"?, "url"?}
    errors_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
