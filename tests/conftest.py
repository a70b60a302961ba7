import os
import struct
import tempfile

# settings are read at import time; keep tests off the real db / image tree
os.environ.setdefault("LEASESYNC_DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("IMAGE_DIR", tempfile.mkdtemp(prefix="leasesync-images-"))
os.environ.setdefault("DISCOVERY_CONFIG_PATH", os.path.join(tempfile.mkdtemp(prefix="leasesync-disc-"), "{source}.json"))
os.environ.setdefault("HTTP_RATE_LIMIT_RPS", "0")
os.environ.setdefault("IMAGE_RATE_LIMIT_RPS", "0")

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from leasesync.adapters.clients.http_resilience import HostRateLimiter, ResilientHttp, RetryPolicy, build_client
from leasesync.models import Base
from leasesync.models import Listing, Source


def png_bytes(width: int, height: int) -> bytes:
    """Smallest header detect_image_dimensions accepts; width/height make it unique."""
    return b"\x89PNG\r\n\x1a\n" + struct.pack(">I", 13) + b"IHDR" + struct.pack(">II", width, height) + b"\x08\x02\x00\x00\x00"


def make_http(handler, *, retries: int = 0) -> ResilientHttp:
    """ResilientHttp over an httpx.MockTransport, no rate limiting, no backoff."""
    client = build_client(transport=httpx.MockTransport(handler))
    return ResilientHttp(
        client,
        limiter=HostRateLimiter(0),
        policy=RetryPolicy(max_retries=retries, base_delay=0, max_delay=0, jitter=0),
    )


@pytest.fixture(autouse=True)
async def _reset_db(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
async def session(async_session_maker):
    async with async_session_maker() as s:
        yield s


@pytest.fixture
async def seeded_listing(async_session_maker):
    async with async_session_maker() as session:
        src = Source(name="testsrc", base_url="https://rentals.example.com", normalizer="generic")
        session.add(src)
        await session.flush()
        listing = Listing(
            source_id=src.id,
            source_listing_id="L-1",
            canonical_url="https://rentals.example.com/listing/L-1",
            title="2BR near campus",
            city="Ann Arbor",
            state="MI",
            zip="48104",
            price_min=1200,
            price_max=1500,
            beds=2,
            baths=1.0,
        )
        session.add(listing)
        await session.commit()
        return listing
