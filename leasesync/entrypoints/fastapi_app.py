# leasesync/entrypoints/fastapi_app.py
from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from ..config import settings
from ..db import create_all
from .api.routers import health, ingest, listings, sources


def create_app() -> FastAPI:
    app = FastAPI(title="LeaseSync - Rental Listing Ingestion")

    @app.on_event("startup")
    async def _startup() -> None:
        # Single place where DB tables are created in dev.
        await create_all()

    # Routers
    app.include_router(health.router)
    app.include_router(listings.router)
    app.include_router(sources.router)
    app.include_router(ingest.router)

    # Mirrored listing photos
    image_dir = Path(settings.IMAGE_DIR)
    image_dir.mkdir(parents=True, exist_ok=True)
    app.mount(settings.IMAGE_PUBLIC_PREFIX, StaticFiles(directory=str(image_dir)), name="images")

    return app
