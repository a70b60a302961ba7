# leasesync/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Header, HTTPException, Query

from ...config import settings
from ...db import get_session  # noqa: F401  (re-exported for routers)
from ...domain.types import Bounds


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


def bounds_param(
    bounds: str | None = Query(None, description="minLat,minLng,maxLat,maxLng"),
) -> Bounds | None:
    if not bounds:
        return None
    parts = [p.strip() for p in bounds.split(",")]
    try:
        min_lat, min_lng, max_lat, max_lng = (float(p) for p in parts)
    except ValueError:
        raise HTTPException(status_code=400, detail="bounds must be minLat,minLng,maxLat,maxLng") from None
    return Bounds(
        min_lat=min(min_lat, max_lat),
        min_lng=min(min_lng, max_lng),
        max_lat=max(min_lat, max_lat),
        max_lng=max(min_lng, max_lng),
    )
