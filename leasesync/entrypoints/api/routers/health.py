# leasesync/entrypoints/api/routers/health.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..deps import require_api_key
from ....config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/debug/config", dependencies=[Depends(require_api_key)])
def debug_config() -> dict[str, Any]:
    return {
        "ENV": settings.ENV,
        "LEASESYNC_DB_URL": settings.LEASESYNC_DB_URL,
        "API_KEY_SET": bool(settings.API_KEY),
        "DEFAULT_SOURCE": settings.DEFAULT_SOURCE,
        "DISCOVERY_CONFIG_PATH": settings.DISCOVERY_CONFIG_PATH,
        "HTML_FALLBACK": settings.HTML_FALLBACK,
        "IMAGE_DIR": settings.IMAGE_DIR,
        "SKIP_IMAGE_DOWNLOAD": settings.SKIP_IMAGE_DOWNLOAD,
    }
