# leasesync/entrypoints/api/routers/sources.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.repos.sources import SourceRepository
from ....schemas import SourceOut
from ..deps import get_session, require_api_key

router = APIRouter(tags=["sources"])


@router.get("/sources", response_model=list[SourceOut], dependencies=[Depends(require_api_key)])
async def list_sources(session: AsyncSession = Depends(get_session)) -> list[SourceOut]:
    rows = await SourceRepository(session).list_all()
    return [
        SourceOut(
            id=s.id,
            name=s.name,
            base_url=s.base_url,
            target_url=s.target_url,
            normalizer=s.normalizer,
            enabled=s.enabled,
            created_at=s.created_at,
        )
        for s in rows
    ]
