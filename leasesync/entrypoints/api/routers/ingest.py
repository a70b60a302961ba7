# leasesync/entrypoints/api/routers/ingest.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....adapters.repos.sources import SourceRepository
from ....config import settings
from ....domain.errors import RunNotFoundError, SourceNotFoundError
from ....models import IngestRun
from ....schemas import IngestRunOut, IngestRunPage, RunError
from ....service_layer.ingest_runs import create_queued_run, get_run, has_active_run, list_runs, run_errors
from ....service_layer.use_cases.sync import run_sync_job
from ..deps import get_session, require_api_key

router = APIRouter(tags=["ingest"], dependencies=[Depends(require_api_key)])


def _run_out(run: IngestRun) -> IngestRunOut:
    errors = run_errors(run)
    return IngestRunOut(
        id=run.id,
        source_id=run.source_id,
        status=run.status.value,
        listings_upserted=run.listings_upserted or 0,
        listings_skipped=run.listings_skipped or 0,
        images_downloaded=run.images_downloaded or 0,
        error_count=len(errors),
        errors=[RunError(**e) for e in errors[: settings.ERRORS_PREVIEW_LIMIT] if isinstance(e, dict)],
        started_at=run.started_at,
        finished_at=run.finished_at,
    )


@router.post("/admin/ingest/run", response_model=IngestRunOut, status_code=202)
async def trigger_ingest(
    background: BackgroundTasks,
    source: str = Query(settings.DEFAULT_SOURCE),
    limit: int | None = Query(None, ge=1),
    session: AsyncSession = Depends(get_session),
) -> IngestRunOut:
    try:
        src = await SourceRepository(session).ensure(source)
    except SourceNotFoundError:
        raise HTTPException(status_code=404, detail="Source not found") from None
    if await has_active_run(session, src.id):
        raise HTTPException(status_code=409, detail=f"A sync for {source!r} is already queued or running")

    run = await create_queued_run(session, src.id)
    await session.commit()

    background.add_task(run_sync_job, source, run_id=run.id, limit=limit)
    return _run_out(run)


@router.get("/admin/ingest/runs", response_model=IngestRunPage)
async def ingest_runs(
    source: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> IngestRunPage:
    source_id: int | None = None
    if source:
        src = await SourceRepository(session).get_by_name(source)
        if src is None:
            raise HTTPException(status_code=404, detail="Source not found")
        source_id = src.id

    rows, total = await list_runs(session, source_id=source_id, offset=(page - 1) * limit, limit=limit)
    return IngestRunPage(items=[_run_out(r) for r in rows], total=total, page=page, limit=limit)


@router.get("/admin/ingest/runs/{run_id}", response_model=IngestRunOut)
async def ingest_run(
    run_id: int,
    session: AsyncSession = Depends(get_session),
) -> IngestRunOut:
    try:
        run = await get_run(session, run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Ingest run not found") from None
    return _run_out(run)
