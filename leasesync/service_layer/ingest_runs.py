# leasesync/service_layer/ingest_runs.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import RunNotFoundError
from ..models import ACTIVE_RUN_STATUSES, IngestRun, IngestRunStatus


async def create_queued_run(session: AsyncSession, source_id: int) -> IngestRun:
    run = IngestRun(source_id=source_id, status=IngestRunStatus.queued, started_at=datetime.utcnow())
    session.add(run)
    await session.flush()
    return run


async def start_run(session: AsyncSession, source_id: int, run_id: int | None = None) -> IngestRun:
    """Adopt a queued run when given one, otherwise open a fresh one."""
    if run_id is not None:
        run = await get_run(session, run_id)
    else:
        run = IngestRun(source_id=source_id)
        session.add(run)

    run.status = IngestRunStatus.running
    run.started_at = datetime.utcnow()
    run.finished_at = None
    await session.flush()
    return run


async def finish_run(
    session: AsyncSession,
    run: IngestRun,
    *,
    upserted: int,
    skipped: int,
    images: int,
    errors: list[dict[str, Any]],
) -> None:
    run.status = IngestRunStatus.completed_with_errors if errors else IngestRunStatus.completed
    run.listings_upserted = upserted
    run.listings_skipped = skipped
    run.images_downloaded = images
    run.errors_json = json.dumps(errors)
    run.finished_at = datetime.utcnow()
    await session.flush()


async def fail_run(session: AsyncSession, run: IngestRun, errors: list[dict[str, Any]]) -> None:
    run.status = IngestRunStatus.failed
    run.errors_json = json.dumps(errors)
    run.finished_at = datetime.utcnow()
    await session.flush()


async def get_run(session: AsyncSession, run_id: int) -> IngestRun:
    run = await session.get(IngestRun, run_id)
    if run is None:
        raise RunNotFoundError(f"Ingest run {run_id} not found")
    return run


async def list_runs(
    session: AsyncSession,
    *,
    source_id: int | None = None,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[IngestRun], int]:
    q = select(IngestRun)
    if source_id is not None:
        q = q.where(IngestRun.source_id == source_id)
    total = (await session.execute(select(func.count()).select_from(q.subquery()))).scalar_one()
    rows = (await session.execute(q.order_by(IngestRun.id.desc()).offset(offset).limit(limit))).scalars().all()
    return list(rows), int(total)


async def has_active_run(session: AsyncSession, source_id: int) -> bool:
    q = (
        select(func.count())
        .select_from(IngestRun)
        .where(IngestRun.source_id == source_id)
        .where(IngestRun.status.in_(ACTIVE_RUN_STATUSES))
    )
    return int((await session.execute(q)).scalar_one()) > 0


def run_errors(run: IngestRun) -> list[dict[str, Any]]:
    if not run.errors_json:
        return []
    try:
        data = json.loads(run.errors_json)
    except ValueError:
        return [{"message": run.errors_json}]
    return data if isinstance(data, list) else []
