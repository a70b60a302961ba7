# leasesync/jobs/scheduler.py
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..adapters.repos.sources import SourceRepository
from ..config import settings
from ..db import async_session
from ..service_layer.ingest_runs import has_active_run
from ..service_layer.use_cases.sync import run_sync_job

log = logging.getLogger(__name__)


async def sync_enabled_sources() -> None:
    """
    One sync per enabled source, sequentially. Sources with a queued/running
    run (admin trigger) are left alone this tick.
    """
    async with async_session() as session:
        repo = SourceRepository(session)
        await repo.ensure(settings.DEFAULT_SOURCE)
        await session.commit()

        names: list[str] = []
        for src in await repo.list_all(enabled_only=True):
            if await has_active_run(session, src.id):
                log.info("Skipping %s: a run is already active", src.name)
                continue
            names.append(src.name)

    for name in names:
        result = await run_sync_job(name)
        log.info("Scheduled sync %s -> %s (run %s)", name, result.status.value, result.run_id)


def build_scheduler() -> AsyncIOScheduler:
    sched = AsyncIOScheduler()

    # sync cadence (default daily); never overlaps itself
    sched.add_job(
        sync_enabled_sources,
        "interval",
        minutes=settings.SCHED_SYNC_INTERVAL_MINUTES,
        id="sync_enabled_sources",
        max_instances=1,
        coalesce=True,
    )

    return sched
