from contextlib import asynccontextmanager
from types import SimpleNamespace

from leasesync.config import settings
from leasesync.jobs import scheduler
from leasesync.models import IngestRun, IngestRunStatus, Source


def test_scheduler_job_never_overlaps():
    sched = scheduler.build_scheduler()
    job = sched.get_job("sync_enabled_sources")

    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.trigger.interval.total_seconds() == settings.SCHED_SYNC_INTERVAL_MINUTES * 60


async def test_tick_syncs_enabled_sources_without_active_runs(async_session_maker, monkeypatch):
    async with async_session_maker() as s:
        busy = Source(name="busy", base_url="https://busy.example.com", normalizer="generic")
        off = Source(name="off", base_url="https://off.example.com", normalizer="generic", enabled=False)
        s.add_all([busy, off, Source(name="idle", base_url="https://idle.example.com", normalizer="generic")])
        await s.flush()
        s.add(IngestRun(source_id=busy.id, status=IngestRunStatus.running))
        await s.commit()

    @asynccontextmanager
    async def _session():
        async with async_session_maker() as s:
            yield s

    calls = []

    async def fake_job(name, *, run_id=None, limit=None):
        calls.append(name)
        return SimpleNamespace(status=IngestRunStatus.completed, run_id=len(calls))

    monkeypatch.setattr(scheduler, "async_session", _session)
    monkeypatch.setattr(scheduler, "run_sync_job", fake_job)

    await scheduler.sync_enabled_sources()

    assert calls == sorted(["idle", settings.DEFAULT_SOURCE])
