# scripts/run_scheduler.py
from __future__ import annotations

import argparse
import asyncio
import logging

from leasesync.db import create_all
from leasesync.entrypoints.cli import _quiet_logging
from leasesync.jobs.scheduler import build_scheduler, sync_enabled_sources

log = logging.getLogger("leasesync.scheduler")


async def main(run_now: bool) -> None:
    _quiet_logging()
    await create_all()

    if run_now:
        # one pass before the first interval elapses
        await sync_enabled_sources()

    scheduler = build_scheduler()
    scheduler.start()
    log.info(
        "Scheduler started (interval %s)",
        scheduler.get_job("sync_enabled_sources").trigger.interval,
    )

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        scheduler.shutdown()
        log.info("Scheduler stopped")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--now", action="store_true", help="Sync every enabled source once before scheduling")
    args = parser.parse_args()
    try:
        asyncio.run(main(args.now))
    except KeyboardInterrupt:
        pass
