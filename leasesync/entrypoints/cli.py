# leasesync/entrypoints/cli.py
"""
Operator CLI.

    python -m leasesync.entrypoints.cli discover --url https://example.com/rentals --source example
    python -m leasesync.entrypoints.cli sync --source michiganrental --limit 50
    python -m leasesync.entrypoints.cli scrape-contacts --limit 100
    python -m leasesync.entrypoints.cli fixtures record --url https://example.com/rentals --output fixtures
    python -m leasesync.entrypoints.cli init-db
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from ..adapters.discovery.config_store import default_config_path, save_config
from ..adapters.discovery.interceptor import EndpointDiscoverer
from ..adapters.repos.sources import SourceRepository
from ..config import settings
from ..db import async_session, create_all
from ..domain.errors import SourceNotFoundError
from ..domain.registry import NORMALIZERS
from ..models import IngestRunStatus
from ..service_layer.use_cases.contacts import backfill_contacts
from ..service_layer.use_cases.fixtures import record_fixtures
from ..service_layer.use_cases.sync import SyncEngine

log = logging.getLogger("leasesync.cli")


def _quiet_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)


async def cmd_discover(args: argparse.Namespace) -> int:
    source = args.source or settings.DEFAULT_SOURCE
    url = args.url or settings.DEFAULT_TARGET_URL
    config = await EndpointDiscoverer(source).discover(url)
    path = save_config(config, args.output or default_config_path(source))

    best = config.best_endpoint()
    if best is None:
        print(f"No listing endpoints found on {url}; sync will use the HTML fallback.")
    else:
        print(f"OK: {len(config.endpoints)} endpoint(s) -> {path}")
        print(f"  best: {best.method} {best.url} ({best.pagination_type.value}, {best.sample_count} samples)")
    return 0


async def cmd_sync(args: argparse.Namespace) -> int:
    await create_all()
    source = args.source or settings.DEFAULT_SOURCE

    async with async_session() as session:
        if args.url:
            await SourceRepository(session).ensure(
                source,
                base_url=args.base_url,
                target_url=args.url,
                normalizer=args.normalizer,
            )
            await session.commit()

        engine = SyncEngine(
            session,
            config_path=args.config,
            html_fallback=True if args.html_fallback else None,
        )
        result = await engine.run(source, limit=args.limit)

    print(json.dumps(result.as_dict(), indent=2, default=str))
    return 1 if result.status == IngestRunStatus.failed else 0


async def cmd_scrape_contacts(args: argparse.Namespace) -> int:
    await create_all()
    async with async_session() as session:
        res = await backfill_contacts(session, source=args.source, limit=args.limit)
    print(f"OK: checked={res.checked} updated={res.updated} failed={res.failed}")
    return 0


async def cmd_fixtures(args: argparse.Namespace) -> int:
    source = args.source or settings.DEFAULT_SOURCE
    url = args.url or settings.DEFAULT_TARGET_URL
    rec = await record_fixtures(url, args.output, source=source)
    print(f"OK: {rec.config_path} + {len(rec.samples)} endpoint sample(s), {rec.failed} failed")
    return 0


async def cmd_init_db(args: argparse.Namespace) -> int:
    await create_all()
    print("OK: created all tables (idempotent).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leasesync", description="Rental listing ingestion")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("discover", help="Find the JSON API behind a listings page")
    p.add_argument("--url", default=None, help="Page to load (default: DEFAULT_TARGET_URL)")
    p.add_argument("--output", type=Path, default=None, help="Where to write the discovery config")
    p.add_argument("--source", default=None)
    p.set_defaults(func=cmd_discover)

    p = sub.add_parser("sync", help="Fetch, normalize and store listings for one source")
    p.add_argument("--source", default=None)
    p.add_argument("--limit", type=int, default=None, help="Max listings to process")
    p.add_argument("--config", type=Path, default=None, help="Discovery config to use")
    p.add_argument("--html-fallback", action="store_true", help="Skip the API and scrape HTML")
    p.add_argument("--url", default=None, help="Register the source with this target url")
    p.add_argument("--base-url", default=None)
    p.add_argument("--normalizer", choices=sorted(NORMALIZERS), default=None)
    p.set_defaults(func=cmd_sync)

    p = sub.add_parser("scrape-contacts", help="Backfill contact info from listing pages")
    p.add_argument("--source", default=None)
    p.add_argument("--limit", type=int, default=None)
    p.set_defaults(func=cmd_scrape_contacts)

    p = sub.add_parser("fixtures", help="Record discovery output and endpoint samples for offline tests")
    p.add_argument("action", choices=["record"])
    p.add_argument("--url", default=None, help="Page to load (default: DEFAULT_TARGET_URL)")
    p.add_argument("--output", type=Path, default=Path("fixtures"), help="Directory for the fixture files")
    p.add_argument("--source", default=None)
    p.set_defaults(func=cmd_fixtures)

    p = sub.add_parser("init-db", help="Create tables")
    p.set_defaults(func=cmd_init_db)

    return parser


def main(argv: list[str] | None = None) -> int:
    _quiet_logging()
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(args.func(args))
    except SourceNotFoundError as e:
        log.error("%s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
