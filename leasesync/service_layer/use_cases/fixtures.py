# leasesync/service_layer/use_cases/fixtures.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ...domain.errors import FetchError
from ...adapters.clients.http_resilience import ResilientHttp, build_client
from ...adapters.discovery.config_store import save_config
from ...adapters.discovery.interceptor import EndpointDiscoverer
from ...adapters.ingestion.fetcher import ListingFetcher
from .sync import Discoverer

log = logging.getLogger(__name__)


@dataclass
class FixtureRecording:
    config_path: Path
    samples: list[Path] = field(default_factory=list)
    failed: int = 0


async def record_fixtures(
    target_url: str,
    output_dir: str | Path,
    *,
    source: str,
    discoverer: Discoverer | None = None,
    http: ResilientHttp | None = None,
) -> FixtureRecording:
    """
    Discover `target_url` and snapshot it for offline tests:

        <output_dir>/discovery.json
        <output_dir>/endpoint-<i>.json   first page of endpoint i, as returned

    An endpoint that can't be fetched is logged and left without a sample.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    config = await (discoverer or EndpointDiscoverer(source)).discover(target_url)
    recording = FixtureRecording(config_path=save_config(config, out / "discovery.json"))

    owns_http = http is None
    http = http or ResilientHttp(build_client())
    try:
        for i, ep in enumerate(config.endpoints):
            try:
                data, items = await ListingFetcher(ep, http).fetch_page(None)
            except FetchError as e:
                log.warning("No fixture for endpoint %d (%s): %s", i, ep.url[:80], e)
                recording.failed += 1
                continue

            path = out / f"endpoint-{i}.json"
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            recording.samples.append(path)
            log.info("Fixture recorded %s (%d listings) <- %s", path.name, len(items), ep.url[:80])
    finally:
        if owns_http:
            await http.client.aclose()

    return recording
