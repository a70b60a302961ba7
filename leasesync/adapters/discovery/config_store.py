# leasesync/adapters/discovery/config_store.py
from __future__ import annotations

import json
import logging
from pathlib import Path

from ...config import settings
from ...domain.types import DiscoveryConfig

log = logging.getLogger(__name__)


def default_config_path(source: str | None = None) -> Path:
    """
    DISCOVERY_CONFIG_PATH may contain "{source}" to keep one file per source.
    """
    raw = settings.DISCOVERY_CONFIG_PATH
    if source and "{source}" in raw:
        raw = raw.format(source=source)
    return Path(raw)


def save_config(config: DiscoveryConfig, path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
    log.info("Discovery config saved: %s (%d endpoints)", p, len(config.endpoints))
    return p


def load_config(path: str | Path) -> DiscoveryConfig | None:
    """None when the file is absent or unreadable; the caller rediscovers."""
    p = Path(path)
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("Ignoring unreadable discovery config %s: %s", p, e)
        return None
    if not isinstance(data, dict):
        log.warning("Ignoring discovery config %s: not a JSON object", p)
        return None
    return DiscoveryConfig.from_dict(data)
