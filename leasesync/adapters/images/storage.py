# leasesync/adapters/images/storage.py
from __future__ import annotations

import os
from pathlib import Path

from ...config import settings


class LocalImageStore:
    """
    Content-addressed tree: <root>/<listing_id>/<checksum>.<ext>, served
    back under `public_prefix`.
    """

    def __init__(self, root: str | os.PathLike[str], public_prefix: str = "/images") -> None:
        self.root = Path(root)
        prefix = public_prefix.strip("/")
        self.public_prefix = f"/{prefix}" if prefix else ""

    @classmethod
    def from_settings(cls) -> "LocalImageStore":
        return cls(settings.IMAGE_DIR, settings.IMAGE_PUBLIC_PREFIX)

    @staticmethod
    def relative_path(listing_id: int | str, checksum: str, ext: str) -> str:
        return f"{listing_id}/{checksum}.{ext}"

    def full_path(self, relative: str) -> Path:
        return self.root / relative

    def url_for(self, relative: str) -> str:
        return f"{self.public_prefix}/{relative}"

    def write(self, relative: str, data: bytes) -> Path:
        """Idempotent: identical content lands on the identical path."""
        p = self.full_path(relative)
        p.parent.mkdir(parents=True, exist_ok=True)
        if not p.exists() or p.stat().st_size != len(data):
            tmp = p.with_suffix(p.suffix + ".part")
            tmp.write_bytes(data)
            os.replace(tmp, p)
        return p
