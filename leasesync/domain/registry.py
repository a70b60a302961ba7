# leasesync/domain/registry.py
from __future__ import annotations

from typing import Callable

from .normalize import normalize_listing
from .reso import normalize_reso_listing
from .types import NormalizedListing, RawListing
from .wix import normalize_wix_listing

Normalizer = Callable[[RawListing, "str | None"], NormalizedListing]

NORMALIZERS: dict[str, Normalizer] = {
    "generic": normalize_listing,
    "wix": normalize_wix_listing,
    "reso": normalize_reso_listing,
}


def get_normalizer(name: str | None) -> Normalizer:
    key = (name or "generic").strip().lower()
    try:
        return NORMALIZERS[key]
    except KeyError:
        raise ValueError(f"Unknown normalizer={name!r}. Use one of: {', '.join(sorted(NORMALIZERS))}") from None
