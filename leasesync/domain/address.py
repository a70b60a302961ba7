# leasesync/domain/address.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .parsing import get_first, get_nested, to_str

_STATE_ZIP = re.compile(r"([A-Z]{2})\s+(\d{5}(?:-\d{4})?)")


@dataclass(frozen=True)
class AddressParts:
    street: str | None = None
    unit: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None


def parse_address_text(text: str) -> AddressParts:
    """
    "123 Main St, Apt 2, Ann Arbor, MI 48103" -> street/unit/city/state/zip.

    Fewer than three comma-separated parts means we can't tell the pieces
    apart, so the whole thing becomes the street.
    """
    parts = [p.strip() for p in text.split(",") if p.strip()]
    if len(parts) < 3:
        return AddressParts(street=text.strip() or None)

    unit = parts[1] if len(parts) > 3 else None
    city = parts[-2]
    m = _STATE_ZIP.search(parts[-1])
    if m:
        return AddressParts(street=parts[0], unit=unit, city=city, state=m.group(1), zip=m.group(2))
    return AddressParts(street=parts[0], unit=unit, city=city, state=parts[-1], zip=None)


def normalize_address_fields(payload: dict[str, Any]) -> AddressParts:
    """
    Canonical address parts from a raw payload.

    Supports flat component keys, a nested `address` object, and a single
    free-text `address` string.
    """
    street = get_first(payload, "street", "streetAddress", "addressLine", "address1")
    city = get_first(payload, "city")
    if street or city:
        return AddressParts(
            street=to_str(street),
            unit=to_str(get_first(payload, "unit", "apt", "address2")),
            city=to_str(city),
            state=to_str(get_first(payload, "state", "stateCode")),
            zip=to_str(get_first(payload, "zip", "zipCode", "postalCode")),
        )

    addr = payload.get("address")
    if isinstance(addr, dict):
        line = get_first(addr, "street", "streetAddress", "line1", "addressLine", "line")
        if line or addr.get("city"):
            return AddressParts(
                street=to_str(line),
                unit=to_str(get_first(addr, "unit", "apt", "line2")),
                city=to_str(get_nested(payload, "address.city")),
                state=to_str(get_first(addr, "state", "stateCode", "region")),
                zip=to_str(get_first(addr, "zip", "zipCode", "postalCode")),
            )
        return AddressParts()

    if isinstance(addr, str) and addr.strip():
        return parse_address_text(addr)

    return AddressParts()
