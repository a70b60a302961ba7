# leasesync/domain/reso.py
from __future__ import annotations

from typing import Any

from .address import parse_address_text
from .errors import NormalizationError
from .normalize import normalize_property_type
from .parsing import get_first, parse_amenities, parse_date, to_float, to_int, to_str
from .types import Contact, NormalizedListing, RawListing
from .urls import canonicalize_url, make_absolute


def _street(raw: RawListing) -> str | None:
    parts = [
        to_str(raw.get("StreetNumber")),
        to_str(raw.get("StreetDirPrefix")),
        to_str(raw.get("StreetName")),
        to_str(raw.get("StreetSuffix")),
    ]
    joined = " ".join(p for p in parts if p)
    return joined or None


def _media(raw: RawListing) -> tuple[str, ...]:
    """Media[] ordered by `Order`, photos only when MediaCategory is given."""
    media = raw.get("Media")
    if not isinstance(media, list):
        return ()

    rows: list[tuple[int, int, str]] = []
    for i, m in enumerate(media):
        if not isinstance(m, dict):
            continue
        category = str(m.get("MediaCategory") or "Photo").lower()
        if category not in ("photo", "image"):
            continue
        url = to_str(m.get("MediaURL"))
        if not url:
            continue
        # missing or unparseable Order falls back to array position
        order = to_int(m.get("Order"))
        rows.append((order if order is not None else i, i, url))

    rows.sort()
    out: list[str] = []
    for _, _, url in rows:
        if url not in out:
            out.append(url)
    return tuple(out)


def _amenities(raw: RawListing) -> list[str] | None:
    out: list[str] = []
    for key in ("Appliances", "InteriorFeatures", "CommunityFeatures", "Cooling", "Heating", "ParkingFeatures"):
        out.extend(parse_amenities(raw.get(key)) or [])
    return out or None


def normalize_reso_listing(raw: RawListing, source_base_url: str | None) -> NormalizedListing:
    """
    RESO Web API / OData Property resource (ListingKey, UnparsedAddress, ListPrice, ...).

    Lease listings put the monthly rent in ListPrice; a LeaseAmount wins when present.
    """
    if not isinstance(raw, dict):
        raise NormalizationError(f"expected an object, got {type(raw).__name__}")

    listing_key = to_str(get_first(raw, "ListingKey", "ListingId", "ListingKeyNumeric"))

    url = to_str(get_first(raw, "ListingURL", "VirtualTourURLBranded", "url"))
    if url:
        url = make_absolute(source_base_url, url)
    elif listing_key and source_base_url:
        url = f"{source_base_url.rstrip('/')}/listing/{listing_key}"
    else:
        raise NormalizationError("RESO record has neither ListingURL nor ListingKey")

    street = _street(raw)
    unit = to_str(raw.get("UnitNumber"))
    city = to_str(get_first(raw, "City", "PostalCity"))
    state = to_str(raw.get("StateOrProvince"))
    zip_code = to_str(raw.get("PostalCode"))
    if not street and isinstance(raw.get("UnparsedAddress"), str):
        parsed = parse_address_text(raw["UnparsedAddress"])
        street = parsed.street
        unit = unit or parsed.unit
        city = city or parsed.city
        state = state or parsed.state
        zip_code = zip_code or parsed.zip

    rent = to_int(get_first(raw, "LeaseAmount", "ListPrice"))
    price_min = price_max = rent

    baths = to_float(raw.get("BathroomsTotalDecimal"))
    if baths is None:
        baths = to_float(get_first(raw, "BathroomsTotalInteger", "BathroomsFull"))

    contact = Contact(
        phone=to_str(get_first(raw, "ListAgentDirectPhone", "ListAgentOfficePhone", "ListOfficePhone")),
        email=to_str(get_first(raw, "ListAgentEmail", "ListOfficeEmail")),
        name=to_str(get_first(raw, "ListAgentFullName", "ListOfficeName")),
    )

    fees: dict[str, Any] = {}
    for key in ("AssociationFee", "PetDeposit", "ApplicationFee"):
        v = to_int(raw.get(key))
        if v is not None:
            fees[key] = v

    return NormalizedListing(
        source_listing_id=listing_key,
        canonical_url=canonicalize_url(url),
        title=to_str(raw.get("UnparsedAddress")) or street,
        street=street,
        unit=unit,
        city=city,
        state=state,
        zip=zip_code.split("-")[0] if zip_code else None,
        lat=to_float(raw.get("Latitude")),
        lng=to_float(raw.get("Longitude")),
        price_min=price_min,
        price_max=price_max,
        beds=to_int(raw.get("BedroomsTotal")),
        baths=baths,
        sqft=to_int(get_first(raw, "LivingArea", "BuildingAreaTotal")),
        property_type=normalize_property_type(get_first(raw, "PropertySubType", "PropertyType")),
        availability_date=parse_date(get_first(raw, "AvailabilityDate", "AvailableDate")),
        lease_term=to_str(raw.get("LeaseTerm")),
        deposit=to_int(get_first(raw, "SecurityDeposit", "Deposit")),
        fees_json=fees or None,
        amenities_json=_amenities(raw),
        description=to_str(raw.get("PublicRemarks")),
        contact_json=contact.as_dict(),
        image_urls=_media(raw),
        raw_json=raw,
    )
