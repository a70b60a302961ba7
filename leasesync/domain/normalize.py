# leasesync/domain/normalize.py
from __future__ import annotations

import re
from typing import Any

from .address import normalize_address_fields
from .errors import NormalizationError
from .parsing import (
    get_first,
    get_nested,
    order_range,
    parse_amenities,
    parse_date,
    parse_price_range,
    to_float,
    to_int,
    to_str,
)
from .types import Contact, NormalizedListing, RawListing
from .urls import canonicalize_url, make_absolute

URL_KEYS = ("canonicalUrl", "url", "link", "href", "detailUrl", "permalink")


def normalize_property_type(raw: object) -> str | None:
    """
    Map messy upstream property type strings into our rental types:
      apartment, house, townhouse, condo, duplex, room, studio, other

    None stays None; anything unrecognized becomes 'other'.
    """
    if raw is None:
        return None

    s = str(raw).strip().lower()
    if not s:
        return None
    s = re.sub(r"[\s_/|-]+", " ", s)

    if "studio" in s:
        return "studio"
    if any(k in s for k in ["townhouse", "town home", "townhome", "town house", "rowhouse", "row house"]):
        return "townhouse"
    if any(k in s for k in ["condo", "condominium"]):
        return "condo"
    if any(k in s for k in ["duplex", "triplex", "fourplex", "plex", "2 family", "multi family", "multifamily"]):
        return "duplex"
    if re.search(r"\b(room|shared|sublet|sublease)\b", s):
        return "room"
    if any(k in s for k in ["apartment", "apt", "flat", "loft", "unit"]):
        return "apartment"
    if any(k in s for k in ["house", "single family", "singlefamily", "sfh", "detached", "home", "cottage"]):
        return "house"

    return "other"


def parse_contact(raw: RawListing) -> dict[str, str] | None:
    """
    Flat top-level fields win; a nested `contact` object only fills gaps.
    """
    nested = raw.get("contact") if isinstance(raw.get("contact"), dict) else {}

    contact = Contact(
        phone=to_str(get_first(raw, "phone")) or to_str(nested.get("phone")),
        email=to_str(get_first(raw, "email")) or to_str(nested.get("email")),
        name=to_str(get_first(raw, "agentName")) or to_str(nested.get("name")),
    )
    return contact.as_dict()


def image_urls_from(items: Any, base_url: str | None) -> tuple[str, ...]:
    """Strings or {"url": ...} objects, made absolute, order kept, duplicates dropped."""
    if not isinstance(items, (list, tuple)):
        return ()

    out: list[str] = []
    seen: set[str] = set()
    for img in items:
        if isinstance(img, str):
            u = img
        elif isinstance(img, dict):
            u = get_first(img, "url", "src", "href")
        else:
            u = None
        u = make_absolute(base_url, to_str(u))
        if u and u not in seen:
            seen.add(u)
            out.append(u)
    return tuple(out)


def listing_url(raw: RawListing, base_url: str | None) -> str:
    url = make_absolute(base_url, to_str(get_first(raw, *URL_KEYS)))
    if not url:
        raise NormalizationError("listing has no url")
    return canonicalize_url(url)


def _price(raw: RawListing) -> tuple[int | None, int | None]:
    if raw.get("priceMin") is not None or raw.get("priceMax") is not None:
        return order_range(to_int(raw.get("priceMin")), to_int(raw.get("priceMax")))
    return parse_price_range(get_first(raw, "price", "rent"))


def normalize_listing(raw: RawListing, source_base_url: str | None) -> NormalizedListing:
    """
    Generic normalizer for heterogeneous JSON/HTML-derived listings.

    Every logical field is an ordered fallback over the key names seen in the
    wild; anything absent or unparseable ends up None.
    """
    if not isinstance(raw, dict):
        raise NormalizationError(f"expected an object, got {type(raw).__name__}")

    price_min, price_max = _price(raw)
    addr = normalize_address_fields(raw)

    lat = get_first(raw, "lat", "latitude")
    if lat is None:
        lat = get_nested(raw, "location.lat") or get_nested(raw, "geo.latitude")
    lng = get_first(raw, "lng", "lon", "longitude")
    if lng is None:
        lng = get_nested(raw, "location.lng") or get_nested(raw, "geo.longitude")

    source_listing_id = to_str(get_first(raw, "sourceListingId", "id"))

    return NormalizedListing(
        source_listing_id=source_listing_id,
        canonical_url=listing_url(raw, source_base_url),
        title=to_str(get_first(raw, "title", "headline", "name")),
        street=addr.street,
        unit=addr.unit,
        city=addr.city,
        state=addr.state,
        zip=addr.zip,
        lat=to_float(lat),
        lng=to_float(lng),
        price_min=price_min,
        price_max=price_max,
        beds=to_int(get_first(raw, "beds", "bedrooms")),
        baths=to_float(get_first(raw, "baths", "bathrooms")),
        sqft=to_int(get_first(raw, "sqft", "squareFeet", "square_feet")),
        property_type=normalize_property_type(get_first(raw, "propertyType", "property_type", "type")),
        availability_date=parse_date(get_first(raw, "availabilityDate", "available", "availableDate", "moveInDate")),
        lease_term=to_str(get_first(raw, "leaseTerm", "lease_term")),
        deposit=to_int(get_first(raw, "deposit", "securityDeposit")),
        fees_json=raw.get("fees") or None,
        amenities_json=parse_amenities(raw.get("amenities")),
        description=to_str(get_first(raw, "description", "details")),
        contact_json=parse_contact(raw),
        image_urls=image_urls_from(get_first(raw, "images", "photos"), source_base_url),
        raw_json=raw,
    )
