# leasesync/domain/wix.py
"""
Normalizer for Wix dynamic-page collection items (propertyAddress nesting,
wix:image:// media references, {"$date": ...} values, HTML rich text).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .errors import NormalizationError
from .normalize import normalize_property_type
from .parsing import get_first, parse_amenities, parse_date, parse_price_range, strip_html, to_float, to_int, to_str
from .types import Contact, ImageDimensions, NormalizedListing, RawListing
from .urls import canonicalize_url, make_absolute

WIX_MEDIA_BASE = "https://static.wixstatic.com/media/"

_WIX_IMAGE = re.compile(r"^wix:image://v1/([^/#]+)")
_ORIGIN_WIDTH = re.compile(r"originWidth=(\d+)")
_ORIGIN_HEIGHT = re.compile(r"originHeight=(\d+)")

DETAIL_LINK_KEYS = ("link-all-properties-listings-propertyName", "link-all-properties-listings-all")


@dataclass(frozen=True)
class WixImage:
    url: str
    width: int | None = None
    height: int | None = None


def decode_wix_image(src: str | None) -> WixImage | None:
    """
    wix:image://v1/73ddc6_abc~mv2.jpeg/name.jpeg#originWidth=4032&originHeight=3024
      -> https://static.wixstatic.com/media/73ddc6_abc~mv2.jpeg (4032x3024)

    Plain http(s) URLs pass through without size info.
    """
    if not src:
        return None
    src = src.strip()
    if src.startswith("http"):
        return WixImage(url=src)

    m = _WIX_IMAGE.match(src)
    if not m:
        return None

    w = _ORIGIN_WIDTH.search(src)
    h = _ORIGIN_HEIGHT.search(src)
    return WixImage(
        url=WIX_MEDIA_BASE + m.group(1),
        width=int(w.group(1)) if w else None,
        height=int(h.group(1)) if h else None,
    )


def wix_date(val: Any) -> datetime | None:
    if isinstance(val, dict) and "$date" in val:
        return parse_date(val.get("$date"))
    if isinstance(val, str):
        return parse_date(val)
    return None


def _rich_text(val: Any) -> str | None:
    s = to_str(val)
    if s and "<" in s:
        return strip_html(s)
    return s


def _images(raw: RawListing) -> tuple[tuple[str, ...], dict[str, ImageDimensions]]:
    urls: list[str] = []
    dims: dict[str, ImageDimensions] = {}

    def _add(img: WixImage | None) -> None:
        if img is None or img.url in urls:
            return
        urls.append(img.url)
        if img.width and img.height:
            dims[img.url] = ImageDimensions(width=img.width, height=img.height)

    gallery = raw.get("image")
    if isinstance(gallery, list):
        for item in gallery:
            src = item.get("src") if isinstance(item, dict) else item if isinstance(item, str) else None
            _add(decode_wix_image(src))

    if not urls and raw.get("mainPropertyImage"):
        _add(decode_wix_image(to_str(raw.get("mainPropertyImage"))))

    return tuple(urls), dims


def _contact(raw: RawListing) -> dict[str, str] | None:
    nested = raw.get("contact") if isinstance(raw.get("contact"), dict) else {}
    contact = Contact(
        phone=to_str(get_first(raw, "phone", "phoneNumber", "contactPhone")) or to_str(nested.get("phone")),
        email=to_str(get_first(raw, "email", "contactEmail", "agentEmail")) or to_str(nested.get("email")),
        name=to_str(get_first(raw, "agentName", "contactName", "landlordName", "propertyManager"))
        or to_str(nested.get("name")),
    )
    return contact.as_dict()


def normalize_wix_listing(raw: RawListing, source_base_url: str | None) -> NormalizedListing:
    if not isinstance(raw, dict):
        raise NormalizationError(f"expected an object, got {type(raw).__name__}")

    addr = raw.get("propertyAddress") if isinstance(raw.get("propertyAddress"), dict) else {}
    street_obj = addr.get("streetAddress") if isinstance(addr.get("streetAddress"), dict) else {}
    location = addr.get("location") if isinstance(addr.get("location"), dict) else {}

    street = to_str(street_obj.get("formattedAddressLine"))
    if not street and street_obj.get("number") and street_obj.get("name"):
        street = f"{street_obj['number']} {street_obj['name']}"

    item_id = to_str(raw.get("_id"))
    detail = to_str(get_first(raw, *DETAIL_LINK_KEYS))
    if detail:
        url = make_absolute(source_base_url, detail)
    elif item_id and source_base_url:
        url = f"{source_base_url.rstrip('/')}/listing/{item_id}"
    else:
        raise NormalizationError("wix item has neither a detail link nor an _id")

    price_min, price_max = parse_price_range(raw.get("marketRent"))
    deposit, _ = parse_price_range(raw.get("deposit"))

    description = _rich_text(get_first(raw, "marketingDescription", "shortDescription", "shortDescriptionAlt"))
    pet_policy = _rich_text(raw.get("petPolicy"))
    full_description = "\n\n".join(p for p in (description, pet_policy) if p) or None

    lease_term = to_str(raw.get("leaseTerms1")) or _rich_text(raw.get("leaseTerms"))

    zip_code = to_str(addr.get("postalCode"))
    if zip_code:
        zip_code = zip_code.split("-")[0]

    image_urls, image_dims = _images(raw)

    return NormalizedListing(
        source_listing_id=item_id,
        canonical_url=canonicalize_url(url),
        title=to_str(get_first(raw, "propertyName", "slug")),
        street=street,
        unit=to_str(raw.get("unit")) or to_str(street_obj.get("apt")),
        city=to_str(addr.get("city")),
        state=to_str(addr.get("subdivision")),
        zip=zip_code,
        lat=to_float(location.get("latitude")),
        lng=to_float(location.get("longitude")),
        price_min=price_min,
        price_max=price_max,
        beds=to_int(raw.get("bedrooms")),
        baths=to_float(raw.get("bathrooms")),
        sqft=to_int(get_first(raw, "sqft", "squareFeet")),
        property_type=normalize_property_type(raw.get("propertyType")),
        availability_date=wix_date(raw.get("availableDate")),
        lease_term=lease_term,
        deposit=deposit,
        fees_json=None,
        amenities_json=parse_amenities(raw.get("amenities")),
        description=full_description,
        contact_json=_contact(raw),
        image_urls=image_urls,
        image_dimensions=image_dims,
        raw_json=raw,
    )
