# leasesync/adapters/ingestion/html_fallback.py
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from ...config import settings
from ...domain.types import RawListing
from ...domain.urls import host_of
from ..clients.browser import BrowserSession
from ..clients.http_resilience import HostRateLimiter

log = logging.getLogger(__name__)

LINK_SELECTORS = (
    'a[href*="/listing"]',
    'a[href*="/property"]',
    'a[href*="/rental"]',
    'a[href*="/unit"]',
    ".listing-card a",
    ".property-card a",
    "[data-listing] a",
    ".card a[href]",
)

JSON_LD_TYPES = frozenset({"Apartment", "RealEstateListing", "Residence", "Product"})

PHONE_PATTERNS = (
    re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}"),
    re.compile(r"\d{3}[-.\s]\d{3}[-.\s]\d{4}"),
)

CONTACT_SELECTORS = (
    '[class*="contact"]',
    '[class*="phone"]',
    '[class*="agent"]',
    '[class*="landlord"]',
    '[class*="manager"]',
    'a[href^="tel:"]',
    'a[href^="mailto:"]',
)

NAME_SELECTORS = (
    '[class*="agent-name"]',
    '[class*="contact-name"]',
    '[class*="manager-name"]',
    '[class*="landlord-name"]',
)

IMAGE_HINTS = ("listing", "property", "photo", "image")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _first_text(soup: BeautifulSoup, *selectors: str) -> str | None:
    for sel in selectors:
        el = soup.select_one(sel)
        if el is None:
            continue
        txt = el.get_text(" ", strip=True)
        if txt:
            return txt
    return None


def extract_listing_urls(html: str, base_url: str) -> list[str]:
    """Candidate detail links on the target's own host, first-seen order."""
    soup = _soup(html)
    host = host_of(base_url)
    out: list[str] = []
    seen: set[str] = set()
    for sel in LINK_SELECTORS:
        for a in soup.select(sel):
            href = a.get("href")
            if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
                continue
            full = urljoin(base_url, href)
            if host_of(full) != host:
                continue
            if full not in seen:
                seen.add(full)
                out.append(full)
    return out


def _json_ld_nodes(data: Any) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _json_ld_nodes(item)
    elif isinstance(data, dict):
        yield data
        if isinstance(data.get("@graph"), list):
            yield from _json_ld_nodes(data["@graph"])


def _is_listing_type(node: dict[str, Any]) -> bool:
    t = node.get("@type")
    types = t if isinstance(t, list) else [t]
    return any(x in JSON_LD_TYPES for x in types if isinstance(x, str))


def extract_json_ld(soup: BeautifulSoup) -> RawListing | None:
    """schema.org listing data embedded as application/ld+json, if any."""
    for script in soup.select('script[type="application/ld+json"]'):
        text = script.string or script.get_text()
        if not text or not text.strip():
            continue
        try:
            data = json.loads(text)
        except ValueError:
            continue
        for node in _json_ld_nodes(data):
            if not _is_listing_type(node):
                continue
            address = node.get("address") if isinstance(node.get("address"), dict) else {}
            geo = node.get("geo") if isinstance(node.get("geo"), dict) else {}
            offers = node.get("offers")
            if isinstance(offers, list):
                offers = offers[0] if offers else {}
            offers = offers if isinstance(offers, dict) else {}
            image = node.get("image")
            images = image if isinstance(image, list) else ([image] if image else [])
            return {
                "title": node.get("name"),
                "description": node.get("description"),
                "street": address.get("streetAddress"),
                "city": address.get("addressLocality"),
                "state": address.get("addressRegion"),
                "zip": address.get("postalCode"),
                "lat": geo.get("latitude"),
                "lng": geo.get("longitude"),
                "price": offers.get("price") or node.get("price"),
                "images": images,
            }
    return None


def _images(soup: BeautifulSoup, page_url: str) -> list[str]:
    out: list[str] = []

    def _push(src: str | None) -> None:
        if not src or src.startswith("data:"):
            return
        full = urljoin(page_url, src)
        if full not in out:
            out.append(full)

    for img in soup.select("img[src], img[data-src]"):
        src = img.get("data-src") or img.get("src") or ""
        if any(h in src for h in IMAGE_HINTS):
            _push(src)

    for img in soup.select('[class*="gallery"] img, [class*="carousel"] img, [class*="slider"] img'):
        _push(img.get("src") or img.get("data-src"))

    return out


def _mailto(soup: BeautifulSoup) -> str | None:
    a = soup.select_one('a[href^="mailto:"]')
    if a is None:
        return None
    return a["href"][len("mailto:") :].split("?")[0].strip() or None


def _match_phone(text: str) -> str | None:
    for pattern in PHONE_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(0).strip()
    return None


def parse_detail_html(html: str, url: str) -> RawListing:
    """
    Raw listing from a rendered detail page. JSON-LD wins; otherwise class-name
    heuristics, every field optional.
    """
    soup = _soup(html)

    structured = extract_json_ld(soup)
    if structured:
        return {**structured, "url": url, "canonicalUrl": url}

    listing: RawListing = {"url": url, "canonicalUrl": url}
    listing["title"] = _first_text(soup, "h1", '[class*="title"]', "title")

    price = _first_text(soup, '[class*="price"]', '[class*="rent"]')
    if price:
        listing["price"] = price

    listing["address"] = _first_text(soup, '[class*="address"]', "address")
    listing["description"] = _first_text(soup, '[class*="description"]', '[class*="details"]')

    beds = re.search(r"(\d+)", _first_text(soup, '[class*="bed"]') or "")
    if beds:
        listing["beds"] = beds.group(1)
    baths = re.search(r"(\d+\.?\d*)", _first_text(soup, '[class*="bath"]') or "")
    if baths:
        listing["baths"] = baths.group(1)
    sqft = re.search(r"([\d,]+)", _first_text(soup, '[class*="sqft"], [class*="square"], [class*="area"]') or "")
    if sqft:
        listing["sqft"] = sqft.group(1).replace(",", "")

    listing["images"] = _images(soup, url)

    body = soup.body.get_text(" ", strip=True) if soup.body else ""
    phone = _match_phone(body)
    if phone:
        listing["phone"] = phone
    email = _mailto(soup)
    if email:
        listing["email"] = email

    return listing


def extract_contact_from_html(html: str) -> dict[str, str] | None:
    """
    {phone, email, name} subset from a listing page, or None.

    tel:/mailto: links first, then phone-looking text inside contact-ish
    blocks, then anywhere in the body.
    """
    soup = _soup(html)
    contact: dict[str, str] = {}

    email = _mailto(soup)
    if email:
        contact["email"] = email

    tel = soup.select_one('a[href^="tel:"]')
    if tel is not None:
        phone = re.sub(r"[^\d+\-().\s]", "", tel["href"][len("tel:") :]).strip()
        if phone:
            contact["phone"] = phone

    if "phone" not in contact:
        for sel in CONTACT_SELECTORS:
            text = " ".join(el.get_text(" ", strip=True) for el in soup.select(sel))
            phone = _match_phone(text)
            if phone:
                contact["phone"] = phone
                break

    if "phone" not in contact and soup.body is not None:
        phone = _match_phone(soup.body.get_text(" ", strip=True))
        if phone:
            contact["phone"] = phone

    for sel in NAME_SELECTORS:
        name = _first_text(soup, sel)
        if name and 2 < len(name) < 50:
            contact["name"] = name
            break

    return contact or None


class HtmlFallbackScraper:
    """
    Renders the target page, harvests detail links, then scrapes each detail
    page. Per-page failures are logged and skipped.
    """

    def __init__(self, *, limiter: HostRateLimiter | None = None, user_agent: str | None = None) -> None:
        self.limiter = limiter or HostRateLimiter(settings.HTML_FALLBACK_RPS)
        self.user_agent = user_agent

    async def scrape(self, target_url: str, *, limit: int | None = None) -> list[RawListing]:
        log.info("Starting HTML fallback scrape: %s", target_url)
        listings: list[RawListing] = []

        async with BrowserSession(user_agent=self.user_agent, timeout_s=settings.DISCOVERY_TIMEOUT_S) as browser:
            html = await browser.render(target_url, settle_ms=3000)
            urls = extract_listing_urls(html, target_url)
            log.info("Found %d listing urls", len(urls))
            if limit and limit > 0:
                urls = urls[:limit]

            for url in urls:
                try:
                    await self.limiter.wait(host_of(url))
                    detail = await browser.render(url, settle_ms=2000, timeout_ms=30000)
                    listing = parse_detail_html(detail, url)
                    listings.append(listing)
                    log.info("Scraped listing %s (%s)", url[:120], listing.get("title"))
                except PlaywrightError as e:
                    log.warning("Failed to scrape listing %s: %s", url[:120], e)

        log.info("HTML fallback scrape complete: %d listings", len(listings))
        return listings
