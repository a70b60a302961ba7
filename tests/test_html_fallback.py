from leasesync.adapters.ingestion.html_fallback import (
    extract_contact_from_html,
    extract_listing_urls,
    parse_detail_html,
)
from leasesync.domain.normalize import normalize_listing

BASE = "https://rentals.example.com/rentals"

INDEX = """
<html><body>
  <div class="listing-card"><a href="/listing/1">One</a></div>
  <div class="listing-card"><a href="/listing/2">Two</a></div>
  <a href="/listing/1">One again</a>
  <a href="https://elsewhere.example.org/listing/9">Partner</a>
  <a href="#top">Top</a>
  <a href="/about">About</a>
</body></html>
"""


def test_listing_urls_same_host_in_order():
    assert extract_listing_urls(INDEX, BASE) == [
        "https://rentals.example.com/listing/1",
        "https://rentals.example.com/listing/2",
    ]


def test_detail_prefers_json_ld():
    html = """
    <html><head>
    <script type="application/ld+json">
    {"@context": "https://schema.org", "@graph": [
      {"@type": "Organization", "name": "Acme"},
      {"@type": "Apartment", "name": "Sunny 2BR",
       "address": {"streetAddress": "12 Main St", "addressLocality": "Ann Arbor",
                   "addressRegion": "MI", "postalCode": "48104"},
       "geo": {"latitude": 42.28, "longitude": -83.74},
       "offers": [{"price": "1450"}],
       "image": "https://cdn.example.com/p1.jpg"}
    ]}
    </script>
    </head><body><h1>Ignored heading</h1></body></html>
    """
    raw = parse_detail_html(html, "https://rentals.example.com/listing/1")

    assert raw["title"] == "Sunny 2BR"
    assert raw["city"] == "Ann Arbor"
    assert raw["price"] == "1450"
    assert raw["images"] == ["https://cdn.example.com/p1.jpg"]
    assert raw["url"] == "https://rentals.example.com/listing/1"

    listing = normalize_listing(raw, "https://rentals.example.com")
    assert (listing.price_min, listing.zip, listing.lat) == (1450, "48104", 42.28)


def test_detail_heuristics_without_structured_data():
    html = """
    <html><body>
      <h1>Cozy house</h1>
      <div class="listing-price">$1,200/mo</div>
      <div class="beds-count">3 Beds</div>
      <div class="baths-count">1.5 Baths</div>
      <div class="sqft">1,100 sq ft</div>
      <div class="gallery"><img src="/photos/a.jpg"><img src="data:image/png;base64,xx"></div>
      <p>Call 734-555-0199 today</p>
      <a href="mailto:owner@example.com?subject=hi">Email</a>
    </body></html>
    """
    raw = parse_detail_html(html, "https://rentals.example.com/listing/7")

    assert raw["title"] == "Cozy house"
    assert raw["price"] == "$1,200/mo"
    assert (raw["beds"], raw["baths"], raw["sqft"]) == ("3", "1.5", "1100")
    assert raw["images"] == ["https://rentals.example.com/photos/a.jpg"]
    assert raw["phone"] == "734-555-0199"
    assert raw["email"] == "owner@example.com"


def test_contact_from_links():
    html = """
    <html><body>
      <div class="agent-name">Pat Lee</div>
      <a href="tel:+1-313-555-0101">Call</a>
      <a href="mailto:pat@example.com">Email</a>
    </body></html>
    """
    assert extract_contact_from_html(html) == {
        "phone": "+1-313-555-0101",
        "email": "pat@example.com",
        "name": "Pat Lee",
    }


def test_contact_phone_from_contact_block():
    html = '<html><body><div class="contact-box">Leasing office: (313) 555-0123</div></body></html>'
    assert extract_contact_from_html(html) == {"phone": "(313) 555-0123"}


def test_contact_none_when_absent():
    assert extract_contact_from_html("<html><body><p>Nothing to see</p></body></html>") is None
