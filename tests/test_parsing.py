from datetime import datetime

from leasesync.domain.address import normalize_address_fields, parse_address_text
from leasesync.domain.parsing import parse_date, parse_number, parse_price_range, to_int


def test_price_range_parsing():
    assert parse_price_range("$1,200 - $1,500") == (1200, 1500)
    assert parse_price_range(1200) == (1200, 1200)
    assert parse_price_range("$950/mo") == (950, 950)
    assert parse_price_range(None) == (None, None)
    assert parse_price_range("Call for pricing") == (None, None)


def test_reversed_price_range_is_swapped():
    assert parse_price_range("$1,500 – $1,200") == (1200, 1500)


def test_parse_number_strips_noise():
    assert parse_number("1.5 baths") == 1.5
    assert parse_number("$2,100") == 2100.0
    assert parse_number(True) is None
    assert parse_number("n/a") is None
    assert to_int("2.6") == 3


def test_parse_date_variants():
    assert parse_date("2024-06-01") == datetime(2024, 6, 1)
    assert parse_date("2024-06-01T12:00:00Z") == datetime(2024, 6, 1, 12, 0)
    assert parse_date("06/01/2024") == datetime(2024, 6, 1)
    assert parse_date(1717243200000) == datetime(2024, 6, 1, 12, 0)
    assert parse_date("Available now") is None
    assert parse_date(None) is None


def test_parse_address_text_with_unit():
    parts = parse_address_text("123 Main St, Apt 2, Ann Arbor, MI 48103")
    assert parts.street == "123 Main St"
    assert parts.unit == "Apt 2"
    assert parts.city == "Ann Arbor"
    assert parts.state == "MI"
    assert parts.zip == "48103"


def test_parse_address_text_without_state_zip_token():
    parts = parse_address_text("500 Oak Ave, Lansing, Michigan")
    assert parts.street == "500 Oak Ave"
    assert parts.unit is None
    assert parts.city == "Lansing"
    assert parts.state == "Michigan"
    assert parts.zip is None


def test_parse_address_text_too_short_is_street():
    assert parse_address_text("123 Main St").street == "123 Main St"


def test_normalize_address_fields_shapes():
    flat = normalize_address_fields({"streetAddress": "1 A St", "city": "Flint", "state": "MI", "zipCode": "48502"})
    assert (flat.street, flat.city, flat.state, flat.zip) == ("1 A St", "Flint", "MI", "48502")

    nested = normalize_address_fields({"address": {"line1": "2 B St", "city": "Troy", "state": "MI", "postalCode": "48084"}})
    assert (nested.street, nested.city, nested.zip) == ("2 B St", "Troy", "48084")

    text = normalize_address_fields({"address": "3 C St, Novi, MI 48375"})
    assert (text.street, text.city, text.state, text.zip) == ("3 C St", "Novi", "MI", "48375")

    assert normalize_address_fields({}).street is None
