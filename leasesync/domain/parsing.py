# leasesync/domain/parsing.py
from __future__ import annotations

import html
import re
from datetime import datetime, timezone
from typing import Any

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_PRICE_RANGE = re.compile(r"\$?([\d,]+(?:\.\d+)?)\s*[-–]\s*\$?([\d,]+(?:\.\d+)?)")
_TAGS = re.compile(r"<[^>]+>")
_AMENITY_SPLIT = re.compile(r"[,;|]")
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%B %d, %Y", "%b %d, %Y", "%B %Y", "%b %Y")


def parse_number(x: Any) -> float | None:
    """
    Accepts numbers or strings like "$1,200/mo" or "1.5 baths".
    Non-numeric characters are stripped before parsing.
    """
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        return float(x)
    s = _NON_NUMERIC.sub("", str(x))
    if not s:
        return None
    # "1200-1500" → first number
    m = re.match(r"-?\d*\.?\d+", s)
    if not m:
        return None
    try:
        return float(m.group(0))
    except ValueError:
        return None


def to_int(x: Any) -> int | None:
    v = parse_number(x)
    if v is None:
        return None
    return int(round(v))


def to_float(x: Any) -> float | None:
    return parse_number(x)


def to_str(x: Any) -> str | None:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def get_first(payload: dict[str, Any], *keys: str) -> Any:
    """Return first non-empty key from payload."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


def get_nested(payload: dict[str, Any], path: str) -> Any:
    """Tiny dot-path getter: 'address.city' or 'location.latitude'."""
    cur: Any = payload
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
        if cur is None:
            return None
    return cur


def parse_price_range(value: Any) -> tuple[int | None, int | None]:
    """
    "$1,200 - $1,500" -> (1200, 1500)
    1200              -> (1200, 1200)
    None / "call"     -> (None, None)
    """
    if value is None or isinstance(value, bool):
        return None, None

    if isinstance(value, str):
        m = _PRICE_RANGE.search(value)
        if m:
            lo = to_int(m.group(1))
            hi = to_int(m.group(2))
            return order_range(lo, hi)

    single = to_int(value)
    return single, single


def order_range(lo: int | None, hi: int | None) -> tuple[int | None, int | None]:
    if lo is not None and hi is not None and lo > hi:
        return hi, lo
    return lo, hi


def parse_date(x: Any) -> datetime | None:
    """Best-effort date parsing; always returns a naive UTC datetime."""
    if x is None or x == "":
        return None
    if isinstance(x, datetime):
        dt = x
    elif isinstance(x, (int, float)) and not isinstance(x, bool):
        # epoch millis (JS-style) or seconds
        ts = float(x) / 1000.0 if x > 1e11 else float(x)
        try:
            dt = datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        s = str(x).strip()
        if not s:
            return None
        dt = None
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _DATE_FORMATS:
                try:
                    dt = datetime.strptime(s, fmt)
                    break
                except ValueError:
                    continue
        if dt is None:
            return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_amenities(x: Any) -> list[str] | None:
    if x is None:
        return None
    if isinstance(x, (list, tuple)):
        items = [str(a).strip() for a in x if a is not None and str(a).strip()]
    elif isinstance(x, str):
        items = [a.strip() for a in _AMENITY_SPLIT.split(x) if a.strip()]
    else:
        return None
    return items or None


def strip_html(x: Any) -> str | None:
    if x is None:
        return None
    s = _TAGS.sub(" ", str(x))
    s = html.unescape(s)
    s = re.sub(r"[ \t\r\f\v]+", " ", s)
    s = re.sub(r"\s*\n\s*", "\n", s)
    return s.strip() or None
