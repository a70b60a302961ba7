# leasesync/domain/urls.py
from __future__ import annotations

import posixpath
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

TRACKING_PARAMS: frozenset[str] = frozenset(
    {"fbclid", "gclid", "ref", "source", "mc_cid", "mc_eid", "_ga", "_gl"}
)

_MIME_EXT = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/avif": "avif",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
}


def _is_tracking(key: str) -> bool:
    k = key.lower()
    return k.startswith("utm_") or k in TRACKING_PARAMS


def canonicalize_url(url: str) -> str:
    """
    https scheme, lowercase host, tracking params dropped, query sorted by key,
    trailing slash stripped (root stays "/").

    Malformed input comes back unchanged.
    """
    if not url or not isinstance(url, str):
        return url
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
        port = parts.port
    except ValueError:
        return url
    if not parts.scheme or not host:
        return url

    netloc = host.lower()
    if parts.username:
        creds = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{creds}@{netloc}"
    if port and port not in (80, 443):
        netloc = f"{netloc}:{port}"

    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not _is_tracking(k)]
    query.sort(key=lambda kv: kv[0])

    path = parts.path.rstrip("/") or "/"

    return urlunsplit(("https", netloc, path, urlencode(query), parts.fragment))


def make_absolute(base: str | None, href: str | None) -> str | None:
    if not href:
        return None
    href = href.strip()
    if href.startswith("//"):
        return "https:" + href
    try:
        if urlsplit(href).scheme:
            return href
    except ValueError:
        return href
    if base:
        return urljoin(base, href)
    return href


def host_of(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def extension_from_url(url: str) -> str:
    """Lowercase extension of the URL path, or "" when there isn't a usable one."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return ""
    ext = posixpath.splitext(posixpath.basename(path))[1].lstrip(".").lower()
    if not ext or len(ext) > 5 or not ext.isalnum():
        return ""
    return ext


def extension_from_mime(mime_type: str | None) -> str:
    if not mime_type:
        return "jpg"
    return _MIME_EXT.get(mime_type.split(";")[0].strip().lower(), "jpg")
