# leasesync/domain/image_size.py
from __future__ import annotations

from .types import ImageDimensions

PNG_MAGIC = b"\x89PNG"
JPEG_MAGIC = b"\xff\xd8"
GIF_MAGIC = b"GIF"

# SOF0..SOF3 carry the frame size
_JPEG_SOF = frozenset({0xC0, 0xC1, 0xC2, 0xC3})
# markers without a length field
_JPEG_STANDALONE = frozenset({0x01, *range(0xD0, 0xD9)})


def _be16(buf: bytes, i: int) -> int:
    return int.from_bytes(buf[i : i + 2], "big")


def _le16(buf: bytes, i: int) -> int:
    return int.from_bytes(buf[i : i + 2], "little")


def _png(buf: bytes) -> tuple[int, int] | None:
    if len(buf) < 24:
        return None
    return int.from_bytes(buf[16:20], "big"), int.from_bytes(buf[20:24], "big")


def _jpeg(buf: bytes) -> tuple[int, int] | None:
    i = 2
    n = len(buf)
    while i + 3 < n:
        if buf[i] != 0xFF:
            return None
        marker = buf[i + 1]
        if marker == 0xFF:
            # fill byte
            i += 1
            continue
        if marker in _JPEG_STANDALONE:
            i += 2
            continue
        if marker in _JPEG_SOF:
            if i + 9 > n:
                return None
            return _be16(buf, i + 7), _be16(buf, i + 5)
        seg_len = _be16(buf, i + 2)
        if seg_len < 2:
            return None
        i += 2 + seg_len
    return None


def _gif(buf: bytes) -> tuple[int, int] | None:
    if len(buf) < 10:
        return None
    return _le16(buf, 6), _le16(buf, 8)


def _webp(buf: bytes) -> tuple[int, int] | None:
    if len(buf) < 30 or buf[8:12] != b"WEBP":
        return None
    chunk = buf[12:16]
    if chunk == b"VP8 ":
        return _le16(buf, 26) & 0x3FFF, _le16(buf, 28) & 0x3FFF
    if chunk == b"VP8L":
        b = buf[21:25]
        width = 1 + (((b[1] & 0x3F) << 8) | b[0])
        height = 1 + (((b[3] & 0x0F) << 10) | (b[2] << 2) | ((b[1] & 0xC0) >> 6))
        return width, height
    if chunk == b"VP8X":
        width = 1 + int.from_bytes(buf[24:27], "little")
        height = 1 + int.from_bytes(buf[27:30], "little")
        return width, height
    return None


def detect_image_dimensions(buf: bytes) -> ImageDimensions | None:
    """
    Width/height straight from the header bytes. PNG, JPEG, GIF and WebP.

    Truncated, unknown or garbage input gives None.
    """
    if not buf:
        return None
    try:
        if buf.startswith(PNG_MAGIC):
            wh = _png(buf)
        elif buf.startswith(JPEG_MAGIC):
            wh = _jpeg(buf)
        elif buf.startswith(GIF_MAGIC):
            wh = _gif(buf)
        elif buf.startswith(b"RIFF"):
            wh = _webp(buf)
        else:
            wh = None
    except IndexError:
        return None

    if not wh or wh[0] <= 0 or wh[1] <= 0:
        return None
    return ImageDimensions(width=wh[0], height=wh[1])
