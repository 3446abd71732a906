"""Image type detection from leading magic bytes."""

from __future__ import annotations

from typing import Optional

_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
]


def sniff_image_type(body: bytes) -> Optional[str]:
    """Return the image MIME type implied by *body*, or None."""
    for magic, mime in _SIGNATURES:
        if body.startswith(magic):
            return mime
    # RIFF container: "RIFF" <size> "WEBP"
    if body[:4] == b"RIFF" and body[8:12] == b"WEBP":
        return "image/webp"
    # ISO-BMFF: <size> "ftyp" <brand>
    if body[4:8] == b"ftyp" and body[8:12] in (b"avif", b"avis"):
        return "image/avif"
    return None
