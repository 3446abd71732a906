"""Image URL parsing and Weibo quality-variant generation."""

from __future__ import annotations

import re
from urllib.parse import SplitResult, urlsplit

from imagehound.config import QUALITIES, WEIBO_HOSTNAMES
from imagehound.errors import InvalidImageURL

_WEIBO_IMAGE_RE = re.compile(
    r"(?:https?://)?([\da-zA-Z\-.]+\.sinaimg\.cn)/.+/([\da-zA-Z]+\.(?:jpg|png|gif))"
)

_DEFAULT_PORTS = {"https": 443, "http": 80}


def parse_image_url(url: str) -> tuple[SplitResult, int]:
    """Parse *url* and return ``(parts, port)``.

    Scheme-relative URLs (``//host/path``) are taken as https.  The port
    defaults from the scheme; only http and https are accepted.
    """
    url = (url or "").strip()
    if not url:
        raise InvalidImageURL("empty URL")
    if url.startswith("//"):
        url = "https:" + url

    parts = urlsplit(url)
    if parts.scheme not in _DEFAULT_PORTS:
        raise InvalidImageURL(f"unsupported scheme: {parts.scheme!r}")
    if not parts.hostname:
        raise InvalidImageURL(f"missing hostname in {url!r}")

    try:
        port = parts.port
    except ValueError as exc:
        raise InvalidImageURL(f"invalid port in {url!r}") from exc
    if port is None:
        port = _DEFAULT_PORTS[parts.scheme]
    elif port == 0:
        raise InvalidImageURL(f"invalid port in {url!r}")
    return parts, port


def generate_quality_urls(url: str) -> list[str]:
    """Return *url*'s image at every quality tier, best first.

    Only Weibo image URLs (``*.sinaimg.cn/<quality>/<name>.<ext>``) have
    variants; anything else raises :class:`InvalidImageURL`.
    """
    match = _WEIBO_IMAGE_RE.search(url or "")
    if not match:
        raise InvalidImageURL("not a Weibo image URL")
    host, name = match.group(1), match.group(2)
    return [f"https://{host}/{quality}/{name}" for quality in QUALITIES]


def variants_for(url: str) -> list[str]:
    """Quality variants of *url*, or just *url* itself when it has none."""
    try:
        return generate_quality_urls(url)
    except InvalidImageURL:
        return [url]


def hostnames() -> list[str]:
    """Image hostnames whose edges are worth caching."""
    return list(WEIBO_HOSTNAMES)
