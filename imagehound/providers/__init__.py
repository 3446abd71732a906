"""Hostname resolution provider registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from imagehound.providers.base import ResolutionProvider

_PROVIDER_MAP: dict[str, type[ResolutionProvider]] | None = None


def _load_providers() -> dict[str, type[ResolutionProvider]]:
    from imagehound.providers.globalping import GlobalPingProvider
    from imagehound.providers.publicdns import DNSProvider

    return {
        "globalping": GlobalPingProvider,
        "dns": DNSProvider,
    }


def get_provider_map() -> dict[str, type[ResolutionProvider]]:
    """Return the mapping of slug → provider class, loading lazily."""
    global _PROVIDER_MAP
    if _PROVIDER_MAP is None:
        _PROVIDER_MAP = _load_providers()
    return _PROVIDER_MAP


def get_provider(slug: str, **kwargs) -> ResolutionProvider:
    """Instantiate a provider by slug, passing *kwargs* to its constructor."""
    pmap = get_provider_map()
    if slug not in pmap:
        raise ValueError(f"Unknown provider: {slug!r}. Available: {list(pmap)}")
    return pmap[slug](**kwargs)


def list_providers() -> list[str]:
    """Return sorted list of available provider slugs."""
    return sorted(get_provider_map())
