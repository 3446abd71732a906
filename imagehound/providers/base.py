"""Abstract base class for hostname resolution providers."""

from __future__ import annotations

import abc

from imagehound.models import IPAddress


class ResolutionProvider(abc.ABC):
    """Resolves a hostname as seen from many network locations."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g. 'GlobalPing')."""

    @property
    @abc.abstractmethod
    def slug(self) -> str:
        """Short identifier (e.g. 'globalping')."""

    @abc.abstractmethod
    async def resolve(self, hostname: str, locations: list[str]) -> list[IPAddress]:
        """Return the addresses *hostname* resolves to from *locations*.

        Implementations raise :class:`~imagehound.errors.ProviderError`
        on failure and silently drop unparseable addresses.
        """

    @abc.abstractmethod
    async def locations(self) -> list[str]:
        """Return the locations this provider can currently resolve from."""

    async def aclose(self) -> None:
        """Release any resources held by the provider."""
