"""DNS provider: resolve through public resolvers in different regions.

Geo-aware authoritative servers hand each recursive resolver the edges
closest to it, so asking resolvers spread across the world yields a
spread of edges.  Coarser than GlobalPing, but needs no API.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import dns.asyncresolver
import dns.exception
import dns.rdatatype
import dns.resolver

from imagehound.config import DNS_RESOLVERS, DNS_TIMEOUT
from imagehound.errors import ProviderError
from imagehound.models import IPAddress, parse_ip
from imagehound.providers.base import ResolutionProvider
from imagehound.store import unique_ips

logger = logging.getLogger(__name__)

_RDTYPES = (dns.rdatatype.A, dns.rdatatype.AAAA)


class DNSProvider(ResolutionProvider):
    """Resolve A and AAAA records through region-grouped public resolvers."""

    def __init__(
        self,
        resolvers: Optional[dict[str, list[str]]] = None,
        timeout: float = DNS_TIMEOUT,
    ) -> None:
        self._resolvers = dict(resolvers if resolvers is not None else DNS_RESOLVERS)
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "Public DNS"

    @property
    def slug(self) -> str:
        return "dns"

    async def locations(self) -> list[str]:
        return list(self._resolvers)

    async def resolve(self, hostname: str, locations: list[str]) -> list[IPAddress]:
        if not hostname:
            raise ProviderError("no hostname specified")

        nameservers: list[str] = []
        for location in locations:
            servers = self._resolvers.get(location)
            if servers is None:
                logger.debug("No resolvers known for location %r", location)
                continue
            nameservers.extend(servers)
        if not nameservers:
            raise ProviderError("no resolvers for the requested locations")

        queries = [
            self._query(ns, hostname, rdtype)
            for ns in dict.fromkeys(nameservers)
            for rdtype in _RDTYPES
        ]
        outcomes = await asyncio.gather(*queries, return_exceptions=True)

        addresses: list[str] = []
        failures = 0
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                failures += 1
                continue
            addresses.extend(outcome)
        if failures == len(outcomes):
            raise ProviderError(f"every resolver failed for {hostname}")

        ips: list[IPAddress] = []
        for address in addresses:
            try:
                ips.append(parse_ip(address))
            except ValueError:
                logger.debug("Ignoring unparseable address %r for %s", address, hostname)
        return unique_ips(ips)

    async def _query(self, nameserver: str, hostname: str, rdtype) -> list[str]:
        """Ask *nameserver* for *hostname*'s *rdtype* records.

        An empty answer (e.g. no AAAA) is not an error.
        """
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = [nameserver]
        resolver.lifetime = self._timeout
        try:
            answer = await resolver.resolve(hostname, rdtype)
        except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN):
            return []
        except dns.exception.DNSException as exc:
            logger.debug("Resolver %s failed for %s (%s): %s", nameserver, hostname, rdtype, exc)
            raise
        return [str(r) for r in answer]
