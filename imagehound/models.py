"""Data models for imagehound."""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def parse_ip(value: Union[str, IPAddress]) -> IPAddress:
    """Parse *value* into an IP address object (raises ValueError)."""
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    return ipaddress.ip_address(str(value).strip())


@dataclass(frozen=True)
class FetchTarget:
    """One URL variant to fetch from every candidate edge IP."""

    url: str
    port: int
    ips: tuple[IPAddress, ...]
    headers: Optional[Mapping[str, Sequence[str]]] = None

    def __post_init__(self) -> None:
        if not 0 < int(self.port) <= 65535:
            raise ValueError(f"invalid port: {self.port}")
        object.__setattr__(self, "port", int(self.port))
        object.__setattr__(self, "ips", tuple(parse_ip(ip) for ip in self.ips))
        if self.headers is not None:
            object.__setattr__(
                self,
                "headers",
                {k: list(v) for k, v in self.headers.items()},
            )


@dataclass
class FetchResponse:
    """What the direct-IP client got back for one request."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class FetchResult:
    """Outcome of one attempt against one edge IP.

    Either a response (``error is None``) or a failure.  Whether a
    response counts as a *success* is decided by the hunt's policy.
    """

    ip: IPAddress
    status_code: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    error: Optional[Exception] = None

    @classmethod
    def success(cls, ip: IPAddress, response: FetchResponse) -> FetchResult:
        return cls(
            ip=ip,
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.body,
        )

    @classmethod
    def failure(cls, ip: IPAddress, error: Exception) -> FetchResult:
        return cls(ip=ip, error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def content_type(self) -> Optional[str]:
        for k, v in self.headers.items():
            if k.lower() == "content-type":
                return v.split(";", 1)[0].strip().lower()
        return None


class AttemptStatus(str, enum.Enum):
    """Lifecycle of a single attempt inside a race."""

    PENDING = "pending"
    RUNNING = "running"
    DELIVERED = "delivered"  # result put on the stream
    DROPPED = "dropped"  # finished after cancellation, result discarded
    SKIPPED = "skipped"  # cancelled before the request started


@dataclass
class HuntResult:
    """The winning variant of a hunt."""

    url: str
    result: FetchResult
    variants_tried: int = 1


# ---------------------------------------------------------------------------
# Persisted config/cache
# ---------------------------------------------------------------------------

@dataclass
class GlobalPingConfig:
    token: Optional[str] = None


@dataclass
class ProvidersConfig:
    globalping: GlobalPingConfig = field(default_factory=GlobalPingConfig)


@dataclass
class CacheConfig:
    locations: dict[str, list[str]] = field(default_factory=dict)
    resolves: list[IPAddress] = field(default_factory=list)


@dataclass
class HoundConfig:
    """Contents of the config/cache file."""

    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
