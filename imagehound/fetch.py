"""Direct-IP HTTP client.

Every attempt dials a caller-supplied edge IP:port instead of resolving
the URL's hostname, while the request itself is built from the original
URL: the Host header (``:authority`` on HTTP/2), TLS SNI and certificate
validation all use the real hostname, so the CDN's virtual hosting and
filtering logic run exactly as they would for a browser.

Each attempt gets its own client and connection; keep-alive is off,
redirects are surfaced as-is, and Brotli bodies are decoded.

Public API:
    fetch_direct   -- perform one GET against one edge IP
    merge_headers  -- apply caller overrides on top of the baseline headers
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional, Sequence

import httpx

from imagehound.config import BASE_HEADERS, CLIENT_TIMEOUT, REQUEST_TIMEOUT
from imagehound.errors import (
    FetchConnectionError,
    FetchTimeoutError,
    RequestConstructionError,
    ResponseBodyError,
)
from imagehound.models import FetchResponse, IPAddress, parse_ip

logger = logging.getLogger(__name__)

HeaderMap = Mapping[str, Sequence[str]]

# Signature: (ip, port, url, header_overrides) -> FetchResponse
Fetcher = Callable[[IPAddress, int, str, Optional[HeaderMap]], Awaitable[FetchResponse]]


# ---------------------------------------------------------------------------
# Header merging
# ---------------------------------------------------------------------------

def merge_headers(
    overrides: Optional[HeaderMap] = None,
    base: HeaderMap = BASE_HEADERS,
) -> list[tuple[str, str]]:
    """Apply *overrides* on top of *base* and return header pairs.

    Names match case-insensitively.  An override with an empty value
    list, or an empty first value, removes the header; otherwise its
    values replace the baseline's.
    """
    merged: dict[str, tuple[str, list[str]]] = {
        name.lower(): (name, list(values)) for name, values in base.items()
    }
    for name, values in (overrides or {}).items():
        values = list(values)
        if not values or not values[0]:
            merged.pop(name.lower(), None)
        else:
            merged[name.lower()] = (name, values)

    return [(name, v) for name, values in merged.values() for v in values]


# ---------------------------------------------------------------------------
# Pinned transport
# ---------------------------------------------------------------------------

class PinnedTransport(httpx.AsyncBaseTransport):
    """Transport that sends every request to a fixed IP:port.

    Rewrites the request URL to target the pinned address while
    preserving the original hostname via the Host header and the
    ``sni_hostname`` extension, so that TLS SNI and certificate
    validation work correctly.
    """

    def __init__(
        self,
        ip: IPAddress,
        port: int,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ) -> None:
        self._ip = parse_ip(ip)
        self._port = port
        self._transport = transport or httpx.AsyncHTTPTransport(**kwargs)

    @property
    def host(self) -> str:
        if self._ip.version == 6:
            return f"[{self._ip}]"
        return str(self._ip)

    def pin(self, request: httpx.Request) -> httpx.Request:
        """Return a copy of *request* addressed to the pinned IP:port."""
        url = request.url
        return httpx.Request(
            method=request.method,
            url=url.copy_with(host=self.host, port=self._port),
            headers=request.headers,
            stream=request.stream,
            extensions={**request.extensions, "sni_hostname": url.host},
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._transport.handle_async_request(self.pin(request))

    async def aclose(self) -> None:
        await self._transport.aclose()


# ---------------------------------------------------------------------------
# Single fetch
# ---------------------------------------------------------------------------

async def fetch_direct(
    ip: IPAddress,
    port: int,
    url: str,
    headers: Optional[HeaderMap] = None,
    *,
    method: str = "GET",
    timeout: float = REQUEST_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FetchResponse:
    """Fetch *url* from the edge at *ip*:*port*.

    Parameters
    ----------
    headers:
        Overrides applied on top of ``BASE_HEADERS`` (see ``merge_headers``).
    timeout:
        Absolute bound for the whole attempt, connect to last body byte.
    transport:
        Underlying transport the pinned requests are handed to.  Defaults
        to a fresh ``httpx.AsyncHTTPTransport`` with HTTP/2 enabled.

    Raises
    ------
    RequestConstructionError, FetchConnectionError, FetchTimeoutError,
    ResponseBodyError
        Each carrying *ip*.
    """
    ip = parse_ip(ip)
    try:
        return await asyncio.wait_for(
            _fetch(ip, port, url, headers, method, transport),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise FetchTimeoutError(
            f"request timed out after {timeout:g}s", ip=ip,
        ) from exc


async def _fetch(
    ip: IPAddress,
    port: int,
    url: str,
    headers: Optional[HeaderMap],
    method: str,
    transport: Optional[httpx.AsyncBaseTransport],
) -> FetchResponse:
    pinned = PinnedTransport(
        ip, port, transport,
        http2=True,
        retries=0,
        limits=httpx.Limits(max_keepalive_connections=0),
    )

    async with httpx.AsyncClient(
        transport=pinned,
        timeout=httpx.Timeout(CLIENT_TIMEOUT),
        follow_redirects=False,
        trust_env=False,
    ) as client:
        try:
            request = client.build_request(method, url, headers=merge_headers(headers))
        except (httpx.InvalidURL, ValueError, TypeError) as exc:
            raise RequestConstructionError(f"failed to create request: {exc}", ip=ip) from exc
        if request.url.scheme not in ("http", "https") or not request.url.host:
            raise RequestConstructionError(f"failed to create request: unsupported URL {url!r}", ip=ip)

        try:
            response = await client.send(request, stream=True)
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as exc:
            raise RequestConstructionError(f"failed to create request: {exc}", ip=ip) from exc
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(f"failed to send request: {exc!r}", ip=ip) from exc
        except httpx.TransportError as exc:
            raise FetchConnectionError(f"failed to send request: {exc!r}", ip=ip) from exc
        except httpx.DecodingError as exc:
            raise ResponseBodyError(f"failed to read response body: {exc!r}", ip=ip) from exc

        try:
            body = await response.aread()
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(f"failed to read response body: {exc!r}", ip=ip) from exc
        except (httpx.DecodingError, httpx.TransportError, httpx.StreamError) as exc:
            raise ResponseBodyError(f"failed to read response body: {exc!r}", ip=ip) from exc
        finally:
            await response.aclose()

    logger.debug("%s via %s -> HTTP %d (%d bytes)", url, ip, response.status_code, len(body))
    return FetchResponse(
        status_code=response.status_code,
        headers={k.lower(): v for k, v in response.headers.items()},
        body=body,
    )
