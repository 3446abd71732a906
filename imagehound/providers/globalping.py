"""GlobalPing measurement API provider.

Resolution works by creating a one-packet ping measurement against the
hostname from probes in every requested region, then polling the
measurement until it finishes and collecting each probe's
``resolvedAddress``.  API documentation:
https://www.jsdelivr.com/docs/api.globalping.io
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from imagehound.config import (
    GLOBALPING_BASE_URL,
    GLOBALPING_POLL_INTERVAL,
    GLOBALPING_POLL_TIMEOUT,
    GLOBALPING_PROBES_PER_REGION,
    GLOBALPING_REQUEST_TIMEOUT,
    M49_REGIONS,
    USER_AGENT,
)
from imagehound.errors import ProviderError, RateLimitedError
from imagehound.models import IPAddress, parse_ip
from imagehound.providers.base import ResolutionProvider
from imagehound.store import unique_ips

logger = logging.getLogger(__name__)


class GlobalPingProvider(ResolutionProvider):
    """Resolve hostnames from GlobalPing probes across the world."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: str = GLOBALPING_BASE_URL,
        poll_interval: float = GLOBALPING_POLL_INTERVAL,
        poll_timeout: float = GLOBALPING_POLL_TIMEOUT,
        probes_per_region: int = GLOBALPING_PROBES_PER_REGION,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "br, gzip, deflate",
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(GLOBALPING_REQUEST_TIMEOUT),
            transport=transport,
        )
        self._poll_interval = poll_interval
        self._poll_timeout = poll_timeout
        self._probes_per_region = probes_per_region
        self._etags: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "GlobalPing"

    @property
    def slug(self) -> str:
        return "globalping"

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- ResolutionProvider ----------------------------------------------------

    async def resolve(self, hostname: str, locations: list[str]) -> list[IPAddress]:
        try:
            measurement_id = await self.create_measurement(hostname, locations)
        except ProviderError as exc:
            raise ProviderError(f"failed to create measurement: {exc}") from exc

        try:
            results = await self.get_measurement(measurement_id)
        except ProviderError as exc:
            raise ProviderError(f"failed to get measurement: {exc}") from exc

        ips: list[IPAddress] = []
        for r in results:
            address = ((r or {}).get("result") or {}).get("resolvedAddress")
            if not address:
                continue
            try:
                ips.append(parse_ip(address))
            except ValueError:
                logger.debug("Ignoring unparseable address %r for %s", address, hostname)
        return unique_ips(ips)

    async def locations(self) -> list[str]:
        try:
            probes = await self.get_probes()
        except ProviderError as exc:
            raise ProviderError(f"failed to get probes: {exc}") from exc

        regions: list[str] = []
        for p in probes:
            region = ((p or {}).get("location") or {}).get("region")
            if region and region in M49_REGIONS:
                regions.append(region)
        return regions

    # -- API calls -------------------------------------------------------------

    async def create_measurement(self, hostname: str, regions: list[str]) -> str:
        """``POST /measurements`` and return the new measurement's ID."""
        if not hostname:
            raise ProviderError("no hostname specified")
        if not regions:
            raise ProviderError("no regions specified")

        payload = {
            "type": "ping",
            "target": hostname,
            "measurementOptions": {"packets": 1},
            "locations": [
                {"region": r, "limit": self._probes_per_region} for r in regions
            ],
        }
        data = await self._request("POST", "/measurements", json=payload)
        if not isinstance(data, dict):
            raise ProviderError(f"invalid response: {data!r}")
        if not data.get("probesCount"):
            raise ProviderError("no probes available")
        if not data.get("id"):
            raise ProviderError(f"invalid response: {data!r}")
        return data["id"]

    async def get_measurement(self, measurement_id: str) -> list[dict]:
        """Poll ``GET /measurements/{id}`` until it finishes."""
        if not measurement_id:
            raise ProviderError("no measurement ID specified")
        path = f"/measurements/{measurement_id}"
        deadline = time.monotonic() + self._poll_timeout

        try:
            while True:
                await asyncio.sleep(self._poll_interval)
                if time.monotonic() > deadline:
                    raise ProviderError("timeout")

                try:
                    data = await self._request("GET", path)
                except RateLimitedError:
                    raise
                except ProviderError as exc:
                    logger.warning("Failed to get measurement %s: %s", measurement_id, exc)
                    continue

                if data is None:  # 304 Not Modified
                    logger.info("Measurement %s in progress...", measurement_id)
                    continue
                if not isinstance(data, dict) or not data.get("id"):
                    raise ProviderError(f"invalid response: {data!r}")

                status = data.get("status")
                if status == "in-progress":
                    logger.info("Measurement %s in progress...", measurement_id)
                    continue
                if status == "finished":
                    results = data.get("results") or []
                    logger.info(
                        "Measurement %s finished with %d results.", measurement_id, len(results),
                    )
                    return results
                raise ProviderError(f"invalid response: unknown status {status!r}")
        finally:
            self._etags.pop(path, None)

    async def get_probes(self) -> list[dict]:
        """``GET /probes``: all currently connected probes."""
        data = await self._request("GET", "/probes")
        if not isinstance(data, list):
            raise ProviderError(f"invalid response: {data!r}")
        return data

    # -- transport ---------------------------------------------------------------

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        """Send one API request and return the decoded JSON body.

        Returns None on ``304 Not Modified``.  GET requests carry the
        last ETag seen for *path*.
        """
        headers: dict[str, str] = {}
        if method == "GET" and self._etags.get(path):
            headers["If-None-Match"] = self._etags[path]

        try:
            resp = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(f"failed to send request: {exc!r}") from exc

        etag = resp.headers.get("ETag")
        if method == "GET" and etag:
            self._etags[path] = etag

        status = resp.status_code
        if status in (200, 202):
            try:
                return resp.json()
            except ValueError as exc:
                raise ProviderError(f"failed to decode response body: {exc}") from exc
        if status == 304:
            return None
        if status in (400, 404, 422):
            raise ProviderError(_format_api_error(resp))
        if status == 429:
            retry_after: Optional[float] = None
            try:
                retry_after = float(resp.headers.get("X-RateLimit-Reset", ""))
            except ValueError:
                pass
            if retry_after is not None:
                raise RateLimitedError(
                    f"too many requests, try again in {retry_after:g}s", retry_after,
                )
            raise RateLimitedError("too many requests")
        raise ProviderError(f"unexpected response (HTTP {status})")


def _format_api_error(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"unexpected response (HTTP {resp.status_code})"
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return f"unexpected response (HTTP {resp.status_code})"

    message = f"API returned error: (type {error.get('type')!r}) {error.get('message')}"
    params = error.get("params") or {}
    if resp.status_code == 400 and params:
        lines = [f"  - {p}: {msg}" for p, msg in params.items()]
        message += "\nError params:\n" + "\n".join(lines)
    return message
