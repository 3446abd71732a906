import ipaddress
import json

import httpx
import pytest

from imagehound.errors import ProviderError, RateLimitedError
from imagehound.providers import get_provider, list_providers
from imagehound.providers.globalping import GlobalPingProvider


class FakeGlobalPing:
    """Scripted GlobalPing API: one measurement that finishes on the third poll."""

    def __init__(self, probes_count=3):
        self.probes_count = probes_count
        self.requests: list[httpx.Request] = []
        self.polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/measurements"):
            return httpx.Response(202, json={"id": "m1", "probesCount": self.probes_count})

        if request.method == "GET" and path.endswith("/measurements/m1"):
            self.polls += 1
            if self.polls == 1:
                return httpx.Response(
                    200, json={"id": "m1", "status": "in-progress"}, headers={"ETag": '"v1"'},
                )
            if self.polls == 2:
                assert request.headers.get("If-None-Match") == '"v1"'
                return httpx.Response(304)
            return httpx.Response(200, json={
                "id": "m1",
                "status": "finished",
                "results": [
                    {"result": {"resolvedAddress": "203.0.113.1"}},
                    {"result": {"resolvedAddress": "203.0.113.1"}},
                    {"result": {"resolvedAddress": None}},
                    {"result": {"resolvedAddress": "garbage"}},
                    {"result": {"resolvedAddress": "2001:db8::2"}},
                ],
            })

        if request.method == "GET" and path.endswith("/probes"):
            return httpx.Response(200, json=[
                {"location": {"region": "Eastern Asia"}},
                {"location": {"region": "Atlantis"}},
                {"location": {"region": "Western Europe"}},
                {"location": {}},
            ])

        return httpx.Response(404, json={"error": {"type": "not_found", "message": "no such route"}})


def _provider(handler, **kwargs):
    kwargs.setdefault("poll_interval", 0)
    return GlobalPingProvider(transport=httpx.MockTransport(handler), **kwargs)


async def test_resolve_polls_until_finished():
    api = FakeGlobalPing()
    provider = _provider(api, token="tok", probes_per_region=2)

    ips = await provider.resolve("wx1.sinaimg.cn", ["Eastern Asia", "Western Europe"])
    await provider.aclose()

    assert ips == [ipaddress.ip_address("203.0.113.1"), ipaddress.ip_address("2001:db8::2")]
    assert api.polls == 3

    create = api.requests[0]
    assert create.headers["Authorization"] == "Bearer tok"
    assert json.loads(create.content) == {
        "type": "ping",
        "target": "wx1.sinaimg.cn",
        "measurementOptions": {"packets": 1},
        "locations": [
            {"region": "Eastern Asia", "limit": 2},
            {"region": "Western Europe", "limit": 2},
        ],
    }


async def test_no_token_sends_no_authorization():
    api = FakeGlobalPing()
    provider = _provider(api)

    await provider.resolve("wx1.sinaimg.cn", ["Eastern Asia"])
    await provider.aclose()

    assert "Authorization" not in api.requests[0].headers


async def test_no_probes_available():
    provider = _provider(FakeGlobalPing(probes_count=0))

    with pytest.raises(ProviderError, match="failed to create measurement: no probes available"):
        await provider.resolve("wx1.sinaimg.cn", ["Eastern Asia"])
    await provider.aclose()


async def test_locations_are_filtered_to_known_regions():
    provider = _provider(FakeGlobalPing())

    assert await provider.locations() == ["Eastern Asia", "Western Europe"]
    await provider.aclose()


async def test_validation_error_is_formatted():
    def handler(request):
        return httpx.Response(400, json={"error": {
            "type": "validation_error",
            "message": "Parameters validation failed.",
            "params": {"target": "must be a valid hostname"},
        }})

    provider = _provider(handler)

    with pytest.raises(ProviderError) as excinfo:
        await provider.create_measurement("bad host", ["Eastern Asia"])
    await provider.aclose()

    message = str(excinfo.value)
    assert "API returned error: (type 'validation_error') Parameters validation failed." in message
    assert "target: must be a valid hostname" in message


async def test_rate_limit_carries_reset():
    def handler(request):
        return httpx.Response(429, headers={"X-RateLimit-Reset": "30"})

    provider = _provider(handler)

    with pytest.raises(RateLimitedError) as excinfo:
        await provider.create_measurement("wx1.sinaimg.cn", ["Eastern Asia"])
    await provider.aclose()

    assert excinfo.value.retry_after == 30


async def test_rate_limit_stops_polling():
    def handler(request):
        return httpx.Response(429)

    provider = _provider(handler)

    with pytest.raises(RateLimitedError):
        await provider.get_measurement("m1")
    await provider.aclose()


async def test_poll_timeout():
    def handler(request):
        return httpx.Response(200, json={"id": "m1", "status": "in-progress"})

    provider = _provider(handler, poll_interval=0.01, poll_timeout=0)

    with pytest.raises(ProviderError, match="timeout"):
        await provider.get_measurement("m1")
    await provider.aclose()


async def test_unexpected_status():
    def handler(request):
        return httpx.Response(503)

    provider = _provider(handler)

    with pytest.raises(ProviderError, match=r"unexpected response \(HTTP 503\)"):
        await provider.get_probes()
    await provider.aclose()


@pytest.mark.parametrize("hostname,regions", [("", ["Eastern Asia"]), ("wx1.sinaimg.cn", [])])
async def test_create_requires_hostname_and_regions(hostname, regions):
    provider = _provider(FakeGlobalPing())

    with pytest.raises(ProviderError):
        await provider.create_measurement(hostname, regions)
    await provider.aclose()


def test_registry():
    assert list_providers() == ["dns", "globalping"]
    provider = get_provider("globalping", token=None)
    assert provider.slug == "globalping"
    with pytest.raises(ValueError):
        get_provider("traceroute")
