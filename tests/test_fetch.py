import asyncio

import httpx
import pytest

from imagehound.errors import (
    FetchConnectionError,
    FetchTimeoutError,
    RequestConstructionError,
    ResponseBodyError,
)
from imagehound.fetch import PinnedTransport, fetch_direct, merge_headers

URL = "https://img.example.com/large/abc.jpg"
BASE = {"Accept": ["image/*"], "Referer": ["https://weibo.com/"]}


class TestMergeHeaders:

    def test_baseline_when_no_overrides(self):
        assert merge_headers(None, BASE) == [
            ("Accept", "image/*"),
            ("Referer", "https://weibo.com/"),
        ]

    def test_override_replaces_case_insensitively(self):
        merged = merge_headers({"accept": ["text/html"]}, BASE)
        assert merged == [("accept", "text/html"), ("Referer", "https://weibo.com/")]

    @pytest.mark.parametrize("values", [[], [""]])
    def test_empty_override_removes_header(self, values):
        assert merge_headers({"Referer": values}, BASE) == [("Accept", "image/*")]

    def test_new_header_keeps_all_values(self):
        merged = merge_headers({"X-Probe": ["a", "b"]}, BASE)
        assert merged[-2:] == [("X-Probe", "a"), ("X-Probe", "b")]


class TestPinning:

    async def test_request_is_sent_to_the_pinned_address(self):
        seen = {}

        def handler(request):
            seen["host"] = request.url.host
            seen["port"] = request.url.port
            seen["path"] = request.url.path
            seen["host_header"] = request.headers["host"]
            seen["sni"] = request.extensions.get("sni_hostname")
            seen["referer"] = request.headers.get("referer")
            return httpx.Response(200, content=b"img")

        await fetch_direct("203.0.113.7", 8443, URL, transport=httpx.MockTransport(handler))

        assert seen == {
            "host": "203.0.113.7",
            "port": 8443,
            "path": "/large/abc.jpg",
            "host_header": "img.example.com",
            "sni": "img.example.com",
            "referer": "https://weibo.com/",
        }

    async def test_ipv6_edge(self):
        seen = {}

        def handler(request):
            seen["host"] = request.url.host
            return httpx.Response(204)

        response = await fetch_direct("2001:db8::1", 8443, URL, transport=httpx.MockTransport(handler))

        assert seen["host"] == "2001:db8::1"
        assert response.status_code == 204

    def test_bracketed_host(self):
        assert PinnedTransport("2001:db8::1", 443, httpx.MockTransport(lambda r: None)).host == "[2001:db8::1]"
        assert PinnedTransport("192.0.2.1", 443, httpx.MockTransport(lambda r: None)).host == "192.0.2.1"

    async def test_header_overrides_are_applied(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200)

        await fetch_direct(
            "203.0.113.7", 443, URL,
            {"Referer": [], "Cookie": ["a=1"]},
            transport=httpx.MockTransport(handler),
        )

        assert "referer" not in seen
        assert seen["cookie"] == "a=1"


class TestResponses:

    async def test_brotli_body_is_decoded(self):
        brotli = pytest.importorskip("brotli")
        payload = b"\x89PNG\r\n\x1a\n" + b"pixels" * 100

        def handler(request):
            return httpx.Response(
                200,
                headers={"Content-Encoding": "br", "Content-Type": "image/png"},
                content=brotli.compress(payload),
            )

        response = await fetch_direct("203.0.113.7", 443, URL, transport=httpx.MockTransport(handler))

        assert response.body == payload
        assert response.headers["content-type"] == "image/png"

    async def test_plain_body_is_untouched(self):
        def handler(request):
            return httpx.Response(200, headers={"Content-Type": "image/jpeg"}, content=b"\xff\xd8\xffraw")

        response = await fetch_direct("203.0.113.7", 443, URL, transport=httpx.MockTransport(handler))

        assert response.body == b"\xff\xd8\xffraw"

    async def test_corrupt_brotli_is_a_body_error(self):
        def handler(request):
            return httpx.Response(200, headers={"Content-Encoding": "br"}, content=b"definitely not brotli")

        with pytest.raises(ResponseBodyError) as excinfo:
            await fetch_direct("203.0.113.7", 443, URL, transport=httpx.MockTransport(handler))
        assert str(excinfo.value.ip) == "203.0.113.7"

    async def test_redirect_is_returned_not_followed(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(302, headers={"Location": "https://img.example.com/other.jpg"})

        response = await fetch_direct("203.0.113.7", 443, URL, transport=httpx.MockTransport(handler))

        assert response.status_code == 302
        assert response.headers["location"] == "https://img.example.com/other.jpg"
        assert calls == ["/large/abc.jpg"]


class TestFailures:

    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchConnectionError) as excinfo:
            await fetch_direct("203.0.113.7", 443, URL, transport=httpx.MockTransport(handler))
        assert not isinstance(excinfo.value, FetchTimeoutError)

    async def test_transport_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(FetchTimeoutError):
            await fetch_direct("203.0.113.7", 443, URL, transport=httpx.MockTransport(handler))

    async def test_attempt_deadline(self):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200)

        with pytest.raises(FetchTimeoutError):
            await fetch_direct("203.0.113.7", 443, URL, timeout=0.05, transport=httpx.MockTransport(handler))

    @pytest.mark.parametrize("url", ["ftp://img.example.com/abc.jpg", "http://"])
    async def test_unusable_url(self, url):
        transport = httpx.MockTransport(lambda request: httpx.Response(200))

        with pytest.raises(RequestConstructionError):
            await fetch_direct("203.0.113.7", 443, url, transport=transport)
