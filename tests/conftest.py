"""Shared fixtures: a scripted stand-in for the direct-IP fetcher."""

from __future__ import annotations

import asyncio
import ipaddress

import pytest

from imagehound.models import FetchResponse

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


class StubFetcher:
    """Fetcher whose per-edge behaviour is scripted up front.

    *plan* maps an IP string, or a ``(url, ip)`` pair, to
    ``(delay, outcome)``; the outcome is either a FetchResponse to return
    or an exception to raise.  Unscripted edges answer 404 at once.
    """

    def __init__(self, plan=None):
        self.plan = dict(plan or {})
        self.calls: list[tuple[str, str]] = []
        self.completed: list[tuple[str, str]] = []
        self.headers: list = []

    def _lookup(self, url, ip):
        key = str(ip)
        if (url, key) in self.plan:
            return self.plan[(url, key)]
        if key in self.plan:
            return self.plan[key]
        return 0, FetchResponse(status_code=404)

    async def __call__(self, ip, port, url, headers=None):
        self.calls.append((str(ip), url))
        self.headers.append(headers)
        delay, outcome = self._lookup(url, ip)
        await asyncio.sleep(delay)
        self.completed.append((str(ip), url))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def ok(body: bytes = PNG_BYTES, content_type: str = "image/png") -> FetchResponse:
    return FetchResponse(status_code=200, headers={"content-type": content_type}, body=body)


def status(code: int, body: bytes = b"") -> FetchResponse:
    return FetchResponse(status_code=code, headers={"content-type": "text/html"}, body=body)


def ip(value: str):
    return ipaddress.ip_address(value)


@pytest.fixture
def stub():
    return StubFetcher()
