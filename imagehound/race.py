"""Race coordinator: fan out one fetch per edge IP, consume first-come.

A race launches every attempt at once and funnels their results into a
single queue with room for one entry per IP, so no producer ever waits on
the consumer.  The consumer reads results in arrival order and decides
for itself what counts as a success; when it has seen enough it cancels
the race.

Cancellation is a one-way broadcast: attempts that have not started
contribute nothing, attempts still in flight are cancelled, and anything
that finishes after the race was cancelled is dropped rather than
queued.

Public API:
    Race  -- one in-flight multi-IP fetch over a FetchTarget
    race  -- create and start a Race
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from imagehound.config import CANCEL_GRACE
from imagehound.errors import FetchError
from imagehound.fetch import Fetcher, fetch_direct
from imagehound.models import AttemptStatus, FetchResult, FetchTarget, IPAddress

logger = logging.getLogger(__name__)


class Race:
    """One concurrent fetch of a single URL variant across all candidate IPs.

    Use as an async context manager so that the race is always cancelled
    and its attempts reaped::

        async with Race(target) as race:
            async for result in race.results():
                if good(result):
                    race.cancel()
                    break
    """

    def __init__(
        self,
        target: FetchTarget,
        *,
        fetch: Optional[Fetcher] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        self.target = target
        self._fetch = fetch if fetch is not None else fetch_direct
        self._cancel_event = cancel_event if cancel_event is not None else asyncio.Event()
        self._queue: asyncio.Queue[FetchResult] = asyncio.Queue(maxsize=max(len(target.ips), 1))
        self._tasks: list[asyncio.Task] = []
        self._delivered = 0
        self.statuses: list[AttemptStatus] = [AttemptStatus.PENDING] * len(target.ips)

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> Race:
        """Launch one attempt per IP.  Must be called from a running loop."""
        if self._tasks:
            return self
        for index, ip in enumerate(self.target.ips):
            task = asyncio.create_task(self._attempt(index, ip), name=f"race-attempt-{ip}")
            self._tasks.append(task)
        return self

    def cancel(self) -> None:
        """Signal cancellation and release in-flight attempts.

        Idempotent and non-blocking; safe to call after the race is over.
        """
        self._cancel_event.set()
        for task in self._tasks:
            if not task.done():
                task.cancel()
        for index, status in enumerate(self.statuses):
            if status is AttemptStatus.PENDING:
                self.statuses[index] = AttemptStatus.SKIPPED

    async def aclose(self) -> None:
        """Cancel and give cancelled attempts a bounded chance to unwind."""
        self.cancel()
        pending = [t for t in self._tasks if not t.done()]
        if pending:
            await asyncio.wait(pending, timeout=CANCEL_GRACE)

    async def __aenter__(self) -> Race:
        return self.start()

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -- state ---------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def delivered(self) -> int:
        """Number of results handed to the consumer so far."""
        return self._delivered

    @property
    def exhausted(self) -> bool:
        return self._delivered >= len(self.target.ips)

    def pending_tasks(self) -> list[asyncio.Task]:
        return [t for t in self._tasks if not t.done()]

    # -- attempts ------------------------------------------------------------

    async def _attempt(self, index: int, ip: IPAddress) -> None:
        if self.cancelled:
            self.statuses[index] = AttemptStatus.SKIPPED
            return

        self.statuses[index] = AttemptStatus.RUNNING
        target = self.target
        try:
            response = await self._fetch(ip, target.port, target.url, target.headers)
            result = FetchResult.success(ip, response)
        except asyncio.CancelledError:
            self.statuses[index] = AttemptStatus.DROPPED
            raise
        except FetchError as exc:
            logger.debug("Attempt via %s failed: %s", ip, exc)
            result = FetchResult.failure(ip, exc)
        except Exception as exc:
            logger.debug("Attempt via %s failed unexpectedly", ip, exc_info=True)
            result = FetchResult.failure(ip, exc)

        # Cancellation observed after the I/O still wins over delivery.
        if self.cancelled:
            self.statuses[index] = AttemptStatus.DROPPED
            return
        self._queue.put_nowait(result)
        self.statuses[index] = AttemptStatus.DELIVERED

    # -- consumption -----------------------------------------------------------

    async def results(self) -> AsyncIterator[FetchResult]:
        """Yield results in arrival order.

        Stops after one result per IP, or as soon as the race is
        cancelled (results still queued at that point are discarded).
        """
        while not self.exhausted and not self.cancelled:
            result = await self._next()
            if result is None:
                return
            self._delivered += 1
            yield result

    async def _next(self) -> Optional[FetchResult]:
        if not self._queue.empty():
            return self._queue.get_nowait()

        getter = asyncio.ensure_future(self._queue.get())
        waiter = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            getter.cancel()
            waiter.cancel()

        if self.cancelled:
            return None
        return getter.result()


def race(
    target: FetchTarget,
    cancel_event: Optional[asyncio.Event] = None,
    *,
    fetch: Optional[Fetcher] = None,
) -> Race:
    """Create a :class:`Race` over *target* and start it immediately."""
    return Race(target, fetch=fetch, cancel_event=cancel_event).start()
