"""Quality-fallback driver.

Runs one race per URL variant, in order, and stops at the first result
the success policy accepts.  Transport failures and responses the policy
rejects (non-200, block pages) are treated alike: that edge did not work,
keep reading.

Public API:
    hunt              -- race every variant until one edge succeeds
    status_ok         -- default policy, HTTP 200
    looks_like_image  -- stricter policy, HTTP 200 carrying image bytes
    all_of            -- combine policies
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Callable, Iterable, Mapping, Optional, Sequence

from imagehound.errors import AllVariantsExhausted
from imagehound.fetch import Fetcher
from imagehound.models import FetchResult, FetchTarget, HuntResult, IPAddress
from imagehound.race import Race
from imagehound.sniff import sniff_image_type

logger = logging.getLogger(__name__)

# Decides whether a delivered result is the image we are after.
SuccessPolicy = Callable[[FetchResult], bool]

# Signature: (variant_url, result) -- invoked for every delivered result
ResultCallback = Callable[[str, FetchResult], None]


# ---------------------------------------------------------------------------
# Success policies
# ---------------------------------------------------------------------------

def status_ok(result: FetchResult) -> bool:
    """Accept any HTTP 200 response."""
    return not result.is_error and result.status_code == 200


def looks_like_image(result: FetchResult) -> bool:
    """Accept HTTP 200 responses whose body is actually an image.

    Block pages are commonly served as 200 with an HTML body; these are
    rejected by requiring an ``image/*`` content type or recognisable
    image magic bytes.
    """
    if not status_ok(result) or not result.body:
        return False
    content_type = result.content_type or ""
    if content_type.startswith("image/"):
        return True
    return sniff_image_type(result.body) is not None


def all_of(*policies: SuccessPolicy) -> SuccessPolicy:
    """Policy that accepts a result only if every one of *policies* does."""

    def _policy(result: FetchResult) -> bool:
        return all(p(result) for p in policies)

    return _policy


def _accepts(policy: SuccessPolicy, result: FetchResult) -> bool:
    try:
        return bool(policy(result))
    except Exception:
        logger.warning("Success policy raised for %s; treating as failure", result.ip, exc_info=True)
        return False


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

async def hunt(
    variants: Iterable[str],
    port: int,
    ips: Sequence[IPAddress],
    *,
    headers: Optional[Mapping[str, Sequence[str]]] = None,
    is_success: SuccessPolicy = status_ok,
    fetch: Optional[Fetcher] = None,
    on_result: Optional[ResultCallback] = None,
) -> HuntResult:
    """Hunt for the first edge that serves any of *variants*.

    Parameters
    ----------
    variants:
        URLs of the same image, tried in order (best quality first).
    port, ips:
        Where to send each attempt; every variant races all of *ips*.
    headers:
        Header overrides for every attempt.
    is_success:
        Policy deciding whether a delivered result wins.
    fetch:
        Single-attempt fetcher; ``fetch_direct`` when None.
    on_result:
        Optional callable invoked for every delivered result.

    Raises
    ------
    AllVariantsExhausted
        When no variant produced an accepted result from any IP.
    """
    variants = list(variants)
    if not variants:
        raise ValueError("no URL variants to hunt")

    attempts = 0
    for tried, url in enumerate(variants, 1):
        target = FetchTarget(url=url, port=port, ips=tuple(ips), headers=headers)
        logger.info("Hunting %s across %d edges", url, len(target.ips))

        async with Race(target, fetch=fetch) as race, aclosing(race.results()) as results:
            async for result in results:
                attempts += 1
                if on_result is not None:
                    on_result(url, result)

                if result.is_error:
                    logger.debug("[FAILED] %s | %s", result.ip, result.error)
                    continue
                if not _accepts(is_success, result):
                    logger.debug("[FAILED] %s | HTTP %s", result.ip, result.status_code)
                    continue

                race.cancel()
                logger.info("Edge %s served %s (%d bytes)", result.ip, url, len(result.body))
                return HuntResult(url=url, result=result, variants_tried=tried)

            race.cancel()

        logger.info("All edges failed for %s", url)

    raise AllVariantsExhausted(variants, attempts)
