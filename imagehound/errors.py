"""Exception hierarchy for imagehound.

Attempt-level errors (``FetchError`` and subclasses) are recorded against
the edge IP that produced them and never escape a race.  Only
``AllVariantsExhausted`` ends a hunt as a failure.
"""

from __future__ import annotations

from typing import Optional, Sequence


class HoundError(Exception):
    """Base class for all imagehound errors."""


# ---------------------------------------------------------------------------
# Per-attempt fetch errors
# ---------------------------------------------------------------------------

class FetchError(HoundError):
    """A single direct-IP attempt failed."""

    def __init__(self, message: str, ip: object = None) -> None:
        super().__init__(message)
        self.ip = ip


class RequestConstructionError(FetchError):
    """The request could not be built (bad URL, method or header)."""


class FetchConnectionError(FetchError):
    """The edge could not be reached (refused, unreachable, TLS, protocol)."""


class FetchTimeoutError(FetchConnectionError):
    """The attempt did not complete within its time bound."""


class ResponseBodyError(FetchError):
    """Headers arrived but the body could not be read or decoded."""


# ---------------------------------------------------------------------------
# Hunt-level errors
# ---------------------------------------------------------------------------

class AllVariantsExhausted(HoundError):
    """Every quality variant's race finished without a success."""

    def __init__(self, variants: Sequence[str], attempts: int) -> None:
        self.variants = list(variants)
        self.attempts = attempts
        super().__init__(
            f"all {attempts} attempts across {len(self.variants)} "
            f"variant{'s' if len(self.variants) != 1 else ''} failed"
        )


class InvalidImageURL(HoundError):
    """The URL is not a usable image URL."""


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class ProviderError(HoundError):
    """A hostname resolution provider failed."""


class RateLimitedError(ProviderError):
    """The provider API refused the request for rate-limit reasons."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ConfigError(HoundError):
    """The config/cache file could not be read, parsed or written."""


class OutputPathError(HoundError):
    """The requested output path cannot be used."""
