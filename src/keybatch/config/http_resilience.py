"""Retry, rate limit and timeout settings for the remote lookup client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

import httpx

RETRYABLE_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
# bulk lookups are reads even though they are POSTed
LOOKUP_METHODS: Final[frozenset[str]] = frozenset({"GET", "POST"})


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """How the transport retries a single lookup request.

    Retries happen below the loading core; a round whose lookup still fails
    after ``attempts`` fails for good.
    """

    attempts: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    backoff_jitter: float = 1.0
    methods: frozenset[str] = LOOKUP_METHODS
    statuses: frozenset[int] = RETRYABLE_STATUSES
    exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float = 1.0

    @classmethod
    def per_second(cls, calls: int | None) -> RateLimit | None:
        """``None`` (no limit) unless ``calls`` is set."""
        return cls(max_calls=calls) if calls else None


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    token: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers
