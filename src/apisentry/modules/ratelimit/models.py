"""Data models for rate-limited request execution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from apisentry.tools.http import HTTPResponse


@dataclass(frozen=True)
class ProbeRequest:
    """One outbound HTTP request, described independently of the client."""

    method: str
    url: str
    params: dict[str, Any] | None = None
    json: Any = None
    content: str | bytes | None = None
    headers: dict[str, str] = field(default_factory=dict)


class OutcomeKind(Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of running a request through the limiter.

    ``OK`` carries the response. ``RATE_LIMITED`` carries the last 429
    response seen once retries ran out. ``TRANSIENT_FAILURE`` carries the
    last transport error.
    """

    kind: OutcomeKind
    response: HTTPResponse | None = None
    error: Exception | None = None
    attempts: int = 1

    @classmethod
    def ok(cls, response: HTTPResponse, attempts: int = 1) -> "ProbeOutcome":
        return cls(OutcomeKind.OK, response=response, attempts=attempts)

    @classmethod
    def rate_limited(cls, response: HTTPResponse | None, attempts: int) -> "ProbeOutcome":
        return cls(OutcomeKind.RATE_LIMITED, response=response, attempts=attempts)

    @classmethod
    def transient_failure(cls, error: Exception, attempts: int) -> "ProbeOutcome":
        return cls(OutcomeKind.TRANSIENT_FAILURE, error=error, attempts=attempts)

    @property
    def is_ok(self) -> bool:
        return self.kind is OutcomeKind.OK


@dataclass(frozen=True)
class RateLimitStats:
    """Counters accumulated by a limiter since construction."""

    total_requests: int
    rate_limit_hits: int

    @property
    def hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.rate_limit_hits / self.total_requests

    def to_dict(self) -> dict[str, float | int]:
        return {
            "total_requests": self.total_requests,
            "rate_limit_hits": self.rate_limit_hits,
            "hit_rate": self.hit_rate,
        }
