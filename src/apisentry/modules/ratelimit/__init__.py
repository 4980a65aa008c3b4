"""Rate-limited execution of outbound probes."""

from .limiter import RateLimiter
from .models import OutcomeKind, ProbeOutcome, ProbeRequest, RateLimitStats

__all__ = [
    "OutcomeKind",
    "ProbeOutcome",
    "ProbeRequest",
    "RateLimitStats",
    "RateLimiter",
]
