"""Pacing, retry and exponential backoff for every outbound probe."""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable

import httpx

from apisentry.config import RateLimitSettings
from apisentry.tools.http import HTTPResponse

from .models import ProbeOutcome, ProbeRequest, RateLimitStats

logger = logging.getLogger(__name__)

SendFn = Callable[[ProbeRequest], Awaitable[HTTPResponse]]

MIN_RETRY_AFTER_MS = 1000
JITTER_FRACTION = 0.1


class RateLimiter:
    """Serialize request spacing and retry on 429 or transport errors.

    One instance is shared by every detector in a scan. Only the pacing
    step is serialized; retries of different requests may overlap.
    """

    def __init__(
        self,
        base_delay_ms: int = 100,
        max_delay_ms: int = 10000,
        max_retries: int = 5,
        backoff_multiplier: float = 2.0,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ):
        if base_delay_ms < 0 or max_delay_ms < 0:
            raise ValueError("Delays must be non-negative")
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.max_retries = max_retries
        self.backoff_multiplier = backoff_multiplier
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()
        self._last_request_at: float | None = None
        self._total_requests = 0
        self._rate_limit_hits = 0

    @classmethod
    def from_settings(cls, settings: RateLimitSettings, **kwargs) -> "RateLimiter":
        return cls(
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            max_retries=settings.max_retries,
            backoff_multiplier=settings.backoff_multiplier,
            **kwargs,
        )

    async def execute(self, request: ProbeRequest, send: SendFn) -> ProbeOutcome:
        """Run ``send(request)`` with pacing and bounded retries."""
        current_delay_ms = float(self.base_delay_ms)
        last_response: HTTPResponse | None = None

        for attempt in range(self.max_retries + 1):
            if attempt == 0:
                await self._pace()
            remaining = attempt < self.max_retries

            try:
                response = await send(request)
            except httpx.TransportError as exc:
                if not remaining:
                    logger.warning(
                        "Transport error after %d attempts for %s %s: %s",
                        attempt + 1,
                        request.method,
                        request.url,
                        exc,
                    )
                    return ProbeOutcome.transient_failure(exc, attempts=attempt + 1)
                logger.debug(
                    "Transport error on %s %s, retrying in %.0fms: %s",
                    request.method,
                    request.url,
                    current_delay_ms,
                    exc,
                )
                await self._sleep(current_delay_ms / 1000)
                current_delay_ms = self._grow(current_delay_ms)
                continue

            self._total_requests += 1
            if response.status_code != 429:
                return ProbeOutcome.ok(response, attempts=attempt + 1)

            self._rate_limit_hits += 1
            last_response = response
            if not remaining:
                logger.warning(
                    "Rate limit retries exhausted for %s %s after %d attempts",
                    request.method,
                    request.url,
                    attempt + 1,
                )
                return ProbeOutcome.rate_limited(last_response, attempts=attempt + 1)

            wait_ms = self._retry_wait_ms(response, current_delay_ms)
            logger.info(
                "Rate limited (429) on %s, waiting %.0fms before retry %d/%d",
                request.url,
                wait_ms,
                attempt + 1,
                self.max_retries,
            )
            await self._sleep(wait_ms / 1000)
            current_delay_ms = self._grow(current_delay_ms)

        # Loop always returns; kept for type checkers.
        return ProbeOutcome.rate_limited(last_response, attempts=self.max_retries + 1)

    def stats(self) -> RateLimitStats:
        return RateLimitStats(
            total_requests=self._total_requests,
            rate_limit_hits=self._rate_limit_hits,
        )

    async def _pace(self) -> None:
        async with self._lock:
            if self._last_request_at is not None:
                elapsed_ms = (self._clock() - self._last_request_at) * 1000
                wait_ms = self.base_delay_ms - elapsed_ms
                if wait_ms > 0:
                    await self._sleep(wait_ms / 1000)
            now = self._clock()
            if self._last_request_at is None or now > self._last_request_at:
                self._last_request_at = now

    def _grow(self, delay_ms: float) -> float:
        return min(delay_ms * self.backoff_multiplier, float(self.max_delay_ms))

    def _retry_wait_ms(self, response: HTTPResponse, current_delay_ms: float) -> float:
        retry_after = response.header("Retry-After")
        if retry_after is not None:
            try:
                seconds = int(retry_after.strip())
            except ValueError:
                logger.debug("Unparseable Retry-After header: %r", retry_after)
            else:
                retry_ms = max(seconds * 1000, MIN_RETRY_AFTER_MS)
                return retry_ms + retry_ms * JITTER_FRACTION * self._rng.random()
        return max(current_delay_ms, float(MIN_RETRY_AFTER_MS))
