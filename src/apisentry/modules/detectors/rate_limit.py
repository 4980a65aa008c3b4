"""Missing rate limiting on mutating operations (API4:2023)."""

import logging

from apisentry.modules.findings import Severity, Vulnerability
from apisentry.modules.openapi import EndpointDescriptor
from apisentry.modules.ratelimit import OutcomeKind

from .base import Detector
from .payloads import RATE_LIMIT_HEADERS
from .session import ProbeSession

logger = logging.getLogger(__name__)

TEST_REQUESTS = 20
SUCCESS_THRESHOLD = 10
MAX_UNAUTHORIZED = 3
MAX_VALIDATION_ERRORS = 5


class RateLimitDetector(Detector):
    """Fire a burst of sequential requests and look for throttling signals.

    A 429 that survives the limiter's retries counts as proof that the
    endpoint is throttled, so the burst stops without a finding.
    """

    name = "rate_limit"
    category = "API4:2023"
    method_priority = ("POST", "PUT", "DELETE")
    one_method_per_path = True

    def applies_to(self, endpoint: EndpointDescriptor, method: str) -> bool:
        return method in ("POST", "PUT", "DELETE")

    async def detect(
        self, endpoint: EndpointDescriptor, method: str, session: ProbeSession
    ) -> list[Vulnerability]:
        success_count = 0
        unauthorized = 0
        validation_errors = 0

        for attempt in range(1, TEST_REQUESTS + 1):
            outcome = await session.probe(method, endpoint.path, **_request_kwargs(method))

            if outcome.kind is OutcomeKind.RATE_LIMITED:
                logger.info("[RateLimit] %s %s throttled after retries", method, endpoint.path)
                return []
            if outcome.kind is OutcomeKind.TRANSIENT_FAILURE or outcome.response is None:
                logger.warning(
                    "[RateLimit] request #%d to %s failed: %s",
                    attempt,
                    endpoint.path,
                    outcome.error,
                )
                continue

            response = outcome.response
            if response.status_code == 401:
                unauthorized += 1
                if unauthorized >= MAX_UNAUTHORIZED:
                    logger.info(
                        "[RateLimit] stopping %s after %d consecutive 401 responses",
                        endpoint.path,
                        unauthorized,
                    )
                    return []
                validation_errors = 0
                continue
            unauthorized = 0

            if response.status_code == 422:
                validation_errors += 1
                if validation_errors >= MAX_VALIDATION_ERRORS:
                    logger.info(
                        "[RateLimit] stopping %s after %d consecutive 422 responses",
                        endpoint.path,
                        validation_errors,
                    )
                    return []
                continue
            validation_errors = 0

            if any(response.header(name) is not None for name in RATE_LIMIT_HEADERS):
                return []
            if response.status_code == 429:
                return []
            if response.is_success:
                success_count += 1

        if success_count <= SUCCESS_THRESHOLD:
            return []

        return [
            Vulnerability(
                category=self.category,
                title="Missing Rate Limiting",
                description=(
                    f"Endpoint {endpoint.path} does not implement rate limiting. Successfully "
                    f"processed {success_count} requests without throttling."
                ),
                severity=Severity.MEDIUM,
                endpoint=endpoint.path,
                method=method,
                evidence=(
                    f"Processed {success_count}/{TEST_REQUESTS} requests without rate limiting"
                ),
                recommendation=(
                    "Implement rate limiting on all API endpoints (per user, IP, or API key)."
                ),
            )
        ]


def _request_kwargs(method: str) -> dict:
    if method in ("POST", "PUT"):
        return {"content": "", "headers": {"Content-Type": "application/json"}}
    return {}
