"""Automatable business flows (API6:2023)."""

import logging
import time

from apisentry.modules.findings import Severity, Vulnerability
from apisentry.modules.openapi import EndpointDescriptor

from .base import Detector
from .payloads import BOT_PROTECTION_MARKERS, BUSINESS_FLOW_KEYWORDS
from .session import ProbeSession

logger = logging.getLogger(__name__)

AUTOMATION_TEST_COUNT = 10
ACCEPTANCE_RATIO = 0.7


def is_business_critical(path: str) -> bool:
    lowered = path.lower()
    return any(keyword in lowered for keyword in BUSINESS_FLOW_KEYWORDS)


class BusinessFlowDetector(Detector):
    """Replay a sensitive POST rapidly and count how many are accepted."""

    name = "business_flow"
    category = "API6:2023"

    def applies_to(self, endpoint: EndpointDescriptor, method: str) -> bool:
        return method == "POST" and is_business_critical(endpoint.path)

    async def detect(
        self, endpoint: EndpointDescriptor, method: str, session: ProbeSession
    ) -> list[Vulnerability]:
        accepted = 0
        started = time.perf_counter()

        for _ in range(AUTOMATION_TEST_COUNT):
            outcome = await session.probe("POST", endpoint.path, json={})
            if not outcome.is_ok or outcome.response is None:
                continue
            response = outcome.response
            body = response.body.lower()
            if any(marker in body for marker in BOT_PROTECTION_MARKERS):
                logger.info("[BusinessFlow] bot protection detected on %s", endpoint.path)
                return []
            if response.status_code not in (429, 403):
                accepted += 1

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if accepted < AUTOMATION_TEST_COUNT * ACCEPTANCE_RATIO:
            return []

        return [
            Vulnerability(
                category=self.category,
                title="Unrestricted Access to Sensitive Business Flow",
                description=(
                    f"Business flow {endpoint.path} can be automated: {accepted}/"
                    f"{AUTOMATION_TEST_COUNT} rapid requests were accepted in {elapsed_ms}ms "
                    "without bot protection."
                ),
                severity=Severity.HIGH,
                endpoint=endpoint.path,
                method="POST",
                evidence=(
                    f"Accepted {accepted}/{AUTOMATION_TEST_COUNT} automated requests "
                    f"in {elapsed_ms}ms"
                ),
                recommendation=(
                    "Protect sensitive flows with CAPTCHA, device fingerprinting or per-account "
                    "velocity limits."
                ),
            )
        ]
