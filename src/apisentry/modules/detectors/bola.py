"""Broken object level authorization (API1:2023)."""

import logging

from apisentry.modules.findings import Severity, Vulnerability
from apisentry.modules.openapi import EndpointDescriptor

from .base import Detector
from .payloads import BOLA_NEGATIVE_MARKERS, BOLA_TEST_IDS
from .session import ProbeSession

logger = logging.getLogger(__name__)


class BOLADetector(Detector):
    """Substitute guessable identifiers into the first path placeholder."""

    name = "bola"
    category = "API1:2023"

    def applies_to(self, endpoint: EndpointDescriptor, method: str) -> bool:
        return method == "GET" and endpoint.has_placeholder

    async def detect(
        self, endpoint: EndpointDescriptor, method: str, session: ProbeSession
    ) -> list[Vulnerability]:
        param = endpoint.first_placeholder()
        if param is None:
            return []

        for test_id in BOLA_TEST_IDS:
            path = endpoint.path.replace("{" + param + "}", test_id)
            outcome = await session.probe(method, path)
            if not outcome.is_ok or outcome.response is None:
                continue

            response = outcome.response
            if response.status_code != 200 or not response.body:
                continue
            if any(marker in response.body for marker in BOLA_NEGATIVE_MARKERS):
                continue

            logger.info("[BOLA] %s %s accessible with id %s", method, endpoint.path, test_id)
            return [
                Vulnerability(
                    category=self.category,
                    title="Broken Object Level Authorization",
                    description=(
                        f"The endpoint returned an object for the guessed identifier "
                        f"'{test_id}' without verifying that the caller owns it."
                    ),
                    severity=Severity.HIGH,
                    endpoint=endpoint.path,
                    method=method,
                    parameter=param,
                    evidence=f"Accessed resource with ID: {test_id} returned 200 OK",
                    recommendation=(
                        "Enforce object-level authorization on every request that uses a "
                        "client-supplied identifier and prefer random, non-sequential IDs."
                    ),
                )
            ]
        return []
