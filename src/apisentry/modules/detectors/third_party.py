"""Unsafe consumption of third-party data (API10:2023)."""

import logging

from apisentry.modules.findings import Severity, Vulnerability
from apisentry.modules.openapi import EndpointDescriptor

from .base import Detector
from .payloads import THIRD_PARTY_KEYWORDS, THIRD_PARTY_PAYLOADS, THIRD_PARTY_SQL_PATTERN
from .session import ProbeSession

logger = logging.getLogger(__name__)


def is_third_party_integration(path: str) -> bool:
    lowered = path.lower()
    return any(keyword in lowered for keyword in THIRD_PARTY_KEYWORDS)


class ThirdPartyDetector(Detector):
    """Send malicious values posing as upstream data to integration endpoints."""

    name = "third_party"
    category = "API10:2023"

    def applies_to(self, endpoint: EndpointDescriptor, method: str) -> bool:
        return method == "POST" and is_third_party_integration(endpoint.path)

    async def detect(
        self, endpoint: EndpointDescriptor, method: str, session: ProbeSession
    ) -> list[Vulnerability]:
        for payload in THIRD_PARTY_PAYLOADS:
            body = {"external_data": payload, "third_party_response": payload}
            outcome = await session.probe("POST", endpoint.path, json=body)
            if not outcome.is_ok or outcome.response is None:
                continue
            text = outcome.response.body

            if payload in text:
                logger.info("[ThirdParty] payload reflected by %s", endpoint.path)
                return [
                    self._finding(
                        endpoint,
                        title="Third-Party Data Not Sanitized",
                        description=(
                            "Data accepted from an external integration is returned without "
                            "validation or sanitization."
                        ),
                        severity=Severity.HIGH,
                        evidence=f"Payload reflected in response: {payload}",
                    )
                ]
            if THIRD_PARTY_SQL_PATTERN.search(text):
                logger.info("[ThirdParty] database error from %s", endpoint.path)
                return [
                    self._finding(
                        endpoint,
                        title="SQL Injection via Third-Party Data",
                        description=(
                            "Data from an external integration reaches a database query "
                            "without parameterization."
                        ),
                        severity=Severity.CRITICAL,
                        evidence=f"Database error triggered by payload: {payload}",
                    )
                ]
        return []

    def _finding(
        self,
        endpoint: EndpointDescriptor,
        *,
        title: str,
        description: str,
        severity: Severity,
        evidence: str,
    ) -> Vulnerability:
        return Vulnerability(
            category=self.category,
            title=title,
            description=description,
            severity=severity,
            endpoint=endpoint.path,
            method="POST",
            parameter="external_data",
            evidence=evidence,
            recommendation=(
                "Validate and sanitize data received from third parties as strictly as "
                "user input, and use allow-lists for integration payloads."
            ),
        )
