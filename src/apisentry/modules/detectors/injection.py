"""SQL injection and reflected XSS via path and query parameters (API8:2023)."""

import logging

from apisentry.modules.findings import Severity, Vulnerability
from apisentry.modules.openapi import PLACEHOLDER_RE, EndpointDescriptor, ParameterSpec
from apisentry.modules.ratelimit import ProbeOutcome

from .base import Detector
from .payloads import SQL_ERROR_PATTERN, SQL_INJECTION_PAYLOADS, XSS_PAYLOADS
from .session import ProbeSession

logger = logging.getLogger(__name__)

EVIDENCE_LINE_LIMIT = 200


class InjectionDetector(Detector):
    """Inject SQL and XSS payloads into each path and query parameter."""

    name = "injection"
    category = "API8:2023"

    def applies_to(self, endpoint: EndpointDescriptor, method: str) -> bool:
        return method in ("GET", "POST")

    async def detect(
        self, endpoint: EndpointDescriptor, method: str, session: ProbeSession
    ) -> list[Vulnerability]:
        findings: list[Vulnerability] = []
        for param in endpoint.params_in("query", "path"):
            sql = await self._test_sql(endpoint, method, param, session)
            if sql:
                findings.append(sql)
            xss = await self._test_xss(endpoint, method, param, session)
            if xss:
                findings.append(xss)
        return findings

    async def _test_sql(
        self,
        endpoint: EndpointDescriptor,
        method: str,
        param: ParameterSpec,
        session: ProbeSession,
    ) -> Vulnerability | None:
        for payload in SQL_INJECTION_PAYLOADS:
            outcome = await self._send(endpoint, method, param, payload, session)
            if not outcome.is_ok or outcome.response is None:
                continue
            body = outcome.response.body
            if not SQL_ERROR_PATTERN.search(body):
                continue

            logger.info("[Injection] SQL error on %s %s via %s", method, endpoint.path, param.name)
            return Vulnerability(
                category=self.category,
                title="SQL Injection",
                description=(
                    f"Parameter '{param.name}' is passed to a database query without "
                    "sanitization; an injected payload produced a database error."
                ),
                severity=Severity.CRITICAL,
                endpoint=endpoint.path,
                method=method,
                parameter=param.name,
                evidence=f"SQL error detected in response: {_first_line(body)}",
                recommendation=(
                    "Use parameterized queries or prepared statements and validate input "
                    "against an allow-list."
                ),
            )
        return None

    async def _test_xss(
        self,
        endpoint: EndpointDescriptor,
        method: str,
        param: ParameterSpec,
        session: ProbeSession,
    ) -> Vulnerability | None:
        for payload in XSS_PAYLOADS:
            outcome = await self._send(endpoint, method, param, payload, session)
            if not outcome.is_ok or outcome.response is None:
                continue
            if payload not in outcome.response.body:
                continue

            logger.info(
                "[Injection] XSS reflected on %s %s via %s", method, endpoint.path, param.name
            )
            return Vulnerability(
                category=self.category,
                title="Cross-Site Scripting (XSS)",
                description=(
                    f"Parameter '{param.name}' is reflected in the response without encoding."
                ),
                severity=Severity.HIGH,
                endpoint=endpoint.path,
                method=method,
                parameter=param.name,
                evidence=f"XSS payload reflected in response: {payload}",
                recommendation=(
                    "Encode output for its context, validate input and set a "
                    "Content-Security-Policy header."
                ),
            )
        return None

    async def _send(
        self,
        endpoint: EndpointDescriptor,
        method: str,
        param: ParameterSpec,
        payload: str,
        session: ProbeSession,
    ) -> ProbeOutcome:
        path = PLACEHOLDER_RE.sub(lambda _match: payload, endpoint.path)
        params = {param.name: payload} if param.location == "query" else None
        return await session.probe(method, path, params=params)


def _first_line(body: str) -> str:
    line = body.strip().splitlines()[0] if body.strip() else ""
    return line[:EVIDENCE_LINE_LIMIT]
