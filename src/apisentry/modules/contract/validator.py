"""Compare live responses with the documented response contracts."""

import json
import logging
from collections.abc import Mapping
from typing import Any

from apisentry.modules.detectors.session import ProbeSession
from apisentry.modules.findings import ContractMismatch, MismatchKind, Severity
from apisentry.modules.openapi import EndpointDescriptor, EndpointModel, ResponseSpec
from apisentry.modules.ratelimit import RateLimiter
from apisentry.tools.http import HTTPClient, HTTPResponse

logger = logging.getLogger(__name__)

DOCUMENTED_STATUS_HINT = "200, 201, 400, 401, 403, 404, 500"


def _json_type(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if value is None:
        return "null"
    return "string"


class ResponseContractValidator:
    """Issue a GET to each parameterless path and check status and body shape."""

    def __init__(self, client: HTTPClient, limiter: RateLimiter):
        self.client = client
        self.limiter = limiter

    async def validate(
        self, model: EndpointModel, base_url: str, auth_token: str | None = None
    ) -> list[ContractMismatch]:
        logger.info("Starting contract validation")
        session = ProbeSession(
            base_url=base_url, client=self.client, limiter=self.limiter, auth_token=auth_token
        )
        mismatches: list[ContractMismatch] = []
        for endpoint in model.endpoints:
            if endpoint.method != "GET" or endpoint.has_placeholder:
                continue
            try:
                mismatches.extend(await self._validate_operation(endpoint, session))
            except Exception as exc:
                logger.error("Error validating %s: %s", endpoint.path, exc, exc_info=True)
        logger.info("Contract validation completed. Found %d mismatches", len(mismatches))
        return mismatches

    async def _validate_operation(
        self, endpoint: EndpointDescriptor, session: ProbeSession
    ) -> list[ContractMismatch]:
        outcome = await session.probe(endpoint.method, endpoint.path)
        if not outcome.is_ok or outcome.response is None:
            logger.warning(
                "[ContractValidation] no response for %s %s", endpoint.method, endpoint.path
            )
            return []

        response = outcome.response
        expected = self.expected_response(endpoint, response.status_code)
        if expected is None:
            return [
                ContractMismatch(
                    endpoint=endpoint.path,
                    method=endpoint.method,
                    kind=MismatchKind.STATUS_CODE,
                    expected=", ".join(endpoint.expected_responses) or DOCUMENTED_STATUS_HINT,
                    actual=str(response.status_code),
                    severity=Severity.MEDIUM,
                    message=f"Unexpected status code: {response.status_code}",
                )
            ]

        mismatches = self._check_headers(endpoint, expected, response)
        if expected.schema is not None and response.body:
            mismatches.extend(self._check_schema(endpoint, expected.schema, response.body))
        return mismatches

    @staticmethod
    def expected_response(endpoint: EndpointDescriptor, status_code: int) -> ResponseSpec | None:
        responses = endpoint.expected_responses
        expected = responses.get(str(status_code)) or responses.get("default")
        if expected is None and 200 <= status_code < 300:
            expected = responses.get("200")
        return expected

    def _check_headers(
        self, endpoint: EndpointDescriptor, expected: ResponseSpec, response: HTTPResponse
    ) -> list[ContractMismatch]:
        return [
            ContractMismatch(
                endpoint=endpoint.path,
                method=endpoint.method,
                kind=MismatchKind.HEADER,
                expected=name,
                actual="missing",
                severity=Severity.LOW,
                message=f"Documented response header '{name}' is missing",
                field=name,
            )
            for name in expected.headers
            if response.header(name) is None
        ]

    def _check_schema(
        self, endpoint: EndpointDescriptor, schema: Mapping[str, Any], body: str
    ) -> list[ContractMismatch]:
        try:
            payload = json.loads(body)
        except ValueError:
            logger.debug("Response from %s is not JSON", endpoint.path)
            return []

        def mismatch(kind: MismatchKind, expected: str, actual: str, message: str, field=None):
            return ContractMismatch(
                endpoint=endpoint.path,
                method=endpoint.method,
                kind=kind,
                expected=expected,
                actual=actual,
                severity=Severity.MEDIUM if kind is MismatchKind.SCHEMA else Severity.LOW,
                message=message,
                field=field,
            )

        expected_type = schema.get("type")
        actual_type = _json_type(payload)
        if expected_type in ("object", "array") and expected_type != actual_type:
            return [
                mismatch(MismatchKind.SCHEMA, expected_type, actual_type, "Response type mismatch")
            ]
        if not isinstance(payload, dict):
            return []

        results = []
        properties = schema.get("properties") or {}
        for name in schema.get("required") or []:
            if name not in payload:
                results.append(
                    mismatch(
                        MismatchKind.MISSING_FIELD,
                        name,
                        "absent",
                        f"Required field '{name}' missing from response",
                        field=name,
                    )
                )
        if schema.get("additionalProperties") is False:
            for name in payload:
                if name not in properties:
                    results.append(
                        mismatch(
                            MismatchKind.EXTRA_FIELD,
                            "undeclared",
                            name,
                            f"Undeclared field '{name}' present in response",
                            field=name,
                        )
                    )
        return results
