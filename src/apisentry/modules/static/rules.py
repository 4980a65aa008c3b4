"""Document-level checks mapped to the OWASP API Security Top 10 (2023)."""

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from apisentry.modules.findings import Severity, Vulnerability
from apisentry.modules.openapi import EndpointDescriptor, EndpointModel

SENSITIVE_PARAM_RE = re.compile(r"^(password|secret|token|key|auth|credential|api[_-]?key)$", re.I)
URL_PARAM_RE = re.compile(r"^(url|uri|link|endpoint|resource|fetch|proxy|redirect)$", re.I)
CAPTCHA_RE = re.compile(r"captcha|recaptcha|hcaptcha|challenge|verification", re.I)
SEQUENTIAL_ID_RE = re.compile(r"^\d+$")
SENSITIVE_FIELD_RE = re.compile(
    r"^(password|secret|token|key|credit[_-]?card|ssn|social[_-]?security|pin|cv[vc]"
    r"|security[_-]?code)$",
    re.I,
)

PUBLIC_PATH_MARKERS = ("/health", "/.well-known")
DEBUG_PATH_MARKERS = ("/debug", "/test", "/dev", "/admin", "/actuator")
PRIVILEGED_PATH_MARKERS = ("/admin", "/management", "/internal")
VERSION_PATH_MARKERS = ("/v1/", "/v2/", "/v3/")
PAGINATION_MARKERS = ("limit", "page", "size")
RATE_LIMIT_MARKERS = ("rate limit", "throttle", "quota")
BUSINESS_FLOW_KEYWORDS = (
    "payment",
    "transfer",
    "purchase",
    "order",
    "buy",
    "sell",
    "trade",
    "book",
    "reserve",
    "withdraw",
    "deposit",
    "loan",
    "credit",
    "product-agreement",
)
THIRD_PARTY_INDICATORS = (
    "external",
    "third-party",
    "webhook",
    "callback",
    "proxy",
    "fetch",
    "remote",
    "integration",
    "partner",
)


def _text(endpoint: EndpointDescriptor) -> str:
    return f"{endpoint.description} {endpoint.summary}".lower()


class StaticRule(ABC):
    """A single inspection over the parsed document."""

    rule_id: str
    description: str

    @abstractmethod
    def check(self, model: EndpointModel) -> list[Vulnerability]:
        """Return findings for the whole document."""

    def finding(
        self,
        title: str,
        description: str,
        severity: Severity,
        recommendation: str,
        endpoint: EndpointDescriptor | None = None,
        parameter: str | None = None,
    ) -> Vulnerability:
        return Vulnerability(
            category=self.rule_id,
            title=title,
            description=description,
            severity=severity,
            endpoint=endpoint.path if endpoint else "",
            method=endpoint.method if endpoint else "",
            parameter=parameter,
            recommendation=recommendation,
            source="static",
        )


class ObjectLevelAuthRule(StaticRule):
    rule_id = "API1:2023"
    description = "Broken Object Level Authorization"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            if not endpoint.has_placeholder:
                continue
            if not model.effective_security(endpoint):
                findings.append(
                    self.finding(
                        "Broken Object Level Authorization",
                        f"Endpoint {endpoint.path} handles object identifiers but lacks "
                        "authorization checks",
                        Severity.HIGH,
                        "Implement authorization checks that verify the caller may access "
                        "the requested object",
                        endpoint,
                    )
                )
            for param in endpoint.params_in("path"):
                if param.example is not None and SEQUENTIAL_ID_RE.match(str(param.example)):
                    findings.append(
                        self.finding(
                            "Predictable Object IDs",
                            f"Parameter '{param.name}' uses sequential numeric identifiers",
                            Severity.MEDIUM,
                            "Use UUIDs or other non-sequential identifiers",
                            endpoint,
                            parameter=param.name,
                        )
                    )
        return findings


class BrokenAuthenticationRule(StaticRule):
    rule_id = "API2:2023"
    description = "Broken Authentication"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            for param in endpoint.params_in("query"):
                if SENSITIVE_PARAM_RE.match(param.name):
                    findings.append(
                        self.finding(
                            "Credentials in Query Parameters",
                            f"Sensitive parameter '{param.name}' is passed in the query string",
                            Severity.HIGH,
                            "Send credentials in headers or the request body, never in URLs",
                            endpoint,
                            parameter=param.name,
                        )
                    )

        if not model.security_schemes:
            findings.append(
                self.finding(
                    "Missing Security Schemes",
                    "API description does not define security schemes",
                    Severity.MEDIUM,
                    "Define security schemes in components.securitySchemes",
                )
            )
        for scheme in model.security_schemes.values():
            scheme_type = str(scheme.get("type", "")).lower()
            weak_http = scheme_type == "http" and str(scheme.get("scheme", "")).lower() != "bearer"
            if weak_http or scheme_type == "basic":
                findings.append(
                    self.finding(
                        "Weak Security Scheme",
                        "Security scheme uses non-Bearer authentication",
                        Severity.MEDIUM,
                        "Use Bearer token authentication (JWT)",
                    )
                )

        for endpoint in model.endpoints:
            path = endpoint.path
            if path == "/" or any(marker in path for marker in PUBLIC_PATH_MARKERS):
                continue
            if not model.effective_security(endpoint):
                findings.append(
                    self.finding(
                        "Unauthenticated Endpoint",
                        f"Endpoint {path} does not require authentication",
                        Severity.MEDIUM,
                        "Require authentication for sensitive endpoints",
                        endpoint,
                    )
                )
        return findings


def _sensitive_properties(schema: Mapping[str, Any] | None) -> list[str]:
    """Names of sensitive properties anywhere in a schema, outermost first."""
    if not isinstance(schema, Mapping):
        return []
    names = []
    properties = schema.get("properties")
    if isinstance(properties, Mapping):
        names.extend(name for name in properties if SENSITIVE_FIELD_RE.match(name))
        for nested in properties.values():
            names.extend(_sensitive_properties(nested))
    names.extend(_sensitive_properties(schema.get("items")))
    return names


class PropertyLevelAuthRule(StaticRule):
    rule_id = "API3:2023"
    description = "Broken Object Property Level Authorization"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            if endpoint.method not in ("GET", "POST", "PUT"):
                continue
            exposed = [
                (name, "response")
                for response in endpoint.expected_responses.values()
                for name in _sensitive_properties(response.schema)
            ]
            exposed += [
                (name, "request") for name in _sensitive_properties(endpoint.request_body_schema)
            ]
            for name, context in exposed:
                findings.append(
                    self.finding(
                        "Sensitive Data Exposure",
                        f"Field '{name}' in {endpoint.path} ({context}) contains sensitive "
                        "information",
                        Severity.HIGH,
                        "Filter sensitive properties based on the caller's authorization and "
                        "use dedicated response models",
                        endpoint,
                        parameter=name,
                    )
                )
        return findings


class ResourceConsumptionRule(StaticRule):
    rule_id = "API4:2023"
    description = "Unrestricted Resource Consumption"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            names = [param.name.lower() for param in endpoint.parameters]
            has_pagination = any(
                marker in name for name in names for marker in PAGINATION_MARKERS
            )
            path = endpoint.path.lower()
            listing = endpoint.method == "GET" or "list" in path or "search" in path
            if listing and not has_pagination:
                findings.append(
                    self.finding(
                        "Missing Pagination",
                        f"Endpoint {endpoint.path} may return unbounded result sets",
                        Severity.MEDIUM,
                        "Add limit/page/size parameters with enforced maximums",
                        endpoint,
                    )
                )
            description = endpoint.description.lower()
            mentions_limit = any(marker in description for marker in RATE_LIMIT_MARKERS)
            if endpoint.method in ("POST", "PUT", "DELETE") and not mentions_limit:
                findings.append(
                    self.finding(
                        "No Rate Limiting Mentioned",
                        f"Endpoint {endpoint.path} does not document rate limiting",
                        Severity.LOW,
                        "Document and enforce rate limits for state-changing operations",
                        endpoint,
                    )
                )
        return findings


class FunctionLevelAuthRule(StaticRule):
    rule_id = "API5:2023"
    description = "Broken Function Level Authorization"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            if endpoint.method not in ("GET", "POST", "PUT", "DELETE"):
                continue
            if model.effective_security(endpoint):
                continue
            path = endpoint.path.lower()
            if any(marker in path for marker in PRIVILEGED_PATH_MARKERS):
                findings.append(
                    self.finding(
                        "Unprotected Admin Endpoint",
                        f"Admin endpoint {endpoint.path} does not require authentication",
                        Severity.CRITICAL,
                        "Enforce role-based authorization on every administrative function",
                        endpoint,
                    )
                )
            if endpoint.method in ("PUT", "DELETE"):
                findings.append(
                    self.finding(
                        "Missing Authorization on Sensitive Operation",
                        f"Endpoint {endpoint.path} performs {endpoint.method} without explicit "
                        "security requirements",
                        Severity.HIGH,
                        "Require authorization on all state-changing functions",
                        endpoint,
                    )
                )
        return findings


class BusinessFlowRule(StaticRule):
    rule_id = "API6:2023"
    description = "Unrestricted Access to Sensitive Business Flows"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            if endpoint.method not in ("POST", "PUT", "DELETE"):
                continue
            path = endpoint.path.lower()
            keyword = next((k for k in BUSINESS_FLOW_KEYWORDS if k in path), None)
            text = _text(endpoint)
            mentions_limit = any(m in text for m in RATE_LIMIT_MARKERS) or "limit" in text
            protected = (
                mentions_limit
                or CAPTCHA_RE.search(text) is not None
                or any(m in text for m in ("one per user", "maximum", "once per"))
                or any(CAPTCHA_RE.search(p.name) for p in endpoint.parameters)
            )
            if keyword and not protected:
                critical = any(k in path for k in ("payment", "transfer", "withdraw", "loan"))
                findings.append(
                    self.finding(
                        "Unrestricted Access to Sensitive Business Flow",
                        f"Endpoint {endpoint.path} performs a sensitive business operation "
                        f"({keyword}) without documented protection against automation",
                        Severity.HIGH if critical else Severity.MEDIUM,
                        "Apply quotas, CAPTCHA or per-account velocity limits to sensitive flows",
                        endpoint,
                    )
                )
            bulk = "batch" in path or "bulk" in path or "multiple" in text or "mass" in text
            if bulk and not mentions_limit:
                findings.append(
                    self.finding(
                        "Bulk Operation Without Safeguards",
                        f"Endpoint {endpoint.path} allows bulk operations without "
                        "documented limits",
                        Severity.HIGH,
                        "Enforce strict limits on bulk operations and monitor for abuse",
                        endpoint,
                    )
                )
        return findings


class SSRFRule(StaticRule):
    rule_id = "API7:2023"
    description = "Server Side Request Forgery"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            if endpoint.method not in ("GET", "POST", "PUT"):
                continue
            names = [param.name for param in endpoint.parameters]
            properties = (endpoint.request_body_schema or {}).get("properties") or {}
            for name, schema in properties.items():
                fmt = schema.get("format") if isinstance(schema, dict) else None
                if fmt in (None, "uri", "url"):
                    names.append(name)
            for name in names:
                if URL_PARAM_RE.match(name):
                    findings.append(
                        self.finding(
                            "Potential SSRF Vulnerability",
                            f"'{name}' in {endpoint.path} accepts a URL which could lead to SSRF",
                            Severity.HIGH,
                            "Validate user-supplied URLs against an allow-list and block "
                            "private address ranges",
                            endpoint,
                            parameter=name,
                        )
                    )
        return findings


class SecurityMisconfigurationRule(StaticRule):
    rule_id = "API8:2023"
    description = "Security Misconfiguration"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            if any(marker in endpoint.path.lower() for marker in DEBUG_PATH_MARKERS):
                findings.append(
                    self.finding(
                        "Debug/Test Endpoint Exposed",
                        f"Endpoint {endpoint.path} looks like a debug or administrative endpoint",
                        Severity.MEDIUM,
                        "Remove or properly secure debug endpoints in production",
                        endpoint,
                    )
                )
        versioned = any(
            marker in path for path in model.paths() for marker in VERSION_PATH_MARKERS
        )
        if model.version and not versioned:
            findings.append(
                self.finding(
                    "Missing API Versioning Strategy",
                    f"API defines version {model.version} but paths do not include versioning",
                    Severity.LOW,
                    "Version the API in URL paths (e.g. /api/v1/)",
                )
            )
        return findings


class ImproperInventoryRule(StaticRule):
    rule_id = "API9:2023"
    description = "Improper Inventory Management"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        if not model.description.strip():
            findings.append(
                self.finding(
                    "Missing API Description",
                    "API description lacks info.description",
                    Severity.LOW,
                    "Provide a comprehensive API description in info.description",
                )
            )
        for endpoint in model.endpoints:
            if endpoint.method == "GET" and endpoint.deprecated:
                findings.append(
                    self.finding(
                        "Deprecated Endpoint Still Available",
                        f"Endpoint {endpoint.path} is marked as deprecated but still accessible",
                        Severity.MEDIUM,
                        "Remove deprecated endpoints or publish a removal timeline",
                        endpoint,
                    )
                )
        return findings


class UnsafeConsumptionRule(StaticRule):
    rule_id = "API10:2023"
    description = "Unsafe Consumption of APIs"

    def check(self, model: EndpointModel) -> list[Vulnerability]:
        findings = []
        for endpoint in model.endpoints:
            if endpoint.method not in ("GET", "POST", "PUT"):
                continue
            path = endpoint.path.lower()
            text = f"{_text(endpoint)} {path}"
            if any(indicator in path for indicator in THIRD_PARTY_INDICATORS):
                if not any(m in text for m in ("validat", "sanitiz", "filter", "verify")):
                    findings.append(
                        self.finding(
                            "Missing Validation for Third-Party Data",
                            f"Endpoint {endpoint.path} consumes third-party data without "
                            "documented validation",
                            Severity.HIGH,
                            "Treat third-party data as untrusted input and validate it",
                            endpoint,
                        )
                    )
            if "webhook" in path or "callback" in path:
                signed = any(m in text for m in ("signature", "hmac", "verify", "authentic"))
                signed = signed or any(
                    "signature" in p.name.lower() or "hmac" in p.name.lower()
                    for p in endpoint.parameters
                )
                if not signed:
                    findings.append(
                        self.finding(
                            "Webhook Without Signature Verification",
                            f"Webhook endpoint {endpoint.path} does not document signature "
                            "verification",
                            Severity.HIGH,
                            "Verify webhook payloads with an HMAC signature",
                            endpoint,
                        )
                    )
        return findings


def default_rules() -> list[StaticRule]:
    """Return the built-in rules in category order."""
    return [
        ObjectLevelAuthRule(),
        BrokenAuthenticationRule(),
        PropertyLevelAuthRule(),
        ResourceConsumptionRule(),
        FunctionLevelAuthRule(),
        BusinessFlowRule(),
        SSRFRule(),
        SecurityMisconfigurationRule(),
        ImproperInventoryRule(),
        UnsafeConsumptionRule(),
    ]
