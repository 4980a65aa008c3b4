"""Tests for the document-level static rules."""

from conftest import endpoint, model

from apisentry.modules.findings import Severity
from apisentry.modules.openapi import EndpointDescriptor, ParameterSpec, ResponseSpec
from apisentry.modules.static import (
    BrokenAuthenticationRule,
    BusinessFlowRule,
    FunctionLevelAuthRule,
    ObjectLevelAuthRule,
    PropertyLevelAuthRule,
    ResourceConsumptionRule,
    RuleBasedAnalyzer,
    SSRFRule,
    SecurityMisconfigurationRule,
    StaticRule,
    UnsafeConsumptionRule,
)

BEARER = {"bearerAuth": {"type": "http", "scheme": "bearer"}}
SECURED = ({"bearerAuth": []},)


def _titles(findings):
    return [f.title for f in findings]


class TestObjectLevelAuthRule:
    def test_unsecured_identifier_endpoint(self):
        api = model(endpoint("/orders/{orderId}"), endpoint("/orders"))

        findings = ObjectLevelAuthRule().check(api)

        assert _titles(findings) == ["Broken Object Level Authorization"]
        assert findings[0].endpoint == "/orders/{orderId}"
        assert findings[0].source == "static"

    def test_sequential_example_id(self):
        ep = EndpointDescriptor(
            path="/orders/{orderId}",
            method="GET",
            parameters=(ParameterSpec(name="orderId", location="path", example=42),),
            security=SECURED,
        )

        findings = ObjectLevelAuthRule().check(model(ep))

        assert _titles(findings) == ["Predictable Object IDs"]
        assert findings[0].parameter == "orderId"


class TestBrokenAuthenticationRule:
    def test_query_credentials_and_missing_schemes(self):
        api = model(endpoint("/login", params=[("password", "query")]))

        titles = _titles(BrokenAuthenticationRule().check(api))

        assert titles == [
            "Credentials in Query Parameters",
            "Missing Security Schemes",
            "Unauthenticated Endpoint",
        ]

    def test_basic_auth_is_weak(self):
        api = model(
            endpoint("/health"),
            security_schemes={"basic": {"type": "http", "scheme": "basic"}},
            global_security=({"basic": []},),
        )

        findings = BrokenAuthenticationRule().check(api)

        assert _titles(findings) == ["Weak Security Scheme"]
        assert findings[0].endpoint == ""

    def test_public_paths_are_skipped(self):
        api = model(endpoint("/"), endpoint("/.well-known/jwks.json"), security_schemes=BEARER)

        assert BrokenAuthenticationRule().check(api) == []


class TestPropertyLevelAuthRule:
    def test_sensitive_fields_in_responses_and_nested_request_bodies(self):
        user_schema = {
            "type": "object",
            "properties": {"id": {"type": "integer"}, "password": {"type": "string"}},
        }
        ep = EndpointDescriptor(
            path="/users",
            method="POST",
            request_body_schema={
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "payment": {"type": "object", "properties": {"CVV": {"type": "string"}}},
                },
            },
            expected_responses={"201": ResponseSpec(schema=user_schema)},
        )

        findings = PropertyLevelAuthRule().check(model(ep))

        assert [(f.parameter, f.category) for f in findings] == [
            ("password", "API3:2023"),
            ("CVV", "API3:2023"),
        ]
        assert "(response)" in findings[0].description
        assert "(request)" in findings[1].description
        assert findings[0].severity is Severity.HIGH

    def test_array_items_and_ignored_methods(self):
        listing = {"type": "array", "items": {"properties": {"ssn": {"type": "string"}}}}
        api = model(
            endpoint("/people", expected_responses={"200": ResponseSpec(schema=listing)}),
            endpoint(
                "/people/{id}", "DELETE", expected_responses={"200": ResponseSpec(schema=listing)}
            ),
        )

        findings = PropertyLevelAuthRule().check(api)

        assert [(f.endpoint, f.parameter) for f in findings] == [("/people", "ssn")]

    def test_harmless_schema(self):
        schema = {"properties": {"passwordHint": {}, "keyboard": {}}}
        api = model(endpoint("/users", expected_responses={"200": ResponseSpec(schema=schema)}))

        assert PropertyLevelAuthRule().check(api) == []


class TestFunctionLevelAuthRule:
    def test_unprotected_admin_and_state_changing_operations(self):
        api = model(
            endpoint("/admin/users"),
            endpoint("/internal/jobs/{id}", "DELETE"),
            endpoint("/items/{id}", "PUT"),
            endpoint("/items", "PATCH"),
        )

        findings = FunctionLevelAuthRule().check(api)

        assert [(f.title, f.endpoint, f.severity) for f in findings] == [
            ("Unprotected Admin Endpoint", "/admin/users", Severity.CRITICAL),
            ("Unprotected Admin Endpoint", "/internal/jobs/{id}", Severity.CRITICAL),
            ("Missing Authorization on Sensitive Operation", "/internal/jobs/{id}", Severity.HIGH),
            ("Missing Authorization on Sensitive Operation", "/items/{id}", Severity.HIGH),
        ]
        assert findings[1].method == "DELETE"

    def test_global_or_operation_security_protects(self):
        secured_globally = model(
            endpoint("/admin/users", "DELETE"), security_schemes=BEARER, global_security=SECURED
        )
        secured_operation = model(endpoint("/management/config", "PUT", security=SECURED))

        assert FunctionLevelAuthRule().check(secured_globally) == []
        assert FunctionLevelAuthRule().check(secured_operation) == []


class TestResourceConsumptionRule:
    def test_listing_without_pagination(self):
        api = model(endpoint("/items"), endpoint("/items/page", params=[("page", "query")]))

        findings = ResourceConsumptionRule().check(api)

        assert [(f.title, f.endpoint) for f in findings] == [("Missing Pagination", "/items")]

    def test_mutation_without_documented_limit(self):
        limited = endpoint("/items", "POST", description="Throttle: 10 requests per minute")
        unlimited = endpoint("/items/{id}", "DELETE")

        findings = ResourceConsumptionRule().check(model(limited, unlimited))

        assert [(f.title, f.method) for f in findings] == [
            ("No Rate Limiting Mentioned", "DELETE")
        ]


class TestBusinessFlowRule:
    def test_payment_without_protection_is_high(self):
        findings = BusinessFlowRule().check(model(endpoint("/payments", "POST")))

        assert _titles(findings) == ["Unrestricted Access to Sensitive Business Flow"]
        assert findings[0].severity.value == "HIGH"

    def test_captcha_parameter_protects(self):
        ep = endpoint("/orders", "POST", params=[("captchaToken", "header")])

        assert BusinessFlowRule().check(model(ep)) == []

    def test_bulk_operation(self):
        findings = BusinessFlowRule().check(model(endpoint("/users/bulk", "POST")))

        assert _titles(findings) == ["Bulk Operation Without Safeguards"]


class TestSSRFRule:
    def test_url_parameter_and_body_property(self):
        ep = endpoint(
            "/preview",
            "POST",
            params=[("redirect", "query")],
            request_body_schema={"properties": {"url": {"type": "string", "format": "uri"}}},
        )

        findings = SSRFRule().check(model(ep))

        assert [f.parameter for f in findings] == ["redirect", "url"]


class TestSecurityMisconfigurationRule:
    def test_debug_paths_and_versioning(self):
        api = model(endpoint("/debug/vars"), endpoint("/users"), version="1.0")

        titles = _titles(SecurityMisconfigurationRule().check(api))

        assert titles == ["Debug/Test Endpoint Exposed", "Missing API Versioning Strategy"]

    def test_versioned_paths(self):
        api = model(endpoint("/api/v1/users"), version="1.0")

        assert SecurityMisconfigurationRule().check(api) == []


class TestUnsafeConsumptionRule:
    def test_unsigned_webhook(self):
        findings = UnsafeConsumptionRule().check(model(endpoint("/webhooks/stripe", "POST")))

        assert _titles(findings) == [
            "Missing Validation for Third-Party Data",
            "Webhook Without Signature Verification",
        ]

    def test_documented_verification(self):
        ep = endpoint(
            "/webhooks/stripe", "POST", description="Payload is validated via HMAC signature"
        )

        assert UnsafeConsumptionRule().check(model(ep)) == []


class TestRuleBasedAnalyzer:
    def test_failing_rule_is_skipped(self):
        class Broken(StaticRule):
            rule_id = "API0:2023"
            description = "always fails"

            def check(self, model):
                raise RuntimeError("rule bug")

        analyzer = RuleBasedAnalyzer(rules=[Broken(), ObjectLevelAuthRule()])

        findings = analyzer.analyze(model(endpoint("/orders/{id}")))

        assert _titles(findings) == ["Broken Object Level Authorization"]

    def test_default_rules_cover_a_realistic_document(self):
        api = model(
            endpoint("/orders/{id}"),
            endpoint("/webhooks/github", "POST"),
            security_schemes=BEARER,
            description="Orders API",
        )

        categories = {f.category for f in RuleBasedAnalyzer().analyze(api)}

        assert {"API1:2023", "API2:2023", "API10:2023"} <= categories
