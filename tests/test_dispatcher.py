"""Tests for the dynamic probe dispatcher."""

import asyncio

from conftest import BASE_URL, endpoint, finding, model

from apisentry.modules.detectors import Detector, DynamicProbeDispatcher, ProbeSession
from apisentry.modules.findings import Severity
from apisentry.tools.http import HTTPClient


class StubDetector(Detector):
    """Detector that records calls and returns one finding per call."""

    category = "API0:2023"

    def __init__(self, name, methods=("GET",), fail_on=None, delays=None, gauge=None):
        self.name = name
        self.methods = methods
        self.fail_on = fail_on
        self.delays = delays or {}
        self.gauge = gauge
        self.calls: list[tuple[str, str]] = []

    def applies_to(self, ep, method):
        return method in self.methods

    async def detect(self, ep, method, session: ProbeSession):
        self.calls.append((method, ep.path))
        if ep.path == self.fail_on:
            raise RuntimeError("detector crashed")
        if self.gauge is not None:
            self.gauge["active"] += 1
            self.gauge["peak"] = max(self.gauge["peak"], self.gauge["active"])
        await asyncio.sleep(self.delays.get(ep.path, 0))
        if self.gauge is not None:
            self.gauge["active"] -= 1
        return [finding(self.category, Severity.LOW, ep.path, method=method, title=self.name)]


def _dispatcher(detectors=None, max_concurrency=10) -> DynamicProbeDispatcher:
    return DynamicProbeDispatcher(
        HTTPClient(), limiter=None, detectors=detectors, max_concurrency=max_concurrency
    )


class TestPlanning:
    """Test routing of operations to detectors."""

    def test_default_detector_routing(self):
        api = model(
            endpoint("/items/{id}", "GET"),
            endpoint("/items/{id}", "PUT"),
            endpoint("/items/{id}", "DELETE"),
            endpoint("/payment", "POST"),
            endpoint("/webhooks/github", "POST"),
            endpoint("/search", "GET"),
        )

        plans = _dispatcher().plan(api)

        assert [(p.detector.name, p.method, p.path) for p in plans] == [
            ("bola", "GET", "/items/{id}"),
            ("injection", "GET", "/items/{id}"),
            ("rate_limit", "PUT", "/items/{id}"),
            ("injection", "POST", "/payment"),
            ("rate_limit", "POST", "/payment"),
            ("business_flow", "POST", "/payment"),
            ("injection", "POST", "/webhooks/github"),
            ("rate_limit", "POST", "/webhooks/github"),
            ("third_party", "POST", "/webhooks/github"),
            ("injection", "GET", "/search"),
        ]

    def test_rate_limit_prefers_post_over_delete(self):
        api = model(endpoint("/things", "DELETE"), endpoint("/things", "POST"))

        plans = [p for p in _dispatcher().plan(api) if p.detector.name == "rate_limit"]

        assert [p.method for p in plans] == ["POST"]

    def test_patch_and_head_are_never_probed(self):
        api = model(endpoint("/items/{id}", "PATCH"), endpoint("/items/{id}", "HEAD"))

        assert _dispatcher().plan(api) == []

    def test_injection_runs_for_both_get_and_post(self):
        api = model(endpoint("/search", "GET"), endpoint("/search", "POST"))

        plans = _dispatcher().plan(api)

        assert [(p.detector.name, p.method) for p in plans] == [
            ("injection", "GET"),
            ("injection", "POST"),
            ("rate_limit", "POST"),
        ]


class TestDispatch:
    """Test concurrent probing and result assembly."""

    async def test_findings_follow_path_order(self):
        detector = StubDetector("stub", delays={"/slow": 0.05})
        api = model(endpoint("/slow"), endpoint("/fast"))

        findings = await _dispatcher([detector]).test(api, BASE_URL)

        assert [f.endpoint for f in findings] == ["/slow", "/fast"]

    async def test_failing_detector_only_abandons_its_path(self):
        first = StubDetector("first")
        crashing = StubDetector("crashing", fail_on="/a")
        last = StubDetector("last")
        api = model(endpoint("/a"), endpoint("/b"))

        findings = await _dispatcher([first, crashing, last]).test(api, BASE_URL)

        assert [(f.title, f.endpoint) for f in findings] == [
            ("first", "/a"),
            ("first", "/b"),
            ("crashing", "/b"),
            ("last", "/b"),
        ]
        assert last.calls == [("GET", "/b")]

    async def test_identical_findings_are_not_deduplicated(self):
        api = model(endpoint("/a"))

        findings = await _dispatcher([StubDetector("same"), StubDetector("same")]).test(
            api, BASE_URL
        )

        assert len(findings) == 2
        assert findings[0].title == findings[1].title

    async def test_concurrency_is_bounded(self):
        gauge = {"active": 0, "peak": 0}
        paths = [f"/p{i}" for i in range(6)]
        detector = StubDetector("gauge", delays={p: 0.02 for p in paths}, gauge=gauge)
        api = model(*(endpoint(p) for p in paths))

        findings = await _dispatcher([detector], max_concurrency=5).test(
            api, BASE_URL, max_concurrency=2
        )

        assert len(findings) == 6
        assert gauge["peak"] == 2

    async def test_operations_on_one_path_run_sequentially(self):
        gauge = {"active": 0, "peak": 0}
        detectors = [
            StubDetector("one", methods=("GET", "POST"), delays={"/a": 0.01}, gauge=gauge),
            StubDetector("two", delays={"/a": 0.01}, gauge=gauge),
        ]
        api = model(endpoint("/a", "GET"), endpoint("/a", "POST"))

        await _dispatcher(detectors).test(api, BASE_URL)

        assert gauge["peak"] == 1
        assert detectors[0].calls == [("GET", "/a"), ("POST", "/a")]

    async def test_empty_model(self):
        assert await _dispatcher([StubDetector("stub")]).test(model(), BASE_URL) == []
