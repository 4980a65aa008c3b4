"""Route each documented operation to the detectors that apply to it."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from apisentry.modules.findings import Vulnerability
from apisentry.modules.openapi import EndpointDescriptor, EndpointModel
from apisentry.modules.ratelimit import RateLimiter
from apisentry.tools.http import HTTPClient

from .base import Detector
from .factory import create_default_detectors
from .session import ProbeSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbePlan:
    """One detector run against one operation."""

    detector: Detector
    endpoint: EndpointDescriptor

    @property
    def path(self) -> str:
        return self.endpoint.path

    @property
    def method(self) -> str:
        return self.endpoint.method


class DynamicProbeDispatcher:
    """Run every applicable detector against a live target.

    Paths are probed concurrently up to ``max_concurrency``. Operations on
    the same path run sequentially in detector order.
    """

    def __init__(
        self,
        client: HTTPClient,
        limiter: RateLimiter,
        detectors: Iterable[Detector] | None = None,
        max_concurrency: int = 10,
    ):
        self.client = client
        self.limiter = limiter
        self.detectors = list(detectors) if detectors is not None else create_default_detectors()
        self.max_concurrency = max(1, max_concurrency)

    def plan(self, model: EndpointModel) -> list[ProbePlan]:
        plans: list[ProbePlan] = []
        for path in model.paths():
            plans.extend(self._plan_path(model.operations_for(path)))
        return plans

    def _plan_path(self, operations: dict[str, EndpointDescriptor]) -> list[ProbePlan]:
        plans: list[ProbePlan] = []
        for detector in self.detectors:
            for method in detector.method_priority:
                endpoint = operations.get(method)
                if endpoint is None or not detector.applies_to(endpoint, method):
                    continue
                plans.append(ProbePlan(detector=detector, endpoint=endpoint))
                if detector.one_method_per_path:
                    break
        return plans

    async def test(
        self,
        model: EndpointModel,
        base_url: str,
        auth_token: str | None = None,
        max_concurrency: int | None = None,
    ) -> list[Vulnerability]:
        """Probe every path of ``model`` and return findings in path order."""
        session = ProbeSession(
            base_url=base_url, client=self.client, limiter=self.limiter, auth_token=auth_token
        )
        semaphore = asyncio.Semaphore(max(1, max_concurrency or self.max_concurrency))
        paths = model.paths()

        async def run_path(path: str) -> list[Vulnerability]:
            async with semaphore:
                return await self._test_path(path, model.operations_for(path), session)

        results = await asyncio.gather(*(run_path(path) for path in paths))
        findings = [finding for path_findings in results for finding in path_findings]
        logger.info(
            "Dynamic testing finished: %d findings across %d paths", len(findings), len(paths)
        )
        return findings

    async def _test_path(
        self, path: str, operations: dict[str, EndpointDescriptor], session: ProbeSession
    ) -> list[Vulnerability]:
        findings: list[Vulnerability] = []
        try:
            for plan in self._plan_path(operations):
                logger.debug("[%s] probing %s %s", plan.detector.name, plan.method, path)
                findings.extend(await plan.detector.detect(plan.endpoint, plan.method, session))
        except Exception as exc:
            logger.error("Dynamic testing failed for %s: %s", path, exc, exc_info=True)
        return findings
