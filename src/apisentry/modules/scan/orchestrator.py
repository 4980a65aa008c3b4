"""Asynchronous, cancellable scan pipeline."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from apisentry.errors import ScanCancelled
from apisentry.modules.openapi import EndpointModel

from .contracts import (
    ContractValidator,
    DynamicTester,
    ReportStore,
    SpecParser,
    StaticAnalyzer,
    TokenProvider,
    Triage,
)
from .models import HistoryRecord, ScanJob, ScanOptions, ScanSnapshot
from .registry import CancellationHandle, ScanRegistry

logger = logging.getLogger(__name__)


@dataclass
class _PipelineState:
    job: ScanJob
    handle: CancellationHandle
    model: EndpointModel | None = None
    auth_token: str | None = None


Stage = Callable[[_PipelineState], Awaitable[None]]


class ScanOrchestrator:
    """Run scans as background tasks and expose their progress.

    Every stage is preceded by a cancellation check, and the store receives
    a fresh snapshot after each stage so readers can follow progress.
    """

    def __init__(
        self,
        parser: SpecParser,
        dynamic_tester: DynamicTester,
        registry: ScanRegistry,
        store: ReportStore,
        *,
        static_analyzer: StaticAnalyzer | None = None,
        contract_validator: ContractValidator | None = None,
        token_provider: TokenProvider | None = None,
        triage: Triage | None = None,
    ):
        self.parser = parser
        self.dynamic_tester = dynamic_tester
        self.registry = registry
        self.store = store
        self.static_analyzer = static_analyzer
        self.contract_validator = contract_validator
        self.token_provider = token_provider
        self.triage = triage
        self._jobs: dict[str, ScanJob] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._stages: list[tuple[str, Stage]] = [
            ("parse", self._parse),
            ("static_analysis", self._static_analysis),
            ("token", self._acquire_token),
            ("dynamic_testing", self._dynamic_testing),
            ("contract_validation", self._contract_validation),
            ("ai_triage", self._ai_triage),
        ]

    def start_scan(
        self, spec_source: str, base_url: str, options: ScanOptions | None = None
    ) -> str:
        """Create a job, schedule its pipeline and return the job id.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        job = ScanJob(spec_source=spec_source, base_url=base_url, options=options or ScanOptions())
        job.start()
        self.store.save(job.snapshot())
        self._jobs[job.id] = job

        handle = CancellationHandle()
        self.registry.record(
            HistoryRecord(
                scan_id=job.id,
                spec_source=spec_source,
                base_url=base_url,
                options=job.options,
                status=job.status,
                started_at=job.started_at,
            )
        )
        self.registry.register(job.id, handle)

        task = loop.create_task(self._run(job, handle), name=f"scan-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(lambda _task, scan_id=job.id: self._tasks.pop(scan_id, None))
        logger.info("Scan %s started for %s (%s)", job.id, base_url, job.options.describe())
        return job.id

    def get_status(self, scan_id: str) -> ScanSnapshot | None:
        job = self._jobs.get(scan_id)
        return job.snapshot() if job else None

    def cancel(self, scan_id: str) -> bool:
        return self.registry.cancel(scan_id)

    def delete(self, scan_id: str) -> bool:
        removed = self.registry.delete(scan_id)
        return self._jobs.pop(scan_id, None) is not None or removed

    def list_history(self) -> list[HistoryRecord]:
        return self.registry.list_history()

    async def wait(self, scan_id: str) -> ScanSnapshot | None:
        """Wait for a scan's pipeline task to finish and return its final snapshot."""
        task = self._tasks.get(scan_id)
        if task is not None:
            await asyncio.wait({task})
        return self.get_status(scan_id)

    async def _run(self, job: ScanJob, handle: CancellationHandle) -> None:
        state = _PipelineState(job=job, handle=handle)
        timeout_ms = job.options.timeout_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000 if timeout_ms else None):
                for name, stage in self._stages:
                    self._check_cancelled(state)
                    logger.debug("Scan %s: stage %s", job.id, name)
                    await stage(state)
            self._check_cancelled(state)
            self._finalize(state)
        except ScanCancelled:
            logger.info("Scan %s stopped at a stage boundary", job.id)
            job.cancel()
        except TimeoutError:
            logger.error("Scan %s exceeded its %dms time limit", job.id, timeout_ms)
            job.fail(f"Scan exceeded timeout of {timeout_ms} ms")
        except Exception as exc:
            logger.error("Scan %s failed: %s", job.id, exc, exc_info=True)
            job.fail(str(exc))
        finally:
            try:
                if not self._deleted(state):
                    self._save(state)
                    self.registry.update(job.snapshot())
            finally:
                self.registry.finish(job.id)
            logger.info("Scan %s finished with status %s", job.id, job.status.value)

    def _check_cancelled(self, state: _PipelineState) -> None:
        if state.handle.cancelled:
            raise ScanCancelled(state.job.id)

    def _deleted(self, state: _PipelineState) -> bool:
        return state.handle.deleted or self._jobs.get(state.job.id) is not state.job

    def _save(self, state: _PipelineState) -> None:
        if self._deleted(state):
            return
        try:
            self.store.save(state.job.snapshot())
        except Exception as exc:
            logger.error("Failed to store scan %s: %s", state.job.id, exc, exc_info=True)

    async def _parse(self, state: _PipelineState) -> None:
        state.model = await self.parser.parse(state.job.spec_source)
        state.job.total_endpoints = state.model.total_endpoints
        logger.info("Parsed %d endpoints", state.model.total_endpoints)
        self._save(state)

    async def _static_analysis(self, state: _PipelineState) -> None:
        if not state.job.options.static_analysis or self.static_analyzer is None:
            return
        state.job.add_findings(self.static_analyzer.analyze(state.model))
        self._save(state)

    async def _acquire_token(self, state: _PipelineState) -> None:
        options = state.job.options
        if not (options.dynamic_testing or options.contract_validation):
            return
        if self.token_provider is None:
            return
        try:
            state.auth_token = await self.token_provider.get_access_token()
        except Exception as exc:
            logger.warning("Continuing without authentication: %s", exc)

    async def _dynamic_testing(self, state: _PipelineState) -> None:
        if not state.job.options.dynamic_testing:
            return
        findings = await self.dynamic_tester.test(
            state.model,
            state.job.base_url,
            state.auth_token,
            max_concurrency=state.job.options.max_concurrency,
        )
        state.job.add_findings(findings)
        self._save(state)

    async def _contract_validation(self, state: _PipelineState) -> None:
        if not state.job.options.contract_validation or self.contract_validator is None:
            return
        mismatches = await self.contract_validator.validate(
            state.model, state.job.base_url, state.auth_token
        )
        state.job.mismatches.extend(mismatches)
        self._save(state)

    async def _ai_triage(self, state: _PipelineState) -> None:
        job = state.job
        if not job.options.ai_analysis or self.triage is None or not job.findings:
            return
        findings = list(job.findings)
        try:
            findings = list(await self.triage.filter_false_positives(findings))
        except Exception as exc:
            logger.warning("False-positive filtering failed, keeping all findings: %s", exc)
        try:
            findings = list(await self.triage.analyze(findings))
        except Exception as exc:
            logger.warning("AI analysis failed, keeping severities: %s", exc)
        for finding in findings:
            if finding.recommendation:
                continue
            try:
                finding.recommendation = await self.triage.recommend(finding)
            except Exception as exc:
                logger.warning("No recommendation for %s: %s", finding.title, exc)
        job.findings = findings
        self._save(state)

    def _finalize(self, state: _PipelineState) -> None:
        job = state.job
        job.compute_statistics()
        job.complete(
            f"Analysis completed. Found {len(job.findings)} vulnerabilities and "
            f"{len(job.mismatches)} contract mismatches across {job.total_endpoints} endpoints."
        )
