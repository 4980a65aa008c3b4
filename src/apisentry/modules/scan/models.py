"""Scan job state, options and read-only snapshots."""

import copy
import uuid
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from apisentry.errors import InvalidTransitionError
from apisentry.modules.findings import ContractMismatch, Vulnerability


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


class ScanStatus(Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED)


_TRANSITIONS: dict[ScanStatus, frozenset[ScanStatus]] = {
    ScanStatus.PENDING: frozenset({ScanStatus.RUNNING}),
    ScanStatus.RUNNING: frozenset(
        {ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED}
    ),
    ScanStatus.COMPLETED: frozenset(),
    ScanStatus.FAILED: frozenset(),
    ScanStatus.CANCELLED: frozenset(),
}


@dataclass
class ScanOptions:
    """Which pipeline stages a scan runs."""

    static_analysis: bool = False
    dynamic_testing: bool = False
    contract_validation: bool = False
    ai_analysis: bool = True
    max_concurrency: int = 10
    timeout_ms: int = 300000

    def describe(self) -> str:
        enabled = []
        if self.static_analysis:
            enabled.append("Static analysis")
        if self.dynamic_testing:
            enabled.append("Dynamic testing")
        if self.contract_validation:
            enabled.append("Contract validation")
        if self.ai_analysis:
            enabled.append("AI analysis")
        return ", ".join(enabled) if enabled else "Specification parsing only"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScanSnapshot:
    """Immutable copy of a job's observable state."""

    id: str
    spec_source: str
    base_url: str
    options: ScanOptions
    status: ScanStatus
    started_at: datetime | None
    ended_at: datetime | None
    duration_ms: int | None
    findings: tuple[Vulnerability, ...]
    mismatches: tuple[ContractMismatch, ...]
    total_endpoints: int
    tested_endpoints: int
    severity_counts: tuple[tuple[str, int], ...]
    category_counts: tuple[tuple[str, int], ...]
    summary: str
    error: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "spec_source": self.spec_source,
            "base_url": self.base_url,
            "options": self.options.to_dict(),
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "total_endpoints": self.total_endpoints,
            "tested_endpoints": self.tested_endpoints,
            "severity_counts": dict(self.severity_counts),
            "category_counts": dict(self.category_counts),
            "summary": self.summary,
            "error": self.error,
            "vulnerabilities": [finding.to_dict() for finding in self.findings],
            "contract_mismatches": [mismatch.to_dict() for mismatch in self.mismatches],
        }


@dataclass
class ScanJob:
    """Mutable state of one scan, written only by its pipeline task."""

    spec_source: str
    base_url: str
    options: ScanOptions = field(default_factory=ScanOptions)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: ScanStatus = ScanStatus.PENDING
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_ms: int | None = None
    findings: list[Vulnerability] = field(default_factory=list)
    mismatches: list[ContractMismatch] = field(default_factory=list)
    total_endpoints: int = 0
    tested_endpoints: int = 0
    severity_counts: dict[str, int] = field(default_factory=dict)
    category_counts: dict[str, int] = field(default_factory=dict)
    summary: str = ""
    error: str | None = None

    def _move(self, target: ScanStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, target.value)
        self.status = target

    def start(self) -> None:
        self._move(ScanStatus.RUNNING)
        self.started_at = _utc_now()

    def complete(self, summary: str) -> None:
        self._move(ScanStatus.COMPLETED)
        self.summary = summary
        self._finish()

    def fail(self, message: str) -> None:
        self._move(ScanStatus.FAILED)
        self.error = message
        self.summary = f"Analysis failed: {message}"
        self._finish()

    def cancel(self) -> None:
        self._move(ScanStatus.CANCELLED)
        self.summary = "Analysis cancelled"
        self._finish()

    def _finish(self) -> None:
        self.ended_at = _utc_now()
        if self.started_at is not None:
            self.duration_ms = _elapsed_ms(self.started_at, self.ended_at)

    def add_findings(self, findings: list[Vulnerability]) -> None:
        if self.status is not ScanStatus.RUNNING:
            raise InvalidTransitionError(self.status.value, "append findings")
        self.findings.extend(findings)

    def compute_statistics(self) -> None:
        self.severity_counts = dict(Counter(f.severity.value for f in self.findings))
        self.category_counts = dict(Counter(f.category for f in self.findings))
        self.tested_endpoints = len({f.endpoint for f in self.findings if f.endpoint})

    def snapshot(self) -> ScanSnapshot:
        return ScanSnapshot(
            id=self.id,
            spec_source=self.spec_source,
            base_url=self.base_url,
            options=copy.copy(self.options),
            status=self.status,
            started_at=self.started_at,
            ended_at=self.ended_at,
            duration_ms=self.duration_ms,
            findings=tuple(copy.deepcopy(self.findings)),
            mismatches=tuple(copy.deepcopy(self.mismatches)),
            total_endpoints=self.total_endpoints,
            tested_endpoints=self.tested_endpoints,
            severity_counts=tuple(sorted(self.severity_counts.items())),
            category_counts=tuple(sorted(self.category_counts.items())),
            summary=self.summary,
            error=self.error,
        )


@dataclass
class HistoryRecord:
    """Registry entry describing one scan, live or finished."""

    scan_id: str
    spec_source: str
    base_url: str
    options: ScanOptions
    status: ScanStatus
    started_at: datetime
    ended_at: datetime | None = None
    duration_ms: int | None = None

    @property
    def description(self) -> str:
        return self.options.describe()

    def current_duration_ms(self, now: datetime | None = None) -> int | None:
        if self.status is ScanStatus.RUNNING:
            return _elapsed_ms(self.started_at, now or _utc_now())
        return self.duration_ms

    def mark_cancelled(self) -> None:
        self.status = ScanStatus.CANCELLED
        self.ended_at = _utc_now()
        self.duration_ms = _elapsed_ms(self.started_at, self.ended_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "spec_source": self.spec_source,
            "base_url": self.base_url,
            "status": self.status.value,
            "description": self.description,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.current_duration_ms(),
        }
