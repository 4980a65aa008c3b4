"""Scan jobs, their registry and the orchestrating pipeline."""

from .factory import create_default_orchestrator
from .models import HistoryRecord, ScanJob, ScanOptions, ScanSnapshot, ScanStatus
from .orchestrator import ScanOrchestrator
from .registry import CancellationHandle, ScanRegistry
from .store import InMemoryReportStore, SqlReportStore

__all__ = [
    "CancellationHandle",
    "HistoryRecord",
    "InMemoryReportStore",
    "ScanJob",
    "ScanOptions",
    "ScanOrchestrator",
    "ScanRegistry",
    "ScanSnapshot",
    "ScanStatus",
    "SqlReportStore",
    "create_default_orchestrator",
]
