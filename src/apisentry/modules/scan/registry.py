"""Shared index of live scan handles and scan history."""

import asyncio
import copy
import logging
import threading
from dataclasses import dataclass, field

from .contracts import ReportStore
from .models import HistoryRecord, ScanSnapshot, ScanStatus

logger = logging.getLogger(__name__)


@dataclass
class CancellationHandle:
    """Cooperative cancellation token for one running scan."""

    event: asyncio.Event = field(default_factory=asyncio.Event)
    deleted: bool = False

    @property
    def cancelled(self) -> bool:
        return self.event.is_set()


class ScanRegistry:
    """Maps scan ids to live handles and history records.

    Both maps are guarded by one lock. Readers always receive copies.
    """

    def __init__(self, store: ReportStore | None = None):
        self.store = store
        self._lock = threading.Lock()
        self._handles: dict[str, CancellationHandle] = {}
        self._history: dict[str, HistoryRecord] = {}

    def register(self, scan_id: str, handle: CancellationHandle) -> None:
        with self._lock:
            self._handles[scan_id] = handle

    def record(self, history: HistoryRecord) -> None:
        with self._lock:
            self._history[history.scan_id] = history

    def update(self, snapshot: ScanSnapshot) -> None:
        """Copy terminal status and timing from a job snapshot into history."""
        with self._lock:
            history = self._history.get(snapshot.id)
            if history is None or history.status is ScanStatus.CANCELLED:
                return
            history.status = snapshot.status
            history.ended_at = snapshot.ended_at
            history.duration_ms = snapshot.duration_ms

    def finish(self, scan_id: str) -> None:
        with self._lock:
            self._handles.pop(scan_id, None)

    def cancel(self, scan_id: str) -> bool:
        """Signal a live scan to stop. Returns True once per live scan."""
        with self._lock:
            handle = self._handles.pop(scan_id, None)
            if handle is None:
                return False
            handle.event.set()
            history = self._history.get(scan_id)
            if history is not None:
                history.mark_cancelled()
        logger.info("Scan %s cancelled", scan_id)
        return True

    def delete(self, scan_id: str) -> bool:
        with self._lock:
            handle = self._handles.pop(scan_id, None)
            history = self._history.pop(scan_id, None)
            if handle is not None:
                handle.deleted = True
                handle.event.set()
        removed = handle is not None or history is not None
        if self.store is not None:
            removed = self.store.delete(scan_id) or removed
        return removed

    def list_history(self) -> list[HistoryRecord]:
        """All known scans, most recently started first."""
        with self._lock:
            records = [copy.copy(record) for record in self._history.values()]
        for record in records:
            record.duration_ms = record.current_duration_ms()
        return sorted(records, key=lambda record: record.started_at, reverse=True)
