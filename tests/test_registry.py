"""Tests for the scan registry."""

import threading
from datetime import UTC, datetime, timedelta

from apisentry.modules.scan import (
    CancellationHandle,
    HistoryRecord,
    InMemoryReportStore,
    ScanJob,
    ScanOptions,
    ScanRegistry,
    ScanStatus,
)


def _record(scan_id: str, started_at: datetime | None = None) -> HistoryRecord:
    return HistoryRecord(
        scan_id=scan_id,
        spec_source="spec",
        base_url="http://api.test",
        options=ScanOptions(),
        status=ScanStatus.RUNNING,
        started_at=started_at or datetime.now(UTC),
    )


def _history(registry: ScanRegistry, scan_id: str) -> HistoryRecord | None:
    return next((h for h in registry.list_history() if h.scan_id == scan_id), None)


def _registered(registry: ScanRegistry, scan_id: str, **kwargs) -> CancellationHandle:
    handle = CancellationHandle()
    registry.record(_record(scan_id, **kwargs))
    registry.register(scan_id, handle)
    return handle


class TestScanRegistry:
    def test_cancel_sets_event_once(self):
        registry = ScanRegistry()
        handle = _registered(registry, "s1")

        assert registry.cancel("s1") is True
        assert handle.cancelled
        assert registry.cancel("s1") is False
        assert _history(registry, "s1").status is ScanStatus.CANCELLED

    def test_cancel_unknown(self):
        assert ScanRegistry().cancel("nope") is False

    def test_update_does_not_override_cancelled(self):
        registry = ScanRegistry()
        _registered(registry, "s1")
        registry.cancel("s1")
        job = ScanJob(spec_source="spec", base_url="http://api.test", id="s1")
        job.start()
        job.complete("done")

        registry.update(job.snapshot())

        assert _history(registry, "s1").status is ScanStatus.CANCELLED

    def test_update_copies_terminal_state(self):
        registry = ScanRegistry()
        _registered(registry, "s1")
        job = ScanJob(spec_source="spec", base_url="http://api.test", id="s1")
        job.start()
        job.fail("boom")

        registry.update(job.snapshot())
        registry.finish("s1")

        history = _history(registry, "s1")
        assert history.status is ScanStatus.FAILED
        assert history.duration_ms == job.duration_ms
        assert registry.cancel("s1") is False

    def test_history_returns_copies(self):
        registry = ScanRegistry()
        _registered(registry, "s1")

        _history(registry, "s1").status = ScanStatus.COMPLETED

        assert _history(registry, "s1").status is ScanStatus.RUNNING

    def test_list_history_newest_first_with_live_duration(self):
        registry = ScanRegistry()
        now = datetime.now(UTC)
        _registered(registry, "old", started_at=now - timedelta(minutes=5))
        _registered(registry, "new", started_at=now - timedelta(seconds=1))

        history = registry.list_history()

        assert [record.scan_id for record in history] == ["new", "old"]
        assert history[1].duration_ms >= 5 * 60 * 1000

    def test_delete_signals_and_drops_report(self):
        store = InMemoryReportStore()
        registry = ScanRegistry(store=store)
        handle = _registered(registry, "s1")
        job = ScanJob(spec_source="spec", base_url="http://api.test", id="s1")
        store.save(job.snapshot())

        assert registry.delete("s1") is True
        assert handle.cancelled
        assert handle.deleted
        assert _history(registry, "s1") is None
        assert store.get("s1") is None
        assert registry.delete("s1") is False

    def test_concurrent_cancel_succeeds_once(self):
        registry = ScanRegistry()
        _registered(registry, "s1")
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(registry.cancel("s1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
