"""Sinks receiving scan snapshots after every pipeline stage."""

import json
import logging
import threading
from pathlib import Path
from typing import Any

from apisentry.db.init import get_session, init_db
from apisentry.db.models import FindingRecord, ScanRecord

from .models import ScanSnapshot

logger = logging.getLogger(__name__)


class InMemoryReportStore:
    """Keeps the latest snapshot of each scan in a dict."""

    def __init__(self):
        self._lock = threading.Lock()
        self._reports: dict[str, ScanSnapshot] = {}

    def save(self, snapshot: ScanSnapshot) -> None:
        with self._lock:
            self._reports[snapshot.id] = snapshot

    def get(self, scan_id: str) -> dict[str, Any] | None:
        with self._lock:
            snapshot = self._reports.get(scan_id)
        return snapshot.to_dict() if snapshot else None

    def snapshot(self, scan_id: str) -> ScanSnapshot | None:
        with self._lock:
            return self._reports.get(scan_id)

    def delete(self, scan_id: str) -> bool:
        with self._lock:
            return self._reports.pop(scan_id, None) is not None


class SqlReportStore:
    """Persist snapshots to a SQLite database through SQLAlchemy."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        init_db(db_path)

    def save(self, snapshot: ScanSnapshot) -> None:
        session = get_session(self.db_path)
        try:
            record = session.get(ScanRecord, snapshot.id)
            if record is None:
                record = ScanRecord(id=snapshot.id)
                session.add(record)
            record.spec_source = snapshot.spec_source
            record.base_url = snapshot.base_url
            record.status = snapshot.status.value
            record.started_at = snapshot.started_at
            record.ended_at = snapshot.ended_at
            record.duration_ms = snapshot.duration_ms
            record.total_endpoints = snapshot.total_endpoints
            record.tested_endpoints = snapshot.tested_endpoints
            record.summary = snapshot.summary
            record.report_json = json.dumps(snapshot.to_dict())
            record.findings = [
                FindingRecord(
                    finding_id=finding.id,
                    category=finding.category,
                    title=finding.title,
                    severity=finding.severity.value,
                    endpoint=finding.endpoint,
                    method=finding.method,
                    parameter=finding.parameter,
                    evidence=finding.evidence,
                    recommendation=finding.recommendation,
                )
                for finding in snapshot.findings
            ]
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, scan_id: str) -> dict[str, Any] | None:
        session = get_session(self.db_path)
        try:
            record = session.get(ScanRecord, scan_id)
            if record is None or not record.report_json:
                return None
            return json.loads(record.report_json)
        finally:
            session.close()

    def list_ids(self) -> list[str]:
        session = get_session(self.db_path)
        try:
            rows = session.query(ScanRecord).order_by(ScanRecord.started_at.desc()).all()
            return [row.id for row in rows]
        finally:
            session.close()

    def delete(self, scan_id: str) -> bool:
        session = get_session(self.db_path)
        try:
            record = session.get(ScanRecord, scan_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            logger.debug("Deleted stored report %s", scan_id)
            return True
        finally:
            session.close()
