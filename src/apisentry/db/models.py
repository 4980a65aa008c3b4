"""Database models for APISentry using SQLAlchemy."""

from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship


def _utc_now() -> datetime:
    return datetime.now(UTC)


Base = declarative_base()


class ScanRecord(Base):
    """Latest persisted state of one scan."""

    __tablename__ = "scans"

    id = Column(String, primary_key=True)
    spec_source = Column(Text, nullable=False, default="")
    base_url = Column(String, nullable=False, default="")
    status = Column(String, nullable=False)  # PENDING, RUNNING, COMPLETED, FAILED, CANCELLED
    started_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True))
    duration_ms = Column(Integer)
    total_endpoints = Column(Integer, default=0)
    tested_endpoints = Column(Integer, default=0)
    summary = Column(Text, default="")
    report_json = Column(Text)
    updated_at = Column(DateTime(timezone=True), default=_utc_now, onupdate=_utc_now)

    # Relationship
    findings = relationship("FindingRecord", back_populates="scan", cascade="all, delete-orphan")


class FindingRecord(Base):
    """One vulnerability reported by a scan."""

    __tablename__ = "findings"

    id = Column(Integer, primary_key=True)
    scan_id = Column(String, ForeignKey("scans.id"), nullable=False)

    finding_id = Column(String, nullable=False)
    category = Column(String, nullable=False)  # API1:2023 ... API10:2023
    title = Column(String, nullable=False)
    severity = Column(String, nullable=False)  # LOW, MEDIUM, HIGH, CRITICAL
    endpoint = Column(String, nullable=False)
    method = Column(String, nullable=False)
    parameter = Column(String)
    evidence = Column(Text)
    recommendation = Column(Text)

    created_at = Column(DateTime(timezone=True), default=_utc_now)

    scan = relationship("ScanRecord", back_populates="findings")
