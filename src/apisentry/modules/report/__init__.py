"""Scan report generation."""

from .json_report import build_report, write_json_report

__all__ = ["build_report", "write_json_report"]
