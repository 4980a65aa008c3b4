"""Tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from apisentry.cli import app

runner = CliRunner()

SPEC_YAML = """
openapi: 3.0.0
info:
  title: Orders
  version: "1.0"
paths:
  /orders/{orderId}:
    get:
      responses:
        "200":
          description: One order
  /payments:
    post:
      responses:
        "201":
          description: Created
"""


def _spec_file(temp_dir: Path) -> Path:
    path = temp_dir / "openapi.yaml"
    path.write_text(SPEC_YAML)
    return path


class TestCLI:
    """Test the scan, history and version commands."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "APISentry" in result.output

    def test_static_scan_writes_report_and_history(self, temp_dir: Path, db_path: Path):
        output = temp_dir / "reports" / "scan.json"

        result = runner.invoke(
            app,
            [
                "scan",
                str(_spec_file(temp_dir)),
                "--base-url",
                "http://api.test",
                "--no-ai",
                "--db",
                str(db_path),
                "--output",
                str(output),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "COMPLETED" in result.output
        report = json.loads(output.read_text())
        assert report["status"] == "COMPLETED"
        assert report["total_endpoints"] == 2
        categories = {v["category"] for v in report["vulnerabilities"]}
        assert {"API1:2023", "API6:2023"} <= categories
        assert report["rate_limit_stats"]["total_requests"] == 0

        listing = runner.invoke(app, ["history", "--db", str(db_path)])
        assert listing.exit_code == 0
        assert "Scan history" in listing.output

        shown = runner.invoke(app, ["history", report["id"], "--db", str(db_path)])
        assert shown.exit_code == 0
        assert report["id"] in shown.output

    def test_missing_spec_fails(self, temp_dir: Path, db_path: Path):
        result = runner.invoke(
            app,
            [
                "scan",
                str(temp_dir / "missing.yaml"),
                "-u",
                "http://api.test",
                "--no-ai",
                "--db",
                str(db_path),
            ],
        )

        assert result.exit_code == 1
        assert "FAILED" in result.output

    def test_bad_configuration_exits_with_2(self, monkeypatch, temp_dir: Path, db_path: Path):
        monkeypatch.setenv("APISENTRY_RATE_LIMIT_DELAY_MS", "fast")

        result = runner.invoke(
            app,
            ["scan", str(_spec_file(temp_dir)), "-u", "http://api.test", "--db", str(db_path)],
        )

        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_history_unknown_id(self, db_path: Path):
        result = runner.invoke(app, ["history", "nope", "--db", str(db_path)])

        assert result.exit_code == 1
