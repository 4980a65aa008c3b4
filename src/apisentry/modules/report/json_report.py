"""JSON report rendering."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from apisentry.modules.ratelimit import RateLimitStats
from apisentry.modules.scan.models import ScanSnapshot


def _tool_version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("apisentry")
    except PackageNotFoundError:
        return "0.0.0+unknown"


def build_report(
    snapshot: ScanSnapshot, rate_limit_stats: RateLimitStats | None = None
) -> dict[str, Any]:
    """Return the report as a JSON-ready mapping."""
    report = snapshot.to_dict()
    report["report_metadata"] = {
        "generated_at": datetime.now(UTC).isoformat(),
        "tool": "APISentry",
        "version": _tool_version(),
        "description": snapshot.options.describe(),
    }
    if rate_limit_stats is not None:
        report["rate_limit_stats"] = rate_limit_stats.to_dict()
    return report


def write_json_report(
    path: Path, snapshot: ScanSnapshot, rate_limit_stats: RateLimitStats | None = None
) -> Path:
    """Write the report to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    report = build_report(snapshot, rate_limit_stats)
    path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    return path
