"""APISentry CLI - OpenAPI-driven API security scanner."""

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from apisentry.ai import LLMClient
from apisentry.config import (
    get_auth_settings,
    get_db_path,
    get_http_timeout,
    get_llm_settings,
    get_rate_limit_settings,
)
from apisentry.errors import ConfigError
from apisentry.modules.auth import ClientCredentialsTokenProvider, StaticTokenProvider
from apisentry.modules.findings import Severity
from apisentry.modules.ratelimit import RateLimiter, RateLimitStats
from apisentry.modules.report import write_json_report
from apisentry.modules.scan import (
    ScanOptions,
    ScanSnapshot,
    ScanStatus,
    SqlReportStore,
    create_default_orchestrator,
)
from apisentry.tools.http import HTTPClient
from apisentry.utils.async_utils import safe_async_run

app = typer.Typer(
    name="apisentry",
    help="OpenAPI-driven API security scanner",
    no_args_is_help=True,
)
console = Console()

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def version() -> None:
    """Show the installed APISentry version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        current_version = pkg_version("apisentry")
    except PackageNotFoundError:
        current_version = "0.0.0+unknown"

    console.print(f"APISentry {current_version}")


async def _run_scan(
    spec: str,
    base_url: str,
    options: ScanOptions,
    token: str | None,
    db_path: Path,
) -> tuple[ScanSnapshot, RateLimitStats]:
    limiter = RateLimiter.from_settings(get_rate_limit_settings())
    store = SqlReportStore(db_path)

    token_provider = None
    if token:
        token_provider = StaticTokenProvider(token)
    else:
        auth_settings = get_auth_settings()
        if auth_settings.configured:
            token_provider = ClientCredentialsTokenProvider(auth_settings)

    async with HTTPClient(timeout=get_http_timeout()) as client:
        orchestrator = create_default_orchestrator(
            client,
            limiter,
            store=store,
            token_provider=token_provider,
            llm=LLMClient(get_llm_settings()),
            max_concurrency=options.max_concurrency,
        )
        scan_id = orchestrator.start_scan(spec, base_url, options)
        with console.status(f"[blue]Scanning {base_url}...[/blue]"):
            snapshot = await orchestrator.wait(scan_id)
    return snapshot, limiter.stats()


def _print_summary(snapshot: ScanSnapshot, stats: RateLimitStats) -> None:
    status_style = "green" if snapshot.status is ScanStatus.COMPLETED else "red"
    console.print(f"[{status_style}]{snapshot.status.value}[/{status_style}] {snapshot.summary}")

    if snapshot.findings:
        table = Table(title="Vulnerabilities")
        table.add_column("Severity")
        table.add_column("Category")
        table.add_column("Endpoint")
        table.add_column("Title")
        ordered = sorted(snapshot.findings, key=lambda f: f.severity.rank, reverse=True)
        for finding in ordered:
            style = SEVERITY_STYLES[finding.severity]
            table.add_row(
                f"[{style}]{finding.severity.value}[/{style}]",
                finding.category,
                f"{finding.method} {finding.endpoint}".strip(),
                finding.title,
            )
        console.print(table)

    if snapshot.mismatches:
        table = Table(title="Contract mismatches")
        table.add_column("Kind")
        table.add_column("Endpoint")
        table.add_column("Expected")
        table.add_column("Actual")
        for mismatch in snapshot.mismatches:
            table.add_row(
                mismatch.kind.value,
                f"{mismatch.method} {mismatch.endpoint}",
                mismatch.expected,
                mismatch.actual,
            )
        console.print(table)

    console.print(
        f"[dim]{stats.total_requests} requests, {stats.rate_limit_hits} rate-limited "
        f"({stats.hit_rate:.1%})[/dim]"
    )


@app.command()
def scan(
    spec: str = typer.Argument(..., help="OpenAPI document: URL, file path or raw JSON/YAML"),
    base_url: str = typer.Option(..., "--base-url", "-u", help="Base URL of the target API"),
    static: bool = typer.Option(True, "--static/--no-static", help="Run static rules"),
    dynamic: bool = typer.Option(False, "--dynamic", help="Probe the live API"),
    contract: bool = typer.Option(False, "--contract", help="Validate response contracts"),
    ai: bool = typer.Option(True, "--ai/--no-ai", help="Triage findings with the LLM"),
    token: str | None = typer.Option(None, "--token", help="Bearer token for the target API"),
    concurrency: int = typer.Option(10, "--concurrency", "-c", help="Paths probed in parallel"),
    timeout_ms: int = typer.Option(300000, "--timeout-ms", help="Overall scan time limit"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write a JSON report"),
    db: Path | None = typer.Option(None, "--db", help="SQLite file for scan results"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Scan an API described by an OpenAPI document."""
    _configure_logging(verbose)
    options = ScanOptions(
        static_analysis=static,
        dynamic_testing=dynamic,
        contract_validation=contract,
        ai_analysis=ai,
        max_concurrency=max(1, concurrency),
        timeout_ms=timeout_ms,
    )

    try:
        snapshot, stats = safe_async_run(
            _run_scan(spec, base_url, options, token, db or get_db_path())
        )
    except ConfigError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        raise typer.Exit(2)

    _print_summary(snapshot, stats)
    if output:
        path = write_json_report(output, snapshot, stats)
        console.print(f"[green]Report written to {path}[/green]")

    if snapshot.status is not ScanStatus.COMPLETED:
        raise typer.Exit(1)


@app.command()
def history(
    db: Path | None = typer.Option(None, "--db", help="SQLite file for scan results"),
    scan_id: str | None = typer.Argument(None, help="Show the stored report for one scan"),
) -> None:
    """List stored scans, or print one stored report as JSON."""
    store = SqlReportStore(db or get_db_path())
    if scan_id:
        report = store.get(scan_id)
        if report is None:
            console.print(f"[red]No stored scan with id {scan_id}[/red]")
            raise typer.Exit(1)
        console.print_json(json.dumps(report))
        return

    table = Table(title="Scan history")
    table.add_column("ID")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Summary")
    for stored_id in store.list_ids():
        report = store.get(stored_id) or {}
        table.add_row(
            stored_id,
            report.get("status", ""),
            report.get("started_at") or "",
            report.get("summary", ""),
        )
    console.print(table)


def main():
    """Entry point for the CLI."""
    app()
