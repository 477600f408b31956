"""CLI entry point."""

from __future__ import annotations

# Set certifi CA bundle for SSL before any HTTP libs load
import os

import certifi

os.environ.setdefault("SSL_CERT_FILE", certifi.where())

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import Any, Sequence

import aiosqlite
from rich.console import Console
from rich.table import Table

from analysis_worker.config.loader import is_local_development, load_settings
from analysis_worker.db.database import get_db
from analysis_worker.db.repositories import SqliteCallStore
from analysis_worker.exceptions import ConfigError, StoreError
from analysis_worker.models import (
    CallRow,
    CycleReport,
    EligibilityStats,
    ScoreResult,
    SettingsConfig,
    WorkerStatus,
)
from analysis_worker.orchestration.batch_processor import BatchProcessor
from analysis_worker.orchestration.eligibility import EligibilityResolver
from analysis_worker.orchestration.scheduler import AnalysisScheduler
from analysis_worker.scoring.http_client import HttpScoringClient
from analysis_worker.store.base import ENABLED_FLAG_KEY
from analysis_worker.utils import structured_log
from analysis_worker.utils.logging_config import LogLevel, setup_logging


def _build_scheduler(
    settings: SettingsConfig,
    db: aiosqlite.Connection,
    console: Console | None = None,
) -> AnalysisScheduler:
    store = SqliteCallStore(db)
    resolver = EligibilityResolver(
        store,
        settings.eligibility,
        page_size=settings.pagination.page_size,
        max_pages=settings.pagination.max_pages,
    )
    scorer = HttpScoringClient(
        settings.scoring.base_url,
        timeout=settings.scoring.timeout,
        verify_ssl=settings.scoring.verify_ssl,
    )
    processor = BatchProcessor(
        store,
        scorer,
        retry_policy=settings.retry.analysis,
        scoring_timeout=settings.scoring.timeout,
    )

    on_progress = None
    if console is not None:

        def on_progress(position: int, total: int, label: str) -> None:
            console.print(f"[dim]Analyzing {position}/{total}:[/] {label}")

    return AnalysisScheduler(
        resolver,
        processor,
        store,
        config=settings.worker,
        criteria=settings.eligibility,
        local_development=is_local_development(),
        on_progress=on_progress,
    )


def _print_cycle_report(console: Console, report: CycleReport | None) -> None:
    if report is None:
        console.print("[yellow]A cycle is already running.[/]")
        return
    table = Table(title="Analysis Cycle")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Candidates", str(report.candidates))
    table.add_row("Rejected by quality", str(report.rejected_by_quality))
    table.add_row("Processed", str(report.processed))
    table.add_row("Successful", str(report.successful))
    table.add_row("Failed", str(report.failed))
    if report.error:
        table.add_row("Error", f"[red]{report.error}[/]")
    if report.started_at and report.finished_at:
        elapsed = (report.finished_at - report.started_at).total_seconds()
        table.add_row("Elapsed", f"{elapsed:.1f}s")
    console.print(table)


def _print_worker_status(console: Console, status: WorkerStatus) -> None:
    table = Table(title="Worker Status")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Running", str(status.is_running))
    table.add_row("Total processed", str(status.total_processed))
    table.add_row("Successful", str(status.successful))
    table.add_row("Failed", str(status.failed))
    table.add_row("Last run", status.last_run.isoformat() if status.last_run else "never")
    table.add_row("Retries", f"{status.retry.total_retries} (avg attempts {status.retry.average_attempts:.2f})")
    console.print(table)


def _print_eligibility(console: Console, stats: EligibilityStats) -> None:
    table = Table(title="Eligibility Funnel")
    table.add_column("Stage", style="cyan", no_wrap=True)
    table.add_column("Calls", style="white", justify="right")
    for label, value in [
        ("Total", stats.total_calls),
        ("Answered", stats.calls_answered),
        ("With transcript", stats.calls_with_transcription),
        ("Over minimum duration", stats.calls_over_min_duration),
        ("With minimum segments", stats.calls_with_min_segments),
        ("Eligible", stats.calls_eligible),
        ("Already analyzed", stats.calls_already_analyzed),
        ("Needing analysis", stats.calls_needing_analysis),
        ("With score", stats.calls_with_score),
    ]:
        table.add_row(label, str(value))
    console.print(table)


async def _run_worker(settings: SettingsConfig, console: Console) -> int:
    structured_log.bind_worker(uuid.uuid4().hex[:8])
    async with get_db(settings.store.db_path) as db:
        scheduler = _build_scheduler(settings, db, console)
        await scheduler.start()
        if not scheduler.is_running:
            console.print(f"[yellow]Worker is disabled.[/] Enable it with `config --enabled` ({ENABLED_FLAG_KEY}).")
            return 1
        console.print(f"[green]Worker running[/] every {scheduler.config.interval:.0f}s. Press Ctrl+C to stop.")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()
            await scheduler.wait_idle()
            _print_worker_status(console, scheduler.get_stats())
    return 0


async def _run_once(settings: SettingsConfig, console: Console) -> int:
    structured_log.bind_worker(uuid.uuid4().hex[:8])
    async with get_db(settings.store.db_path) as db:
        scheduler = _build_scheduler(settings, db, console)
        await scheduler.load_persisted_config()
        report = await scheduler.run_cycle()
        _print_cycle_report(console, report)
        return 1 if report is None or report.error else 0


async def _run_stats(settings: SettingsConfig, console: Console) -> int:
    async with get_db(settings.store.db_path) as db:
        scheduler = _build_scheduler(settings, db)
        await scheduler.load_persisted_config()
        criteria = settings.eligibility.model_copy(
            update={"min_duration_seconds": scheduler.config.min_duration}
        )
        stats = await scheduler.resolver.summarize(criteria=criteria)
    _print_eligibility(console, stats)
    return 0


async def _run_config(settings: SettingsConfig, args: argparse.Namespace, console: Console) -> int:
    updates: dict[str, Any] = {}
    if args.enabled is not None:
        updates["enabled"] = args.enabled
    for field in ("interval", "batch_size", "min_duration", "max_retries"):
        value = getattr(args, field)
        if value is not None:
            updates[field] = value

    async with get_db(settings.store.db_path) as db:
        scheduler = _build_scheduler(settings, db)
        await scheduler.load_persisted_config()
        config = await scheduler.update_config(updates) if updates else scheduler.config
        if args.enabled is not None:
            await scheduler.settings_store.put_setting(
                ENABLED_FLAG_KEY, "true" if args.enabled else "false"
            )
        flag = await scheduler.settings_store.get_setting(ENABLED_FLAG_KEY)

    table = Table(title="Worker Config")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in config.model_dump().items():
        table.add_row(key, str(value))
    table.add_row(ENABLED_FLAG_KEY, str(flag))
    console.print(table)
    return 0


def _read_seed_file(path: str) -> tuple[list[CallRow], list[tuple[str, ScoreResult]]]:
    """Read calls plus optional prior analyses from a JSON seed file.

    The file is either a list of call rows or an object with "calls" and
    an optional "analyses" list of {"call_id", "final_grade", ...} entries.
    """
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing seed file: {path}")
    data = json.loads(resolved.read_text(encoding="utf-8"))
    analyses: list = []
    if isinstance(data, dict):
        analyses = data.get("analyses", [])
        data = data.get("calls", [])
    if not isinstance(data, list) or not isinstance(analyses, list):
        raise ValueError(f"Expected lists of calls and analyses in {path}")
    rows = [CallRow.model_validate(item) for item in data]
    results = []
    for item in analyses:
        if not isinstance(item, dict) or not item.get("call_id"):
            raise ValueError(f"Analysis entry without call_id in {path}")
        fields = {k: v for k, v in item.items() if k != "call_id"}
        results.append((str(item["call_id"]), ScoreResult.model_validate(fields)))
    return rows, results


async def _run_seed(settings: SettingsConfig, path: str, console: Console) -> int:
    rows, analyses = _read_seed_file(path)
    async with get_db(settings.store.db_path) as db:
        store = SqliteCallStore(db)
        written = await store.insert_calls(rows)
        for call_id, result in analyses:
            await store.save_analysis(call_id, result)
    console.print(
        f"[green]Imported {written} call(s) and {len(analyses)} analysis result(s)[/] into {settings.store.db_path}"
    )
    return 0


def _run_history(settings: SettingsConfig, limit: int, console: Console) -> int:
    jsonl_path = str(Path(settings.logging.log_dir) / "app.jsonl")
    events = structured_log.load_events_from_jsonl(jsonl_path)
    if not events:
        console.print(f"[dim]No events recorded in {jsonl_path}[/]")
        return 0
    table = Table(title=f"Last {min(limit, len(events))} events")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Type", style="cyan")
    table.add_column("Details", style="white")
    for event in events[-limit:]:
        details = {k: v for k, v in event.items() if k not in ("type", "ts")}
        table.add_row(str(event.get("ts", "")), event["type"], json.dumps(details, default=str))
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="analysis-worker",
        description="Background worker that scores eligible call transcripts.",
    )
    parser.add_argument("--settings", default="config/settings.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Per-attempt and per-call logging")
    parser.add_argument("--debug", "-d", action="store_true", help="Verbose plus module names in log lines")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Start the scheduler and run until interrupted")
    sub.add_parser("once", help="Run a single cycle regardless of the enabled flag")
    sub.add_parser("stats", help="Show the eligibility funnel")

    config = sub.add_parser("config", help="Update and persist the worker config")
    toggle = config.add_mutually_exclusive_group()
    toggle.add_argument("--enabled", dest="enabled", action="store_true", default=None)
    toggle.add_argument("--disabled", dest="enabled", action="store_false", default=None)
    config.add_argument("--interval", type=float, help="Seconds between cycles")
    config.add_argument("--batch-size", type=int)
    config.add_argument("--min-duration", type=int, help="Minimum call duration in seconds")
    config.add_argument("--max-retries", type=int, help="Scoring attempts per call")

    seed = sub.add_parser("seed", help="Import call rows from a JSON file")
    seed.add_argument("path")

    history = sub.add_parser("history", help="Show recent audit-trail events")
    history.add_argument("--limit", type=int, default=20)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    console = Console()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(args.settings)
        setup_logging(
            LogLevel(settings.logging.level),
            log_to_file=args.command == "run",
            log_file=str(Path(settings.logging.log_dir) / "worker.log"),
            verbose=args.verbose,
            debug=args.debug,
        )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 2
    if args.command in ("run", "once"):
        structured_log.configure_run_logging(settings.logging.log_dir)

    try:
        if args.command == "run":
            try:
                return asyncio.run(_run_worker(settings, console))
            except KeyboardInterrupt:
                console.print("[dim]Stopped.[/]")
                return 0
        if args.command == "once":
            return asyncio.run(_run_once(settings, console))
        if args.command == "stats":
            return asyncio.run(_run_stats(settings, console))
        if args.command == "config":
            return asyncio.run(_run_config(settings, args, console))
        if args.command == "seed":
            return asyncio.run(_run_seed(settings, args.path, console))
        if args.command == "history":
            return _run_history(settings, args.limit, console)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 2
    except (StoreError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 1

    console.print(f"Unknown command '{args.command}'.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
