from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from dataseed.api.definition import PipelineDefinition, load_definition
from dataseed.api.pipeline import Pipeline, build_pipeline
from dataseed.core.config import Settings, get_settings
from dataseed.core.errors import SeedingError, StrategyNotFound
from dataseed.core.logging import setup_logging
from dataseed.orchestration.orchestrator import RunOutcome, SeedingOrchestrator

console = Console()

T = TypeVar("T")


def _common_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--definition", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
                     help="JSON pipeline definition (sources, strategies, schemas, engines)"),
        click.option("--store", type=str, default=None, help="DuckDB database file (default: in-memory)"),
        click.option("--out-root", type=click.Path(file_okay=False, path_type=Path), default=None,
                     help="Root directory for file-transport deliveries"),
        click.option("--journal", type=click.Path(dir_okay=False, path_type=Path), default=None,
                     help="JSONL run journal path"),
        click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
                     default=None, help="Logging level"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def _settings(
    definition: Path | None,
    store: str | None,
    out_root: Path | None,
    journal: Path | None,
    log_level: str | None,
) -> Settings:
    base = get_settings()
    overrides: dict[str, Any] = {}
    if definition is not None:
        overrides["definition_path"] = definition
    if store is not None:
        overrides["store_path"] = store
    if out_root is not None:
        overrides["out_root"] = out_root
    if journal is not None:
        overrides["journal_path"] = journal
    if log_level is not None:
        overrides["log_level"] = log_level.upper()
    return dataclasses.replace(base, **overrides)


def _pipeline(settings: Settings) -> Pipeline:
    setup_logging(settings, console=console)
    definition: PipelineDefinition | None = None
    if settings.definition_path is not None:
        try:
            definition = load_definition(settings.definition_path)
        except ValidationError as e:
            raise click.ClickException(f"invalid pipeline definition {settings.definition_path}:\n{e}") from e
    try:
        return build_pipeline(settings, definition)
    except (SeedingError, ValueError) as e:
        raise click.ClickException(str(e)) from e


async def _with_progress(orch: SeedingOrchestrator, work: Awaitable[T]) -> T:
    """Await `work` while rendering the orchestrator's phase and progress."""
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]seeding[/]"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        TextColumn(" • {task.description}"),
        console=console,
        transient=False,
        expand=True,
    )
    with progress:
        task_id = progress.add_task("Ready", total=100)
        run = asyncio.ensure_future(work)
        while not run.done():
            st = orch.get_status()
            progress.update(task_id, completed=st.progress, description=f"{st.phase}: {st.current_step}")
            await asyncio.wait({run}, timeout=0.2)
        st = orch.get_status()
        progress.update(task_id, completed=st.progress, description=f"{st.phase}: {st.current_step}")
    return run.result()


def _print_outcome(outcome: RunOutcome) -> None:
    colour = "green" if outcome.success else "red"
    console.print(f"[bold {colour}]{outcome.message}[/]")
    if outcome.collection:
        table = Table(title="Collection", show_lines=False)
        table.add_column("source")
        table.add_column("ok")
        table.add_column("records", justify="right")
        table.add_column("quality", justify="right")
        table.add_column("attempts", justify="right")
        table.add_column("error")
        for sid, r in outcome.collection.items():
            table.add_row(
                sid,
                "[green]yes[/]" if r.success else "[red]no[/]",
                str(r.records_collected),
                f"{r.quality_score:.3f}",
                str(r.attempts),
                r.error or "",
            )
        console.print(table)
    if outcome.distribution:
        table = Table(title="Distribution")
        table.add_column("engine")
        table.add_column("ok")
        table.add_column("records", justify="right")
        table.add_column("ms", justify="right")
        table.add_column("error")
        for engine, d in outcome.distribution.items():
            table.add_row(
                engine,
                "[green]yes[/]" if d.success else "[red]no[/]",
                str(d.records_distributed),
                f"{d.elapsed_ms:.0f}",
                d.error or "",
            )
        console.print(table)
    if outcome.quality is not None:
        checks = "  ".join(f"{k}={v:.3f}" for k, v in outcome.quality.checks.items())
        console.print(f"[bold]quality[/]: {outcome.quality.score:.3f} (threshold {outcome.quality.threshold:.3f})  {checks}")
    for w in outcome.warnings:
        console.print(f"[yellow]warning[/]: {w}")


def _run_async(pipeline: Pipeline, work: Callable[[SeedingOrchestrator], Awaitable[T]]) -> T:
    async def main() -> T:
        try:
            return await work(pipeline.orchestrator)
        finally:
            await pipeline.aclose()

    try:
        return asyncio.run(main())
    except StrategyNotFound as e:
        raise click.BadParameter(str(e), param_hint="STRATEGY") from e
    except SeedingError as e:
        raise click.ClickException(f"run failed: {e}") from e


@click.group()
def cli() -> None:
    """dataseed: multi-source data seeding pipeline for the dashboard's ML engines."""


@cli.command("run")
@_common_options
def run_cmd(**opts: Any) -> None:
    """Run every registered strategy once: collect, process, quality-assure, distribute."""
    pipeline = _pipeline(_settings(**opts))
    outcome = _run_async(pipeline, lambda orch: _with_progress(orch, orch.start_orchestration()))
    _print_outcome(outcome)
    if not outcome.success:
        raise SystemExit(1)


@cli.command("execute")
@click.argument("strategy")
@_common_options
def execute_cmd(strategy: str, **opts: Any) -> None:
    """Run a single STRATEGY through the full pipeline."""
    pipeline = _pipeline(_settings(**opts))
    outcome = _run_async(pipeline, lambda orch: _with_progress(orch, orch.execute_strategy(strategy)))
    _print_outcome(outcome)
    if not outcome.success:
        raise SystemExit(1)


@cli.command("schedule")
@click.option("--runs", type=int, default=None, help="Stop after N runs (default: run until interrupted)")
@click.option("--interval-s", type=float, default=None, help="Override the configured interval (seconds)")
@_common_options
def schedule_cmd(runs: int | None, interval_s: float | None, **opts: Any) -> None:
    """Run the full pipeline repeatedly at the configured interval."""
    pipeline = _pipeline(_settings(**opts))
    outcomes = _run_async(pipeline, lambda orch: orch.run_scheduled(runs, interval_s=interval_s))
    for i, outcome in enumerate(outcomes, 1):
        console.print(f"[bold]run {i}[/]: ", end="")
        _print_outcome(outcome)
    status = pipeline.orchestrator.get_status()
    if status.next_run is not None:
        console.print(f"[bold]next run[/]: {status.next_run.isoformat()}")


@cli.command("sources")
@_common_options
def sources_cmd(**opts: Any) -> None:
    """List registered data sources."""
    pipeline = _pipeline(_settings(**opts))
    table = Table(title="Data sources")
    for col in ("source_id", "kind", "schedule", "priority", "enabled", "retries", "timeout_ms", "format"):
        table.add_column(col)
    for s in pipeline.orchestrator.sources:
        table.add_row(
            s.source_id, s.kind, s.schedule, s.priority,
            "yes" if s.enabled else "no", str(s.retry_attempts), str(s.timeout_ms), s.data_format,
        )
    console.print(table)
    asyncio.run(pipeline.aclose())


@cli.command("strategies")
@_common_options
def strategies_cmd(**opts: Any) -> None:
    """List registered collection strategies."""
    pipeline = _pipeline(_settings(**opts))
    table = Table(title="Collection strategies")
    for col in ("name", "engines", "sources", "fallback", "min/source", "parallel"):
        table.add_column(col)
    for s in pipeline.orchestrator.strategies:
        table.add_row(
            s.name,
            ", ".join(s.target_engines),
            ", ".join(s.sources),
            ", ".join(s.fallback_sources) or "-",
            str(s.requirements.min_records_per_source),
            "yes" if s.parallel else "no",
        )
    console.print(table)
    asyncio.run(pipeline.aclose())


if __name__ == "__main__":
    cli()
