"""Typer CLI entrypoint for CineList."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository
from .engine import FilmFilter, MetricsSnapshot, RunReport
from .errors import CatalogLookupError
from .infra import SQLiteManager
from .logging_conf import (
    available_source_logs,
    configure_logging,
    enable_debug,
    pipeline_log_path,
    source_log_path,
    tail_log,
)
from .scheduler import APSchedulerAdapter
from .service import HarvestService

app = typer.Typer(
    help="CineList command line: harvest cinema listings into the film catalog.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
films_app = typer.Typer(
    name="films",
    help="Inspect and manage stored films.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Read log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    service: HarvestService
    scheduler: APSchedulerAdapter


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    storage = SQLiteManager()
    service = HarvestService(repository, storage)
    scheduler = APSchedulerAdapter()
    return AppState(repository=repository, service=service, scheduler=scheduler)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _render_metrics_table(report: RunReport) -> Table:
    metrics: MetricsSnapshot = report.metrics
    status = "cancelled" if report.cancelled else "completed"
    table = Table(title=f"Run {report.run_id} · {status}", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", justify="right")
    table.add_row("Scraped", str(metrics.total_scraped))
    table.add_row("Duplicates", str(metrics.duplicates_filtered))
    table.add_row("Cache hits", str(metrics.cache_hits))
    table.add_row("Lookups", str(metrics.lookup_calls))
    table.add_row("Lookup failures", str(metrics.lookup_failures))
    table.add_row("Persisted", str(metrics.films_persisted))
    table.add_row("Batches lost", str(metrics.batches_lost))
    table.add_row("Duration (s)", f"{metrics.duration_seconds:.2f}")
    table.add_row("Throughput (films/s)", f"{metrics.throughput_per_second:.2f}")
    table.add_row("Cache hit rate", f"{metrics.cache_hit_rate:.1%}")
    table.add_row("Duplication rate", f"{metrics.duplication_rate:.1%}")
    table.add_row("Lookup failure rate", f"{metrics.lookup_failure_rate:.1%}")
    return table


def _render_history_summary(report: RunReport) -> Table:
    table = Table(title="History written", box=box.SIMPLE_HEAD)
    table.add_column("Source", style="cyan")
    table.add_column("Films", justify="right")
    for source, count in sorted(report.history.items()):
        table.add_row(source, str(count))
    return table


def _render_jobs_table(jobs: list[dict]) -> Table:
    table = Table(title="Scheduled jobs", box=box.SIMPLE_HEAD)
    table.add_column("Job ID", style="cyan", no_wrap=True)
    table.add_column("Next run", style="green")
    table.add_column("Trigger", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(
            str(job.get("id", "-")),
            str(job.get("next_run_time", "-")),
            str(job.get("trigger", "-")),
        )
    return table


def _wait_forever() -> None:
    while True:
        time.sleep(1)


app.add_typer(films_app, name="films")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True)
) -> None:
    try:
        ctx.obj = build_state(verbose)
    except ValueError as exc:
        console.print(f"Invalid configuration: {exc}", style="red")
        raise typer.Exit(code=1) from exc


@app.command("run", help="Run the pipeline once over every enabled source.")
def run(
    ctx: typer.Context,
    source: Optional[List[str]] = typer.Option(None, "--source", "-s", help="Only run this source (repeatable)."),
    no_dedup: bool = typer.Option(False, "--no-dedup", help="Disable deduplication.", is_flag=True),
    no_cache: bool = typer.Option(False, "--no-cache", help="Disable the metadata cache.", is_flag=True),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if verbose:
        enable_debug()
    dedup_enabled = False if no_dedup else None
    caching_enabled = False if no_cache else None
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="cinelist-run") as executor:
        future = executor.submit(state.service.run, source or None, dedup_enabled, caching_enabled)
        try:
            report = future.result()
        except KeyboardInterrupt:
            console.print("Cancelling run, draining in-flight work…", style="yellow")
            state.service.cancel()
            report = future.result()
        except ValueError as exc:
            console.print(str(exc), style="red")
            raise typer.Exit(code=2) from exc
    console.print(_render_metrics_table(report))
    if report.history:
        console.print(_render_history_summary(report))
    elif not report.cancelled:
        console.print("No source produced films; history unchanged.", style="dim")


@app.command("schedule", help="Run the pipeline and Radarr sync on a fixed interval until interrupted.")
def schedule(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    settings = state.service.config.schedule
    adapter = state.scheduler
    adapter.schedule_harvest(state.service.run_scheduled, settings)
    adapter.schedule_library_sync(state.service.synchronize_scheduled, settings)
    adapter.start()
    console.print(_render_jobs_table(adapter.list_jobs()))
    console.print(f"Running every {settings.interval_hours:g}h. Press Ctrl+C to stop.", style="cyan")
    try:
        _wait_forever()
    except KeyboardInterrupt:
        console.print("Stopping scheduler…", style="yellow")
        state.service.cancel()
    finally:
        adapter.shutdown()


@films_app.command("list", help="List stored films.")
def films_list(
    ctx: typer.Context,
    film_filter: FilmFilter = typer.Option(FilmFilter.ALL, "--filter", help="all, in-radarr or not-in-radarr."),
) -> None:
    state = _get_state(ctx)
    films = state.service.list_films(film_filter)
    if not films:
        console.print("No films stored.", style="dim")
        return
    table = Table(title=f"Films · {len(films)}", box=box.SIMPLE_HEAD)
    table.add_column("Title", style="cyan", overflow="fold")
    table.add_column("Year")
    table.add_column("Country", overflow="fold")
    table.add_column("IMDb", style="magenta")
    table.add_column("TMDb", style="magenta")
    table.add_column("Radarr", style="green")
    for film in films:
        table.add_row(
            film.title,
            film.year or "-",
            film.country or "-",
            film.imdb_id or "-",
            film.tmdb_id or "-",
            "yes" if film.is_in_radarr else "no",
        )
    console.print(table)


@films_app.command("add", help="Add a film to Radarr by TMDb id.")
def films_add(ctx: typer.Context, tmdb_id: str = typer.Argument(..., help="TMDb id of the film.")) -> None:
    state = _get_state(ctx)
    try:
        state.service.add_to_radarr(tmdb_id)
    except CatalogLookupError as exc:
        console.print(f"Radarr rejected {tmdb_id}: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"Film {tmdb_id} added to Radarr.", style="green")


@films_app.command("sync", help="Refresh the in-Radarr flag of stored films.")
def films_sync(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    updated = state.service.synchronize_library()
    console.print(f"{updated} film(s) now marked as in Radarr.", style="green")


@app.command("history", help="Show recent scraper runs.")
def history(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", help="Number of entries to show."),
    source: Optional[str] = typer.Option(None, "--source", help="Only this source."),
) -> None:
    state = _get_state(ctx)
    entries = state.service.history_entries(limit=limit, source=source)
    if not entries:
        console.print("No history yet.", style="dim")
        return
    table = Table(title=f"Last {len(entries)} runs", box=box.SIMPLE_HEAD)
    table.add_column("Scraped at", style="green")
    table.add_column("Source", style="cyan")
    table.add_column("Films", justify="right")
    table.add_column("Run", style="dim")
    for entry in entries:
        table.add_row(
            entry.scrape_date.isoformat(timespec="seconds"),
            entry.source,
            str(entry.film_count),
            entry.run_id or "-",
        )
    console.print(table)


@log_app.command("list", help="List per-source log files.")
def log_list() -> None:
    logs = list(available_source_logs())
    if not logs:
        console.print("No source logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("tail", help="Show the last lines of the pipeline or a source log.")
def log_tail(
    source: Optional[str] = typer.Option(None, "--source", help="Source name; pipeline log when omitted."),
    lines: int = typer.Option(100, "--lines", help="Number of lines."),
) -> None:
    path = source_log_path(source) if source else pipeline_log_path()
    content = tail_log(path, lines)
    if not content:
        console.print("Log is empty.", style="dim")
        return
    console.print(f"{path.name} · last {len(content)} lines", style="cyan")
    console.print("".join(content), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
