"""Typer CLI entrypoint for the IPD allele harvester."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import (
    CUTOFF_FORMAT,
    ConfigRepository,
    GlobalConfig,
    HarvestRequest,
    lookup_database,
    supported_codes,
)
from .config.databases import DBFETCH_URL
from .engine import RangePlanner
from .engine.planner import parse_release_date
from .errors import FatalHarvestError
from .infra import IndexStore
from .logging_conf import (
    available_database_logs,
    configure_logging,
    database_log_path,
    log_dir,
    tail_log,
)
from .orchestrator import HarvestOrchestrator, HarvestSummary
from .ui import ProgressReporter

app = typer.Typer(
    help="Harvest newly released allele records from the IPD databases.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
index_app = typer.Typer(
    name="index",
    help="Inspect the per-database date lookup.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Browse log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    global_config: GlobalConfig
    orchestrator: HarvestOrchestrator


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    configure_logging(verbose=verbose)
    return AppState(
        repository=repository,
        global_config=global_config,
        orchestrator=HarvestOrchestrator(global_config),
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )


def _render_summary(summary: HarvestSummary) -> Table:
    table = Table(title=f"{summary.code} harvest", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Jobs", str(summary.jobs))
    table.add_row("Written (flat file)", str(summary.written))
    table.add_row("Written (sequence)", str(summary.header_written))
    table.add_row("Indexed only", str(summary.indexed_only))
    table.add_row("Not found", str(summary.not_found))
    table.add_row("Unchanged", str(summary.skipped))
    table.add_row("Failed", str(summary.failed))
    table.add_row("New index entries", str(summary.indexed))
    if summary.index_failed:
        table.add_row("Index write failures", str(summary.index_failed), style="red")
    table.add_row("Elapsed (s)", f"{summary.elapsed:.1f}")
    return table


app.add_typer(index_app, name="index")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("harvest", help="Fetch records 1..COUNT (resuming from the index) released after CUTOFF.")
def harvest(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Database code, e.g. MHC, KIR, HLA."),
    count: int = typer.Argument(..., help="Highest record number to request."),
    cutoff: str = typer.Argument(..., help="Last release date already processed (YYYY-MM-DD)."),
    index_dir: Optional[Path] = typer.Option(
        None, "--index-dir", help="Directory holding <CODE>_date_lookup.json."
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", help="Where record files are written (default: current directory)."
    ),
    workers: Optional[int] = typer.Option(None, "--workers", help="Concurrent fetch workers."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-request timeout in seconds."),
    no_resume: bool = typer.Option(
        False, "--no-resume", help="Ignore the index and scan from record 1."
    ),
    quiet: bool = typer.Option(False, "--quiet", help="Print a one-line result."),
) -> None:
    state = _get_state(ctx)
    global_config = state.global_config
    try:
        request = HarvestRequest(
            code=code,
            count=count,
            cutoff=cutoff,
            index_dir=index_dir or global_config.index_dir,
            output_dir=output_dir or Path.cwd(),
            resume=not no_resume,
        )
        overrides = {}
        if workers is not None:
            overrides["workers"] = workers
        if timeout is not None:
            overrides["request_timeout"] = timeout
        if overrides:
            global_config = GlobalConfig.model_validate(
                {**global_config.model_dump(), **overrides}
            )
    except ValidationError as exc:
        console.print(f"Invalid arguments: {_validation_message(exc)}", style="red")
        raise typer.Exit(code=2)

    orchestrator = state.orchestrator
    if global_config is not state.global_config:
        orchestrator = HarvestOrchestrator(global_config)

    progress_flag = global_config.enable_progress_bar and _progress_default_enabled() and not quiet
    try:
        summary = orchestrator.run(
            request, progress=ProgressReporter(enabled=progress_flag, label=request.code)
        )
    except FatalHarvestError as exc:
        console.print(f"Harvest aborted: {exc}", style="red")
        raise typer.Exit(code=1)
    if quiet:
        console.print(
            f"Done: {summary.written + summary.header_written} written, "
            f"{summary.indexed} indexed, {summary.failed} failed"
        )
        return
    console.print(_render_summary(summary))


@app.command("databases", help="List supported database codes.")
def databases() -> None:
    table = Table(title="Supported databases", box=box.SIMPLE_HEAD)
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("dbfetch db", style="magenta")
    table.add_column("Prefix", style="green")
    table.add_column("Description", overflow="fold")
    for code in supported_codes():
        endpoint = lookup_database(code)
        table.add_row(code, endpoint.db_name, endpoint.prefix, endpoint.description)
    console.print(table)
    console.print(f"Endpoint template: {DBFETCH_URL}", style="dim")


@index_app.command("show", help="Summarise the date lookup for a database.")
def index_show(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Database code."),
    index_dir: Optional[Path] = typer.Option(None, "--index-dir", help="Directory holding the index."),
    cutoff: Optional[str] = typer.Option(
        None, "--cutoff", help="Show the boundary set a run with this cutoff would re-check."
    ),
    limit: int = typer.Option(10, "--limit", help="Number of most recent entries to list."),
) -> None:
    state = _get_state(ctx)
    endpoint = lookup_database(code)
    if endpoint is None:
        console.print(
            f"Unsupported database code {code!r}; expected one of {', '.join(supported_codes())}",
            style="red",
        )
        raise typer.Exit(code=2)
    store = IndexStore(index_dir or state.global_config.index_dir, code)
    snapshot = store.load()
    if not snapshot:
        console.print(f"No index entries at {store.path}.", style="yellow")
        raise typer.Exit(code=0)

    def _sort_key(item: tuple[str, str]) -> tuple:
        try:
            return (parse_release_date(item[1]), item[0])
        except ValueError:
            return (datetime.min.date(), item[0])

    table = Table(title=f"{code} index · {len(snapshot)} entries", box=box.SIMPLE_HEAD)
    table.add_column("Identifier", style="cyan", no_wrap=True)
    table.add_column("Release date", style="green")
    for identifier, released in sorted(snapshot.items(), key=_sort_key, reverse=True)[:limit]:
        table.add_row(identifier, released)
    console.print(table)

    if cutoff:
        try:
            cutoff_date = datetime.strptime(cutoff, CUTOFF_FORMAT).date()
        except ValueError:
            console.print("--cutoff must use YYYY-MM-DD.", style="red")
            raise typer.Exit(code=2)
        boundary = RangePlanner(endpoint.prefix).plan(snapshot, cutoff_date)
        if boundary:
            console.print(
                f"Boundary set ({len(boundary)}): "
                + ", ".join(f"{endpoint.prefix}{n:05d}" for n in boundary)
            )
            console.print(f"Next unscanned record: {boundary[-1] + 1}", style="dim")
        else:
            console.print("No entries before the cutoff; a run would start at record 1.", style="dim")


@log_app.command("list", help="List per-database log files.")
def log_list() -> None:
    logs = list(available_database_logs())
    if not logs:
        console.print("No database logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    database: Optional[str] = typer.Option(
        None, "--database", help="Database code (default: the global harvester log)."
    ),
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
) -> None:
    path = database_log_path(database) if database else log_dir() / "harvester.log"
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
