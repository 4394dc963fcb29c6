"""Typer CLI entrypoint for feedrelay."""

from __future__ import annotations

import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigLocator, ConfigRepository, JobConfig
from .errors import FeedRelayError
from .logging_conf import available_task_logs, configure_logging, current_log_dir, tail_log
from .orchestrator import Orchestrator
from .scheduler import JobGroup, JobRun

app = typer.Typer(help="feedrelay command line tool", no_args_is_help=True, rich_markup_mode=None)
jobs_app = typer.Typer(name="jobs", help="Inspect configured jobs", no_args_is_help=True, rich_markup_mode=None)
state_app = typer.Typer(name="state", help="Inspect or reset read-filter state", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="Browse log files", no_args_is_help=True, rich_markup_mode=None)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator


def build_state(verbose: bool, home: Path | None = None) -> AppState:
    repository = ConfigRepository(ConfigLocator(home))
    try:
        configure_logging(verbose=verbose, log_dir=repository.log_dir())
    except FeedRelayError as exc:
        console.print(f"Invalid global configuration: {exc}", style="red")
        raise typer.Exit(code=2) from exc
    return AppState(repository=repository, orchestrator=Orchestrator(repository))


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _fail(exc: FeedRelayError) -> typer.Exit:
    console.print(str(exc), style="red", markup=False, soft_wrap=True)
    return typer.Exit(code=2)


def _format_trigger(job: JobConfig) -> str:
    if job.trigger is None:
        return "once"
    if job.trigger.every is not None:
        return f"every {job.trigger.every}"
    return f"daily at {job.trigger.at}"


def _render_jobs_table(jobs: Iterable[JobConfig]) -> Table:
    jobs = list(jobs)
    table = Table(title=f"Jobs ({len(jobs)})", box=box.SIMPLE_HEAD)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Trigger", style="yellow")
    table.add_column("Tasks", style="green", overflow="fold")
    table.add_column("Disabled", style="magenta")
    for job in jobs:
        tasks = ", ".join(
            f"{name} (disabled)" if task.disabled else name for name, task in job.tasks.items()
        )
        table.add_row(job.name or "-", _format_trigger(job), tasks, "yes" if job.disabled else "")
    return table


def _render_runs_table(runs: dict[str, JobRun]) -> Table:
    table = Table(title="Run results", box=box.SIMPLE_HEAD)
    table.add_column("Task", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Delivered", justify="right", style="green")
    table.add_column("Dropped", justify="right", style="yellow")
    table.add_column("Error", style="red", overflow="fold")
    for run in runs.values():
        for result in run.results:
            table.add_row(
                result.task,
                result.status.value,
                str(result.delivered),
                str(result.dropped),
                f"{result.error_kind}: {result.error}" if result.error else "",
            )
    return table


def _install_signal_handlers(group: JobGroup) -> dict:
    def _handler(signum: int, _frame: object) -> None:
        console.print(f"Received signal {signum}, shutting down...", style="yellow")
        group.request_shutdown()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handler)
    return previous


app.add_typer(jobs_app, name="jobs")
app.add_typer(state_app, name="state")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True),
    home: Optional[Path] = typer.Option(
        None, "--home", help="Directory holding data/ and logs/ (defaults to $FEEDRELAY_HOME or the cwd)"
    ),
) -> None:
    ctx.obj = build_state(verbose, home)


@app.command("run", help="Run jobs on their triggers until interrupted.")
def run(
    ctx: typer.Context,
    jobs: Optional[List[str]] = typer.Argument(None, help="Jobs to run (default: every enabled job)."),
    once: bool = typer.Option(False, "--once", help="Fire each job once and exit.", is_flag=True),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Print to stdout instead of sending, and keep state in memory.", is_flag=True
    ),
) -> None:
    state = _get_state(ctx)
    names = jobs or None
    try:
        group = state.orchestrator.build(names, dry_run=dry_run)
    except FeedRelayError as exc:
        raise _fail(exc) from exc

    if not group.jobs:
        console.print("No jobs configured. Add YAML files under data/jobs/.", style="yellow")
        return

    previous_handlers = _install_signal_handlers(group)
    try:
        if once:
            try:
                runs = group.run_once(names)
            finally:
                group.shutdown()
            console.print(_render_runs_table(runs))
            if any(job_run.failed for job_run in runs.values()):
                raise typer.Exit(code=1)
            return
        console.print(f"Scheduling {len(group.select(names))} job(s); press Ctrl+C to stop.", style="cyan")
        group.run_forever(names)
        console.print("Stopped.", style="green")
    finally:
        for signum, handler in previous_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)
        state.orchestrator.close()


@app.command("validate", help="Load every job and build it without running anything.")
def validate(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        group = state.orchestrator.build(dry_run=False)
    except FeedRelayError as exc:
        raise _fail(exc) from exc
    group.shutdown(wait=False)
    state.orchestrator.close()
    tasks = sum(len(job.tasks) for job in group.jobs.values())
    console.print(f"{len(group.jobs)} job(s) and {tasks} task(s) are valid.", style="green")


@jobs_app.command("list", help="List configured jobs.")
def jobs_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        jobs = state.orchestrator.list_jobs()
    except FeedRelayError as exc:
        raise _fail(exc) from exc
    if not jobs:
        console.print("No jobs configured. Add YAML files under data/jobs/.", style="yellow")
        return
    console.print(_render_jobs_table(jobs))


@state_app.command("list", help="List stored read-filter states.")
def state_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        rows = state.orchestrator.store.list_states()
    except FeedRelayError as exc:
        raise _fail(exc) from exc
    if not rows:
        console.print("No stored state.", style="dim")
        return
    table = Table(title="Read-filter state", box=box.SIMPLE_HEAD)
    table.add_column("Task", style="cyan", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("Updated", style="green")
    for task_name, kind, updated_at in rows:
        table.add_row(task_name, kind, updated_at)
    console.print(table)


@state_app.command("show", help="Show the stored read-filter state of a task.")
def state_show(ctx: typer.Context, task: str = typer.Argument(..., help="Task name, e.g. job.task")) -> None:
    state = _get_state(ctx)
    try:
        stored = state.orchestrator.view_state(task)
    except FeedRelayError as exc:
        raise _fail(exc) from exc
    if stored is None:
        console.print(f"No stored state for {task}.", style="dim", markup=False)
        return
    table = Table(title=task, box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", overflow="fold")
    table.add_row("kind", stored.kind.value)
    for key, value in stored.to_payload().items():
        table.add_row(key, "\n".join(value) if isinstance(value, list) else str(value))
    console.print(table)


@state_app.command("reset", help="Forget the read-filter state of a task.")
def state_reset(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task name, e.g. job.task"),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Forget the read-filter state of {task}? Entries may be re-delivered."):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=1)
    try:
        removed = state.orchestrator.reset_state(task)
    except FeedRelayError as exc:
        raise _fail(exc) from exc
    if removed:
        console.print(f"State of {task} cleared.", style="green", markup=False)
    else:
        console.print(f"No stored state for {task}.", style="dim", markup=False)


@log_app.command("list", help="List task log files.")
def log_list() -> None:
    logs = list(available_task_logs())
    if not logs:
        console.print("No task logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a task log, or of the main log.")
def log_show(
    task: Optional[str] = typer.Argument(None, help="Task name (default: main log)."),
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
) -> None:
    base_dir = current_log_dir()
    path = base_dir / "tasks" / f"{task}.log" if task else base_dir / "feedrelay.log"
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan", markup=False)
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()


__all__ = ["app", "cli"]
