"""Entry points for the command-line interface.

The ``tenant-cadence`` command runs registration passes, serves the
scheduler and sends run-now requests by identity key.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from functools import partial

import typer

import tenant_cadence as tc
from ..calendars.builder import build_calendar
from ..calendars.resolver import CalendarResolver
from ..config import load_config
from ..errors import SchedulerError
from ..identity import derive_key
from ..metrics import start_metrics_server
from ..registrar import JobRegistrar, RegistrationReport
from ..run_now import TriggerResult, trigger_now
from ..scheduler import APSchedulerEngine, get_default_engine
from ..store import load_store


app = typer.Typer(help="Register and trigger tenant jobs")


@app.callback()
def _global_options(
    metrics_port: int | None = typer.Option(
        None,
        "--metrics-port",
        help="Expose Prometheus metrics on PORT before executing the command",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level [DEBUG|INFO|WARNING|ERROR]",
    ),
) -> None:
    """Handle global options for the CLI."""

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if metrics_port is not None:
        start_metrics_server(metrics_port)


def _engine() -> tuple[APSchedulerEngine, bool]:
    """Return the default engine and whether this command had to create it."""

    try:
        return get_default_engine(), False
    except RuntimeError:
        tc.initialize()
        return get_default_engine(), True


def _echo_report(report: RegistrationReport) -> None:
    for outcome in report.outcomes:
        line = f"{outcome.label}\t{outcome.state.value}"
        if outcome.error is not None:
            line += f"\t{outcome.error}"
        typer.echo(line)


@app.command("register")
def register(
    store: str | None = typer.Option(None, "--store", help="Path to the job store YAML"),
) -> None:
    """Run one registration pass against a fresh engine and report outcomes."""

    cfg = load_config()
    try:
        snapshot = load_store(store or cfg["store_path"])
    except (OSError, SchedulerError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    engine = APSchedulerEngine(timezone=cfg["timezone"])
    try:
        report = JobRegistrar(
            snapshot, snapshot, engine, max_calendar_depth=cfg["max_calendar_depth"]
        ).run()
    finally:
        engine.shutdown(wait=False)
    _echo_report(report)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("serve")
def serve() -> None:
    """Register jobs from the configured store and run the scheduler until interrupted."""

    report = tc.initialize()
    _echo_report(report)
    engine = get_default_engine()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        engine.shutdown()


@app.command("key")
def key(tenant: str, job: str, version: int) -> None:
    """Print the identity key for TENANT, JOB and VERSION."""

    try:
        typer.echo(derive_key(tenant, job, version))
    except SchedulerError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("list")
def list_schedules() -> None:
    """List registered schedules with their next fire time."""

    engine, _ = _engine()
    for job in engine.list_schedules():
        next_run = getattr(job, "next_run_time", None)
        typer.echo(f"{job.id}\t{job.trigger}\t{next_run.isoformat() if next_run else '-'}")


@app.command("trigger")
def trigger(
    key: str,
    drain_timeout: float = typer.Option(
        30.0, "--wait", min=0.0, help="Seconds to wait for the queued run to start"
    ),
) -> None:
    """Request an immediate run of the schedule identified by KEY.

    When no engine was running in this process one is initialised from the
    store, and the command waits for the queued fire to finish before
    exiting.
    """

    engine, created = _engine()
    result = trigger_now(key, engine)
    if result is TriggerResult.ACCEPTED:
        typer.echo(f"{key} accepted")
        if created and not engine.drain(timeout=drain_timeout):
            typer.echo(f"warning: run of '{key}' did not start before exit", err=True)
        return
    if result is TriggerResult.NOT_FOUND:
        typer.echo(f"error: no schedule registered for '{key}'", err=True)
    else:
        typer.echo(f"error: malformed identity key '{key}'", err=True)
    raise typer.Exit(code=1)


@app.command("preview")
def preview(
    key: str,
    count: int = typer.Option(5, "--count", min=1, help="Number of fire times to show"),
) -> None:
    """Show the next fire times of KEY with calendar exclusions applied."""

    try:
        times = _engine()[0].next_fire_times(key, count)
    except SchedulerError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    for fire_time in times:
        typer.echo(fire_time.isoformat())


@app.command("check-calendar")
def check_calendar(
    tenant: str,
    name: str,
    instant: str,
    store: str | None = typer.Option(None, "--store", help="Path to the job store YAML"),
) -> None:
    """Report whether INSTANT (ISO 8601) is excluded by calendar NAME for TENANT."""

    from zoneinfo import ZoneInfo

    cfg = load_config()
    zone = ZoneInfo(cfg["timezone"])
    try:
        moment = datetime.fromisoformat(instant)
    except ValueError as exc:
        typer.echo(f"error: invalid instant '{instant}'", err=True)
        raise typer.Exit(code=1) from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=zone)

    try:
        snapshot = load_store(store or cfg["store_path"])
        resolve = partial(CalendarResolver(snapshot).resolve, tenant)
        calendar = build_calendar(
            resolve(name),
            resolve,
            max_depth=cfg["max_calendar_depth"],
            timezone=zone,
        )
    except (OSError, SchedulerError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    status = "excluded" if calendar.is_excluded(moment) else "included"
    typer.echo(f"{moment.isoformat()}\t{status}\t{' -> '.join(calendar.chain)}")


def main(args: list[str] | None = None) -> None:
    """Run the command-line interface."""

    app(args=args)


__all__ = ["app", "main"]
