#!/usr/bin/env python3
"""
Note Sync CLI.

Primary entry point for running the sync client by hand.
Use --action to select the operation.

Usage:
    python cli.py --help
    python cli.py --action sync --verbose
    python cli.py --action watch --interval 60
    python cli.py --action list
    python cli.py --action config
    python cli.py --action worker
"""

import asyncio
import subprocess
import sys
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from notesync.core.logging import get_logger, setup_logging


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


@click.command()
@click.option(
    "--action", "-a",
    type=click.Choice(["sync", "watch", "list", "config", "worker", "scheduler"]),
    default="sync",
    help="Operation to run.",
)
@click.option(
    "--interval",
    default=None,
    type=float,
    help="Seconds between periodic cycles (watch only). Defaults to sync.yaml.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output (INFO level logging).",
)
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug output (DEBUG level logging).",
)
def main(action: str, interval: float | None, verbose: bool, debug: bool) -> None:
    """
    Note Sync CLI.

    \b
    Examples:
        python cli.py --action sync --verbose
        python cli.py --action watch --interval 60 --debug
        python cli.py --action list
        python cli.py --action config
        python cli.py --action worker
        python cli.py --action scheduler
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")

    structlog.contextvars.bind_contextvars(source="cli")

    logger = get_logger(__name__)

    logger.debug("CLI invoked", extra={"action": action, "log_level": log_level})

    if action == "sync":
        asyncio.run(run_sync(logger))
    elif action == "watch":
        try:
            asyncio.run(run_watch(logger, interval))
        except KeyboardInterrupt:
            logger.info("Watch stopped")
    elif action == "list":
        asyncio.run(list_notes(logger))
    elif action == "config":
        show_config(logger)
    elif action == "worker":
        run_taskiq(logger, "worker", "notesync.tasks.broker:broker")
    elif action == "scheduler":
        run_taskiq(logger, "scheduler", "notesync.tasks.scheduler:scheduler")


async def run_sync(logger) -> None:
    """Run one reconciliation cycle and print its report."""
    from notesync.core.exceptions import ApplicationError
    from notesync.main import lifespan

    async with lifespan() as app:
        try:
            report = await app.engine.run_cycle()
        except ApplicationError as e:
            logger.error("Sync failed", extra={"error": e.message, "code": e.code})
            click.echo(click.style(f"Sync failed: {e.message}", fg="red"), err=True)
            sys.exit(1)

    click.echo("Sync cycle finished:")
    for key, value in report.as_dict().items():
        click.echo(f"  {key}: {value}")
    for failure in report.push_failures:
        click.echo(
            click.style(
                f"  ! note {failure.note_id} ({failure.status}): {failure.error}",
                fg="yellow",
            )
        )


async def run_watch(logger, interval: float | None) -> None:
    """Run periodic sync cycles until interrupted."""
    from notesync.main import lifespan

    async with lifespan() as app:
        app.scheduler.schedule_periodic(interval)
        seconds = interval or app.engine.config.periodic_interval_seconds
        click.echo(f"Syncing every {seconds:g}s")
        click.echo("Press Ctrl+C to stop\n")

        async for result in app.feed.watch():
            logger.debug("Replica changed", extra={"result": type(result).__name__})


async def list_notes(logger) -> None:
    """Print the local replica."""
    from notesync.main import lifespan

    async with lifespan() as app:
        notes = await app.notes.list_notes()

    if not notes:
        click.echo("No notes.")
        return

    for note in notes:
        marker = "" if note.sync_status.value == "SYNCED" else f" [{note.sync_status.value}]"
        click.echo(f"{note.id:>10}  {note.updated_at:%Y-%m-%d %H:%M}  {note.title}{marker}")

    logger.info("Notes listed", extra={"count": len(notes)})


def show_config(logger) -> None:
    """Display loaded configuration."""
    click.echo("Application Configuration:\n")

    try:
        from notesync.core.config import get_app_config

        app_config = get_app_config()

        sections = {
            "Application": app_config.application,
            "Database": app_config.database,
            "Remote": app_config.remote,
            "Sync": app_config.sync,
            "Logging": app_config.logging,
        }
        for title, section in sections.items():
            click.echo(f"{title} Settings (from YAML):")
            click.echo("-" * 40)
            for key, value in section.model_dump().items():
                if isinstance(value, dict):
                    click.echo(f"  {key}:")
                    for k, v in value.items():
                        click.echo(f"    {k}: {v}")
                else:
                    click.echo(f"  {key}: {value}")
            click.echo()

        logger.info("Configuration displayed successfully")

    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)


def run_taskiq(logger, command: str, target: str) -> None:
    """Start a Taskiq worker or scheduler process."""
    try:
        from notesync.tasks.broker import get_redis_url

        redis_url = get_redis_url()
        logger.debug("Redis configured", extra={"redis_url": redis_url.split("@")[-1]})
    except RuntimeError as e:
        logger.error("Failed to load Redis configuration.", extra={"error": str(e)})
        click.echo(click.style(f"Error: Redis not configured: {e}", fg="red"), err=True)
        sys.exit(1)

    cmd = [sys.executable, "-m", "taskiq", command, target]

    click.echo(f"Starting Taskiq {command}")
    click.echo("Press Ctrl+C to stop\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Taskiq process stopped", extra={"command": command})
    except subprocess.CalledProcessError as e:
        logger.error("Taskiq process failed to start", extra={"command": command, "exit_code": e.returncode})
        sys.exit(e.returncode)


if __name__ == "__main__":
    main()
