from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path

import click

from soulcrush.config.settings import settings
from soulcrush.database.connection import (
    check_database_health,
    ensure_schema,
    init_database,
    reset_database,
)
from soulcrush.logging_config import configure_logging
from soulcrush.models.errors import TrackerError
from soulcrush.models.status import DEFAULT_STATUS, Status, advance, render_status
from soulcrush.services.application_service import ApplicationService
from soulcrush.services.refresh import ListState, ListStatus
from soulcrush.views import render_list

STATUS_CHOICES = [status.value for status in Status]


def _run(coro):
    try:
        return asyncio.run(coro)
    except TrackerError as e:
        raise click.ClickException(e.message) from e


def _service(ctx: click.Context) -> ApplicationService:
    db_path = ctx.obj["db_path"]
    # The cascade trigger is only changed by init-db and reset-db
    try:
        ensure_schema(db_path)
    except (sqlite3.Error, OSError) as e:
        raise click.ClickException(f"Cannot open database at {db_path}: {e}") from e
    return ApplicationService(db_path)


async def _load_list(service: ApplicationService) -> ListState:
    async with service.refresh_controller() as refresh:
        return await refresh.settled()


@click.group()
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the SQLite database (default: DATABASE_PATH setting).",
)
@click.option("--log-level", type=str, default=None, help="Override LOG_LEVEL.")
@click.option(
    "--log-format",
    type=click.Choice(["json", "console"]),
    default=None,
    help="Override LOG_FORMAT.",
)
@click.pass_context
def cli(ctx: click.Context, db_path: Path | None, log_level: str | None, log_format: str | None) -> None:
    """Job application tracker CLI."""
    try:
        configure_logging(log_level, log_format)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path or settings.database_path


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Initialize the SQLite database schema."""
    init_database(ctx.obj["db_path"])
    click.echo(f"Initialized database at {ctx.obj['db_path']}")


@cli.command("reset-db")
@click.option("--yes", is_flag=True, help="Confirm that all data will be deleted.")
@click.pass_context
def reset_db(ctx: click.Context, yes: bool) -> None:
    """Drop all tables and recreate the schema."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    reset_database(ctx.obj["db_path"])
    click.echo("Database reset complete.")


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Print table counts and database size as JSON."""
    click.echo(json.dumps(check_database_health(ctx.obj["db_path"]), indent=2))


@cli.command()
def statuses() -> None:
    """List status tokens, labels and the status each one advances to."""
    for status in Status:
        display = render_status(status)
        click.echo(f"{status.value}\t{display.label}\t-> {advance(status).value}")


@cli.command("list")
@click.pass_context
def list_applications(ctx: click.Context) -> None:
    """Show all applications, newest first."""
    state = _run(_load_list(_service(ctx)))
    click.echo(render_list(state))
    if state.status is ListStatus.ERROR:
        ctx.exit(1)


@cli.command()
@click.option("--name", required=True, help="Company name.")
@click.option("--website", required=True, help="Company website URL.")
@click.option("--ceo", required=True, help="Company CEO.")
@click.option("--industry", required=True, help="Company industry.")
@click.option(
    "--status",
    type=click.Choice(STATUS_CHOICES),
    default=DEFAULT_STATUS.value,
    show_default=True,
)
@click.pass_context
def add(ctx: click.Context, name: str, website: str, ceo: str, industry: str, status: str) -> None:
    """Record a new application and its company."""
    service = _service(ctx)
    request = {
        "company": {"name": name, "website": website, "ceo": ceo, "industry": industry},
        "status": status,
    }
    application_id = _run(service.create_application(request))
    click.echo(f"Created application {application_id}")


@cli.command("set-status")
@click.argument("application_id")
@click.argument("status", type=click.Choice(STATUS_CHOICES))
@click.pass_context
def set_status(ctx: click.Context, application_id: str, status: str) -> None:
    """Set the status of an application."""
    service = _service(ctx)
    updated = _run(service.update_application_status(application_id, status))
    if updated:
        click.echo(f"Application {application_id} is now {Status(status).label}")
    else:
        click.echo(f"No application with id {application_id}")


@cli.command()
@click.argument("application_id")
@click.pass_context
def delete(ctx: click.Context, application_id: str) -> None:
    """Delete an application."""
    service = _service(ctx)
    deleted = _run(service.delete_application(application_id))
    if deleted:
        click.echo(f"Deleted application {application_id}")
    else:
        click.echo(f"No application with id {application_id}")


if __name__ == "__main__":
    cli()
