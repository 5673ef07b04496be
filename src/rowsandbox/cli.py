"""Command-line interface for RowSandbox.

The CLI works on the file-backed backup store: it lists and inspects
journal backups, renders them as migration scripts and applies them
through the reference SQLAlchemy executor.
"""

import asyncio
from typing import NoReturn

import click
from sqlalchemy.ext.asyncio import create_async_engine

from rowsandbox import __version__
from rowsandbox.application.services import BackupManager, SandboxService, SandboxStore
from rowsandbox.core.config import Settings, get_settings
from rowsandbox.core.logging import configure_logging, get_logger
from rowsandbox.domain.services.overlay_engine import get_change_diff
from rowsandbox.infrastructure.execution import (
    SqlAlchemyChangeExecutor,
    SqlAlchemyMigrationCompiler,
)
from rowsandbox.infrastructure.persistence import BackupRepository
from rowsandbox.infrastructure.schema import SqlAlchemySchemaProvider
from rowsandbox.infrastructure.storage import FileKeyValueStore


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _backup_repository(ctx: click.Context) -> BackupRepository:
    return BackupRepository(FileKeyValueStore(ctx.obj["state_dir"]))


def _session_id(connection_id: str) -> str:
    return f"cli-{connection_id}"


@click.group()
@click.version_option(version=__version__, prog_name="RowSandbox")
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory of the sandbox state store (overrides config)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default=None,
    help="Set log level (overrides config)",
)
@click.pass_context
def cli(ctx: click.Context, state_dir: str | None, log_level: str | None) -> None:
    """RowSandbox - stage row edits locally, review them, then apply."""
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)
    ctx.obj = {"settings": settings, "state_dir": state_dir or settings.state_dir}


@cli.group()
def backups() -> None:
    """Inspect and manage journal backups."""


@backups.command("list")
@click.pass_context
def list_backups(ctx: click.Context) -> None:
    """List backups, most recent first."""
    items = _backup_repository(ctx).list_all()
    if not items:
        click.echo("No sandbox backups.")
        return
    for backup in items:
        click.echo(
            f"{backup.connection_id}  session={backup.session_id}  "
            f"changes={len(backup.changes)}  saved_at={backup.saved_at.isoformat()}"
        )


@backups.command("show")
@click.argument("connection_id")
@click.pass_context
def show_backup(ctx: click.Context, connection_id: str) -> None:
    """Show the changes held in a backup."""
    backup = _backup_repository(ctx).get(connection_id)
    if backup is None:
        click.echo(f"ERROR: No backup for connection '{connection_id}'.", err=True)
        raise SystemExit(1)

    click.echo(
        f"Backup of {connection_id} ({len(backup.changes)} changes, "
        f"saved {backup.saved_at.isoformat()})"
    )
    for change in backup.changes:
        identity = ", ".join(f"{k}={v!r}" for k, v in (change.identity or {}).items())
        click.echo(f"  [{change.kind.value}] {change.target.display_name} {identity}".rstrip())
        for diff in get_change_diff(change):
            click.echo(f"      {diff.column}: {diff.old_value!r} -> {diff.new_value!r}")


@backups.command("clear")
@click.argument("connection_id")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def clear_backup(ctx: click.Context, connection_id: str, yes: bool) -> None:
    """Delete the backup of a connection."""
    if not yes:
        click.confirm(f"Delete the sandbox backup of '{connection_id}'?", abort=True)
    if _backup_repository(ctx).delete(connection_id):
        click.echo(f"Backup of '{connection_id}' deleted.")
    else:
        click.echo(f"No backup for connection '{connection_id}'.")


def _build(ctx: click.Context, database_url: str | None, dialect: str | None):
    settings = _settings(ctx)
    engine = create_async_engine(database_url or settings.database_url)
    store = SandboxStore(settings=settings)
    service = SandboxService(
        store,
        SqlAlchemySchemaProvider(engine),
        SqlAlchemyMigrationCompiler(dialect or settings.sql_dialect),
        SqlAlchemyChangeExecutor(engine, read_only=settings.read_only),
        backups=BackupManager(_backup_repository(ctx), store, settings=settings, debounce_seconds=0),
        settings=settings,
    )
    return engine, service


@cli.command()
@click.argument("connection_id")
@click.option("--dialect", type=str, default=None, help="SQL dialect (overrides config)")
@click.option("--database-url", type=str, default=None, help="Database used for validation")
@click.pass_context
def script(
    ctx: click.Context, connection_id: str, dialect: str | None, database_url: str | None
) -> None:
    """Print the migration script for a backup."""

    async def run() -> int:
        engine, service = _build(ctx, database_url, dialect)
        try:
            backup = service.backups.restore(connection_id)
            if backup is None:
                click.echo(f"ERROR: No backup for connection '{connection_id}'.", err=True)
                return 1
            journal = service.store.activate(_session_id(connection_id))
            journal.import_snapshot(backup.changes)

            outcome = await service.generate_script(journal.session_id)
            for warning in outcome.warnings:
                click.echo(f"WARNING: {warning}", err=True)
            if not outcome.success:
                click.echo(f"ERROR: {outcome.error}", err=True)
                return 1
            click.echo(outcome.sql)
            return 0
        finally:
            await engine.dispose()

    raise SystemExit(asyncio.run(run()))


@cli.command()
@click.argument("connection_id")
@click.option("--database-url", type=str, default=None, help="Target database (overrides config)")
@click.option(
    "--atomic/--no-atomic",
    default=True,
    help="Apply all changes in one transaction",
)
@click.pass_context
def apply(
    ctx: click.Context, connection_id: str, database_url: str | None, atomic: bool
) -> None:
    """Apply the changes of a backup to the database.

    The backup is deleted when everything was applied; otherwise it is
    rewritten with the changes that remain.
    """
    logger = get_logger(__name__)

    async def run() -> int:
        engine, service = _build(ctx, database_url, None)
        session_id = _session_id(connection_id)
        try:
            imported = service.backups.accept_restore(
                connection_id, session_id, keep_backup=True
            )
            if not imported:
                click.echo(f"No staged changes in backup of '{connection_id}'.")
                return 0

            outcome = await service.commit(session_id, use_atomic_transaction=atomic)
            if outcome.success:
                service.backups.clear(connection_id)
                click.echo(f"Applied {outcome.applied_count} change(s).")
                return 0

            service.backups.snapshot(connection_id, session_id)
            logger.warning("Apply failed", connection_id=connection_id, status=outcome.status.value)
            click.echo(f"ERROR: {outcome.error}", err=True)
            for failed in outcome.failed_changes:
                click.echo(f"  change {failed.index + 1}: {failed.error}", err=True)
            return 1
        finally:
            await engine.dispose()

    raise SystemExit(asyncio.run(run()))


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Display RowSandbox configuration."""
    settings = _settings(ctx)

    click.echo(f"""
RowSandbox v{settings.app_version}
{'=' * 40}

Configuration:
  Environment:  {settings.environment}
  State Dir:    {ctx.obj["state_dir"]}

Journal:
  Max Changes:  {settings.max_changes_per_session}
  Debounce:     {settings.backup_debounce_seconds}s
  Partial:      {settings.partial_commit_policy}

Executor:
  Database:     {settings.database_url}
  Dialect:      {settings.sql_dialect}
  Read Only:    {settings.read_only}

Logging:
  Level:        {settings.log_level}
  Format:       {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI.

    This function is called when the `rowsandbox` command is run
    or when using `python -m rowsandbox`.
    """
    cli()


if __name__ == "__main__":
    main()
