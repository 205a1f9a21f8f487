"""Synchronization commands."""

import asyncio
from datetime import timedelta

import click

from pocketbook.remote import create_remote_store
from pocketbook.sync.engine import SyncEngine, SyncStatus


def _build_engine(ctx, connect: bool = True) -> SyncEngine:
    ledger = ctx.obj["ledger"]
    settings = ctx.obj["settings"]
    remote = create_remote_store(settings.remote_url) if connect else None
    return SyncEngine(ledger.store, ledger.queue, remote, settings.owner_id)


async def _close(engine: SyncEngine) -> None:
    if engine.remote is not None:
        await engine.remote.close()


async def _run_sync(engine: SyncEngine):
    try:
        return await engine.sync()
    finally:
        await _close(engine)


@click.group()
def sync_group():
    """Synchronize with the remote store."""
    pass


@sync_group.command("run")
@click.pass_context
def run_sync(ctx):
    """Push queued changes, then pull and merge remote changes."""
    engine = _build_engine(ctx)
    result = asyncio.run(_run_sync(engine))

    if result.status is SyncStatus.DISABLED:
        click.echo("Error: No remote store configured (set POCKETBOOK_REMOTE_URL or --remote-url)", err=True)
        ctx.exit(1)

    click.echo(
        f"Sync {result.status.value}: pushed {result.pushed}, pulled {result.pulled}, "
        f"merged {result.merged}"
    )
    for rejected in result.rejected:
        click.echo(f"Rejected: {rejected}", err=True)
    for error in result.errors:
        click.echo(f"Error: {error}", err=True)
    if result.status in (SyncStatus.FAILED, SyncStatus.PARTIAL):
        ctx.exit(1)


@sync_group.command("status")
@click.pass_context
def sync_status(ctx):
    """Show pending operations and the last sync watermark."""
    engine = _build_engine(ctx)
    try:
        overview = engine.overview()
    finally:
        asyncio.run(_close(engine))
    click.echo(f"Remote store:    {'configured' if overview.remote_available else 'not configured'}")
    click.echo(f"Pending changes: {overview.pending}")
    click.echo(f"Dead letters:    {overview.dead_letters}")
    watermark = overview.watermark.isoformat() if overview.watermark else "never synced"
    click.echo(f"Last sync:       {watermark}")

    for operation in engine.queue.dead_letters():
        click.echo(f"  #{operation.seq} {operation.describe()} ({operation.attempts} attempts): {operation.last_error}")


@sync_group.command("requeue")
@click.pass_context
def requeue(ctx):
    """Return dead-lettered operations to the queue for another try."""
    count = ctx.obj["ledger"].queue.requeue_dead_letters()
    click.echo(f"Requeued {count} operation{'s' if count != 1 else ''}")


@sync_group.command("compact")
@click.option("--retention-days", type=int, help="Minimum tombstone age in days (default from POCKETBOOK_TOMBSTONE_RETENTION_DAYS)")
@click.pass_context
def compact(ctx, retention_days: int | None):
    """Remove old tombstones already confirmed by the remote store."""
    settings = ctx.obj["settings"]
    retention = timedelta(days=retention_days) if retention_days is not None else settings.tombstone_retention
    removed = _build_engine(ctx, connect=False).compact(retention)
    click.echo(f"Removed {removed} tombstone{'s' if removed != 1 else ''}")


def register_commands(cli):
    """Register sync commands with main CLI."""
    cli.add_command(sync_group, name="sync")
