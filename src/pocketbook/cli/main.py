"""Main CLI entry point."""

import logging
from dataclasses import replace

import click

from pocketbook.config import Settings
from pocketbook.database.factories import create_sqlite_database
from pocketbook.domain.ledger import Ledger
from pocketbook.domain.queue import PendingOperationQueue
from pocketbook.domain.store import EntityStore

# Command groups, registered below
from pocketbook.cli.commands import member, reason, record, sync


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides POCKETBOOK_DB_PATH environment variable)",
    envvar="POCKETBOOK_DB_PATH",
)
@click.option(
    "--remote-url",
    help="Remote store URL: memory:// or a SQLAlchemy URL (overrides POCKETBOOK_REMOTE_URL)",
    envvar="POCKETBOOK_REMOTE_URL",
)
@click.option(
    "--owner",
    help="Owner ID of the local data (overrides POCKETBOOK_OWNER_ID)",
    envvar="POCKETBOOK_OWNER_ID",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, remote_url: str | None, owner: str | None, verbose: bool):
    """Pocketbook - Offline-first finance tracker.

    Record income, expenses and investments per member and reason, import
    and export them as CSV, and synchronize with a remote store when one is
    configured.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # --help and bare group invocations never open the store
    if ctx.invoked_subcommand is not None:
        settings = Settings.from_env()
        settings = replace(
            settings,
            db_path=db_path or settings.db_path,
            remote_url=remote_url or settings.remote_url,
            owner_id=owner or settings.owner_id,
        )
        db = create_sqlite_database(database_path=settings.db_path)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)

        store = EntityStore(db)
        queue = PendingOperationQueue(db, max_attempts=settings.max_attempts)
        ctx.obj["settings"] = settings
        ctx.obj["db"] = db
        ctx.obj["ledger"] = Ledger(store, queue, owner_id=settings.owner_id)


member.register_commands(cli)
reason.register_commands(cli)
record.register_commands(cli)
sync.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
