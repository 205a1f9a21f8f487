"""Reason management commands."""

from pathlib import Path

import click

from pocketbook.cli.error_handling import handle_domain_error, resolve_reason_or_exit
from pocketbook.domain.csv_export import CSVExportService
from pocketbook.domain.csv_import import CSVImportService
from pocketbook.domain.reason import SORT_ORDERS, ReasonService
from pocketbook.domain.record import RecordService


@click.group()
def reason_group():
    """Manage reasons (razones)."""
    pass


@reason_group.command("add")
@click.argument("description")
@click.option("--quick", is_flag=True, help="Offer as a quick reason")
@click.option("--protected", is_flag=True, help="Protect the reason from edits, deletes and replace imports")
@click.pass_context
def add_reason(ctx, description: str, quick: bool, protected: bool):
    """Add a reason. Descriptions are stored in uppercase.

    Examples:
        pocketbook reason add "Renta"
        pocketbook reason add "Comida" --quick
    """
    service = ReasonService(ctx.obj["ledger"])
    try:
        reason = service.add_reason(description, is_quick_reason=quick, is_protected=protected)
        click.echo(f"Created reason '{reason.description}' (ID: {reason.id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@reason_group.command("list")
@click.option("--search", help="Only reasons whose description contains this text")
@click.option("--quick-only", is_flag=True, help="Only quick reasons")
@click.option("--sort", type=click.Choice(sorted(SORT_ORDERS)), default="alpha-asc", help="Sort order (default: alpha-asc)")
@click.pass_context
def list_reasons(ctx, search: str | None, quick_only: bool, sort: str):
    """List reasons."""
    service = ReasonService(ctx.obj["ledger"])
    reasons = service.list_reasons(search=search, quick_only=quick_only, sort=sort)
    if not reasons:
        click.echo("No reasons found.")
        return

    click.echo("\nReasons:")
    click.echo("-" * 60)
    for reason in reasons:
        flags = []
        if reason.is_quick_reason:
            flags.append("quick")
        if reason.is_protected:
            flags.append("protected")
        flag_text = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"{reason.description:20s} | ID: {reason.id}{flag_text}")


@reason_group.command("update")
@click.argument("reason", metavar="REASON")
@click.option("--description", help="New description")
@click.option("--quick/--no-quick", default=None, help="Set or clear the quick-reason flag")
@click.pass_context
def update_reason(ctx, reason: str, description: str | None, quick: bool | None):
    """Update a reason.

    REASON can be a reason description or ID. Only the given fields change.
    """
    if description is None and quick is None:
        click.echo("Error: Nothing to update; pass --description or --quick/--no-quick", err=True)
        ctx.exit(1)

    service = ReasonService(ctx.obj["ledger"])
    found = resolve_reason_or_exit(ctx, service, reason)
    try:
        updated = service.update_reason(found.id, description=description, is_quick_reason=quick)
        click.echo(f"Updated reason '{updated.description}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@reason_group.command("delete")
@click.argument("reason", metavar="REASON")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_reason(ctx, reason: str, yes: bool):
    """Delete a reason.

    REASON can be a reason description or ID. A reason can only be deleted
    when no record refers to it.
    """
    service = ReasonService(ctx.obj["ledger"])
    found = resolve_reason_or_exit(ctx, service, reason)

    if not yes and not click.confirm(f"Are you sure you want to delete reason '{found.description}'?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_reason(found.id)
        click.echo(f"Deleted reason '{found.description}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@reason_group.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--mode", type=click.Choice(["add", "replace"]), default="add", help="add skips existing descriptions; replace removes unprotected reasons first")
@click.pass_context
def import_reasons(ctx, csv_file: str, mode: str):
    """Import reasons from a CSV file with a 'descripcion' column."""
    service = CSVImportService(ctx.obj["ledger"])
    try:
        result = service.import_reasons_file(csv_file, mode)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Imported {result.created} reasons ({result.skipped} skipped, {result.removed} removed)")


@reason_group.command("export")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to this file instead of stdout")
@click.pass_context
def export_reasons(ctx, output: str | None):
    """Export reasons as CSV."""
    ledger = ctx.obj["ledger"]
    text = CSVExportService(ledger.store, RecordService(ledger)).export_reasons()
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Exported reasons to {output}")
    else:
        click.echo(text, nl=False)


def register_commands(cli):
    """Register reason commands with main CLI."""
    cli.add_command(reason_group, name="reason")
