"""Member management commands."""

from pathlib import Path

import click

from pocketbook.cli.error_handling import handle_domain_error, resolve_member_or_exit
from pocketbook.domain.csv_export import CSVExportService
from pocketbook.domain.csv_import import CSVImportService
from pocketbook.domain.member import SORT_ORDERS, MemberService
from pocketbook.domain.record import RecordService


@click.group()
def member_group():
    """Manage members (integrantes)."""
    pass


@member_group.command("add")
@click.argument("name")
@click.option("--protected", is_flag=True, help="Protect the member from edits, deletes and replace imports")
@click.pass_context
def add_member(ctx, name: str, protected: bool):
    """Add a member. Names are stored in uppercase.

    Examples:
        pocketbook member add "Beto"
        pocketbook member add "Casa" --protected
    """
    service = MemberService(ctx.obj["ledger"])
    try:
        member = service.add_member(name, is_protected=protected)
        click.echo(f"Created member '{member.name}' (ID: {member.id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@member_group.command("list")
@click.option("--search", help="Only members whose name contains this text")
@click.option("--sort", type=click.Choice(sorted(SORT_ORDERS)), default="alpha-asc", help="Sort order (default: alpha-asc)")
@click.pass_context
def list_members(ctx, search: str | None, sort: str):
    """List members."""
    service = MemberService(ctx.obj["ledger"])
    members = service.list_members(search=search, sort=sort)
    if not members:
        click.echo("No members found.")
        return

    click.echo("\nMembers:")
    click.echo("-" * 60)
    for member in members:
        flag = " [protected]" if member.is_protected else ""
        click.echo(f"{member.name:20s} | ID: {member.id}{flag}")


@member_group.command("rename")
@click.argument("member", metavar="MEMBER")
@click.argument("new_name", metavar="NEW_NAME")
@click.pass_context
def rename_member(ctx, member: str, new_name: str):
    """Rename a member.

    MEMBER can be a member name or ID.
    """
    service = MemberService(ctx.obj["ledger"])
    found = resolve_member_or_exit(ctx, service, member)
    try:
        renamed = service.rename_member(found.id, new_name)
        click.echo(f"Renamed member '{found.name}' to '{renamed.name}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@member_group.command("delete")
@click.argument("member", metavar="MEMBER")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_member(ctx, member: str, yes: bool):
    """Delete a member.

    MEMBER can be a member name or ID. A member can only be deleted when no
    record refers to it.
    """
    service = MemberService(ctx.obj["ledger"])
    found = resolve_member_or_exit(ctx, service, member)

    if not yes and not click.confirm(f"Are you sure you want to delete member '{found.name}'?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_member(found.id)
        click.echo(f"Deleted member '{found.name}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@member_group.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--mode", type=click.Choice(["add", "replace"]), default="add", help="add skips existing names; replace removes unprotected members first")
@click.pass_context
def import_members(ctx, csv_file: str, mode: str):
    """Import members from a CSV file with a 'nombre' column.

    Examples:
        pocketbook member import integrantes.csv
        pocketbook member import integrantes.csv --mode replace
    """
    service = CSVImportService(ctx.obj["ledger"])
    try:
        result = service.import_members_file(csv_file, mode)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Imported {result.created} members ({result.skipped} skipped, {result.removed} removed)")


@member_group.command("export")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to this file instead of stdout")
@click.pass_context
def export_members(ctx, output: str | None):
    """Export members as CSV."""
    ledger = ctx.obj["ledger"]
    text = CSVExportService(ledger.store, RecordService(ledger)).export_members()
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Exported members to {output}")
    else:
        click.echo(text, nl=False)


def register_commands(cli):
    """Register member commands with main CLI."""
    cli.add_command(member_group, name="member")
