"""Financial record commands."""

from collections import Counter
from pathlib import Path

import click

from pocketbook.cli.date_filters import PERIODS, parse_date_or_exit, resolve_cli_date_range
from pocketbook.cli.error_handling import (
    handle_domain_error,
    resolve_member_or_exit,
    resolve_reason_or_exit,
)
from pocketbook.domain.csv_export import CSVExportService
from pocketbook.domain.csv_import import CSVImportService
from pocketbook.domain.entities import EntityKind, MovementType, format_date
from pocketbook.domain.member import MemberService
from pocketbook.domain.reason import ReasonService
from pocketbook.domain.record import FILTER_FIELDS, RecordService
from pocketbook.utils.amount_parser import parse_amount

MOVEMENT_CHOICES = [m.name.lower() for m in MovementType] + [m.value.lower() for m in MovementType]


def _parse_amount_or_exit(ctx, value: str):
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)


@click.group()
def record_group():
    """Manage financial records."""
    pass


@record_group.command("add")
@click.option("--date", "record_date", default="today", help="Record date (dd/mm/yyyy or relative like 'today'); default today")
@click.option("--member", required=True, help="Member name or ID")
@click.option("--reason", required=True, help="Reason description or ID")
@click.option("--type", "movement_type", type=click.Choice(MOVEMENT_CHOICES, case_sensitive=False), required=True, help="Movement type")
@click.option("--amount", required=True, help="Amount; the sign follows the movement type")
@click.option("--description", default="", help="Free text description")
@click.pass_context
def add_record(ctx, record_date: str, member: str, reason: str, movement_type: str, amount: str, description: str):
    """Add a financial record.

    Examples:
        pocketbook record add --member Beto --reason Renta --type expense --amount 200 --date 01/06/2024
        pocketbook record add --member Ana --reason Sueldo --type ingresos --amount 1500
    """
    ledger = ctx.obj["ledger"]
    found_member = resolve_member_or_exit(ctx, MemberService(ledger), member)
    found_reason = resolve_reason_or_exit(ctx, ReasonService(ledger), reason)
    parsed_date = parse_date_or_exit(ctx, record_date)
    parsed_amount = _parse_amount_or_exit(ctx, amount)

    try:
        record = RecordService(ledger).add_record(
            date=parsed_date,
            member_id=found_member.id,
            reason_id=found_reason.id,
            movement_type=movement_type,
            amount=parsed_amount,
            description=description,
        )
        click.echo(f"Created record {record.id}: {format_date(record.date)} {record.amount:,.2f}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@record_group.command("list")
@click.option("--filter", "filter_field", type=click.Choice(sorted(FILTER_FIELDS)), default="description", help="Field the query applies to")
@click.option("--query", "-q", help="Text the field must contain")
@click.option("--page", type=int, default=1, help="Page number")
@click.option("--per-page", type=int, default=20, help="Records per page")
@click.option("--from", "start_date", help="Earliest date (inclusive)")
@click.option("--to", "end_date", help="Latest date (inclusive)")
@click.option("--period", type=click.Choice(PERIODS), help="Named period instead of --from/--to")
@click.pass_context
def list_records(ctx, filter_field: str, query: str | None, page: int, per_page: int, start_date: str | None, end_date: str | None, period: str | None):
    """List records, newest first.

    Examples:
        pocketbook record list
        pocketbook record list --filter member -q beto
        pocketbook record list --period this-month --page 2
    """
    ledger = ctx.obj["ledger"]
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)

    try:
        result = RecordService(ledger).browse(
            filter_field=filter_field,
            query=query,
            page=page,
            per_page=per_page,
            start_date=start,
            end_date=end,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if not result.records:
        click.echo("No records found.")
        return

    store = ledger.store
    click.echo(f"\nRecords (page {result.page} of {result.total_pages}, {result.total} total):")
    click.echo("-" * 100)
    for record in result.records:
        member = store.get(EntityKind.MEMBER, record.member_id, include_deleted=True)
        reason = store.get(EntityKind.REASON, record.reason_id, include_deleted=True)
        click.echo(
            f"{format_date(record.date)} | {record.amount:>12,.2f} | "
            f"{record.movement_type.value:9s} | {(member.name if member else '?'):15s} | "
            f"{(reason.description if reason else '?'):15s} | {record.description}"
        )
        click.echo(f"{'':10s}   ID: {record.id}")


@record_group.command("edit")
@click.argument("record_id")
@click.option("--date", "record_date", help="New date")
@click.option("--member", help="New member name or ID")
@click.option("--reason", help="New reason description or ID")
@click.option("--type", "movement_type", type=click.Choice(MOVEMENT_CHOICES, case_sensitive=False), help="New movement type")
@click.option("--amount", help="New amount")
@click.option("--description", help="New description")
@click.pass_context
def edit_record(ctx, record_id: str, record_date: str | None, member: str | None, reason: str | None, movement_type: str | None, amount: str | None, description: str | None):
    """Edit a record. Only the given fields change."""
    ledger = ctx.obj["ledger"]
    member_id = resolve_member_or_exit(ctx, MemberService(ledger), member).id if member else None
    reason_id = resolve_reason_or_exit(ctx, ReasonService(ledger), reason).id if reason else None
    parsed_date = parse_date_or_exit(ctx, record_date) if record_date else None
    parsed_amount = _parse_amount_or_exit(ctx, amount) if amount else None

    try:
        record = RecordService(ledger).update_record(
            record_id,
            date=parsed_date,
            member_id=member_id,
            reason_id=reason_id,
            movement_type=movement_type,
            amount=parsed_amount,
            description=description,
        )
        click.echo(f"Updated record {record.id}: {format_date(record.date)} {record.amount:,.2f}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@record_group.command("delete")
@click.argument("record_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_record(ctx, record_id: str, yes: bool):
    """Delete a record."""
    service = RecordService(ctx.obj["ledger"])
    if not yes and not click.confirm(f"Are you sure you want to delete record {record_id}?"):
        click.echo("Deletion cancelled.")
        return
    try:
        service.delete_record(record_id)
        click.echo(f"Deleted record {record_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@record_group.command("dates")
@click.pass_context
def record_dates(ctx):
    """List the days that have records, with their record count."""
    ledger = ctx.obj["ledger"]
    counts = Counter(r.date for r in ledger.store.records())
    if not counts:
        click.echo("No records found.")
        return
    for day in sorted(RecordService(ledger).record_dates(), reverse=True):
        click.echo(f"{format_date(day)}  {counts[day]}")


@record_group.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--mode", type=click.Choice(["add", "replace"]), default="add", help="add appends; replace removes every record first")
@click.pass_context
def import_records(ctx, csv_file: str, mode: str):
    """Import records from a CSV file.

    The header must contain fecha, integranteNombre, movimiento,
    razonDescripcion, descripcion and monto.
    """
    service = CSVImportService(ctx.obj["ledger"])
    try:
        result = service.import_records_file(csv_file, mode)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Imported {result.created} records ({result.removed} removed)")


@record_group.command("export")
@click.option("--filter", "filter_field", type=click.Choice(sorted(FILTER_FIELDS)), default="description", help="Field the query applies to")
@click.option("--query", "-q", help="Text the field must contain")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to this file instead of stdout")
@click.pass_context
def export_records(ctx, filter_field: str, query: str | None, output: str | None):
    """Export records as CSV."""
    ledger = ctx.obj["ledger"]
    text = CSVExportService(ledger.store, RecordService(ledger)).export_records(filter_field, query)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Exported records to {output}")
    else:
        click.echo(text, nl=False)


def register_commands(cli):
    """Register record commands with main CLI."""
    cli.add_command(record_group, name="record")
