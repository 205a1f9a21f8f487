"""CLI helpers for date options."""

from datetime import date
from typing import Optional

import click

from pocketbook.utils.date_parser import PERIOD_RANGES, get_date_range, parse_date

PERIODS = list(PERIOD_RANGES)


def parse_date_or_exit(ctx: click.Context, value: str, label: str = "date") -> date:
    """Parse a CLI date, or exit with a CLI error."""
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def resolve_cli_date_range(
    ctx: click.Context,
    *,
    start_date: Optional[str],
    end_date: Optional[str],
    period: Optional[str],
) -> tuple[Optional[date], Optional[date]]:
    """Resolve a date range from a named period or explicit bounds."""
    if period and (start_date or end_date):
        click.echo("Error: --period cannot be combined with --from or --to.", err=True)
        ctx.exit(1)

    if period:
        return get_date_range(period)

    start = parse_date_or_exit(ctx, start_date, "start date") if start_date else None
    end = parse_date_or_exit(ctx, end_date, "end date") if end_date else None
    if start and end and start > end:
        click.echo("Error: Start date is after end date.", err=True)
        ctx.exit(1)
    return start, end
