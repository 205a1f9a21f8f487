"""CLI error handling helpers."""

from typing import Optional

import click

from pocketbook.domain.entities import Member, Reason
from pocketbook.domain.errors import DomainError, ImportParseError
from pocketbook.domain.member import MemberService
from pocketbook.domain.reason import ReasonService


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    if isinstance(error, ImportParseError) and len(error.errors) > 1:
        click.echo(f"Error: import failed with {len(error.errors)} problems:", err=True)
        for problem in error.errors:
            click.echo(f"  {problem}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def resolve_member_or_exit(ctx: click.Context, service: MemberService, member: str) -> Member:
    """Resolve a member name or ID, or exit with a CLI error."""
    found: Optional[Member] = service.find_member(member)
    if found is None:
        click.echo(f"Error: Member '{member}' not found", err=True)
        ctx.exit(1)
    return found


def resolve_reason_or_exit(ctx: click.Context, service: ReasonService, reason: str) -> Reason:
    """Resolve a reason description or ID, or exit with a CLI error."""
    found: Optional[Reason] = service.find_reason(reason)
    if found is None:
        click.echo(f"Error: Reason '{reason}' not found", err=True)
        ctx.exit(1)
    return found
