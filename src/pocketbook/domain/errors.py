"""Shared domain error messages and error types."""

from typing import Iterable


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist or was deleted."""


class ProtectedEntityError(DomainError):
    """Mutation or deletion attempted on a protected member or reason."""


class ReferentialIntegrityError(DomainError):
    """Operation blocked because live records still reference the entity."""


class ImportParseError(DomainError):
    """CSV input is structurally invalid; nothing was imported.

    Attributes:
        errors: Every problem found, one message per row or header issue
    """

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def member_not_found(member_id: str) -> str:
    """Return message for missing member."""
    return f"Member {member_id} not found"


def reason_not_found(reason_id: str) -> str:
    """Return message for missing reason."""
    return f"Reason {reason_id} not found"


def record_not_found(record_id: str) -> str:
    """Return message for missing record."""
    return f"Record {record_id} not found"


def duplicate_member(name: str) -> str:
    return f"A member named '{name}' already exists"


def duplicate_reason(description: str) -> str:
    return f"A reason described as '{description}' already exists"


def protected_entity(label: str, value: str) -> str:
    """Return message for an attempt to change a protected entity."""
    return f"Cannot modify or delete protected {label} '{value}'"


def delete_blocked(label: str, value: str, record_count: int) -> str:
    """Return message when a member or reason still has live records."""
    return (
        f"Cannot delete {label} '{value}': it is used by {record_count} "
        f"record{'s' if record_count != 1 else ''}. "
        "Please reassign or delete them first."
    )
