"""Member domain service."""

from typing import Optional

from pocketbook.domain import errors
from pocketbook.domain.entities import EntityKind, Member
from pocketbook.domain.errors import (
    NotFoundError,
    ProtectedEntityError,
    ReferentialIntegrityError,
    ValidationError,
)
from pocketbook.domain.ledger import Ledger

SORT_ORDERS = {
    "alpha-asc": (lambda m: m.name, False),
    "alpha-desc": (lambda m: m.name, True),
    "id-asc": (lambda m: m.id, False),
    "id-desc": (lambda m: m.id, True),
}


class MemberService:
    """Service for managing members (integrantes)."""

    def __init__(self, ledger: Ledger):
        """Initialize member service.

        Args:
            ledger: Shared store and pending queue
        """
        self.ledger = ledger
        self.store = ledger.store

    def _canonical_name(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Member name cannot be empty")
        return name.upper()

    def add_member(self, name: str, is_protected: bool = False) -> Member:
        """Create a member.

        Args:
            name: Member name; stored uppercase
            is_protected: Protect the member from edits, deletes and replace imports

        Returns:
            The new member

        Raises:
            ValidationError: If the name is empty or already used
        """
        canonical = self._canonical_name(name)
        if self.store.find_member_by_name(canonical) is not None:
            raise ValidationError(errors.duplicate_member(canonical))

        now = self.ledger.now()
        member = Member(
            id=self.ledger.new_id(),
            owner_id=self.ledger.owner_id,
            name=canonical,
            created_at=now,
            updated_at=now,
            is_protected=is_protected,
        )
        return self.ledger.create(member)

    def get_member(self, member_id: str) -> Optional[Member]:
        """Get a live member by ID."""
        return self.store.get(EntityKind.MEMBER, member_id)

    def require_member(self, member_id: str) -> Member:
        """Get a live member by ID.

        Raises:
            NotFoundError: If the member doesn't exist or was deleted
        """
        member = self.get_member(member_id)
        if member is None:
            raise NotFoundError(errors.member_not_found(member_id))
        return member

    def find_member(self, name_or_id: str) -> Optional[Member]:
        """Resolve a member by ID or, failing that, by name (case-insensitive)."""
        return self.get_member(name_or_id) or self.store.find_member_by_name(name_or_id)

    def rename_member(self, member_id: str, name: str) -> Member:
        """Rename a member.

        Raises:
            NotFoundError: If the member doesn't exist
            ProtectedEntityError: If the member is protected
            ValidationError: If the name is empty or used by another member
        """
        member = self.require_member(member_id)
        if member.is_protected:
            raise ProtectedEntityError(errors.protected_entity("member", member.name))

        canonical = self._canonical_name(name)
        existing = self.store.find_member_by_name(canonical)
        if existing is not None and existing.id != member_id:
            raise ValidationError(errors.duplicate_member(canonical))
        if canonical == member.name:
            return member

        return self.ledger.update(member, name=canonical)

    def delete_member(self, member_id: str) -> None:
        """Delete a member (soft delete).

        Raises:
            NotFoundError: If the member doesn't exist
            ProtectedEntityError: If the member is protected
            ReferentialIntegrityError: If live records reference the member
        """
        member = self.require_member(member_id)
        if member.is_protected:
            raise ProtectedEntityError(errors.protected_entity("member", member.name))

        record_count = self.store.references_to(EntityKind.MEMBER, member_id)
        if record_count > 0:
            raise ReferentialIntegrityError(
                errors.delete_blocked("member", member.name, record_count)
            )

        self.ledger.soft_delete(member)

    def list_members(self, search: Optional[str] = None, sort: str = "alpha-asc") -> list[Member]:
        """List live members.

        Args:
            search: Optional case-insensitive substring of the name
            sort: One of alpha-asc, alpha-desc, id-asc, id-desc

        Returns:
            List of members
        """
        if sort not in SORT_ORDERS:
            raise ValidationError(f"Unknown sort order '{sort}'")

        members = self.store.members()
        if search:
            needle = search.strip().lower()
            members = [m for m in members if needle in m.name.lower()]

        key, reverse = SORT_ORDERS[sort]
        return sorted(members, key=key, reverse=reverse)
