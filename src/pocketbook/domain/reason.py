"""Reason domain service."""

from typing import Optional

from pocketbook.domain import errors
from pocketbook.domain.entities import EntityKind, Reason
from pocketbook.domain.errors import (
    NotFoundError,
    ProtectedEntityError,
    ReferentialIntegrityError,
    ValidationError,
)
from pocketbook.domain.ledger import Ledger

SORT_ORDERS = {
    "alpha-asc": (lambda r: r.description, False),
    "alpha-desc": (lambda r: r.description, True),
    "id-asc": (lambda r: r.id, False),
    "id-desc": (lambda r: r.id, True),
}


class ReasonService:
    """Service for managing reasons (razones)."""

    def __init__(self, ledger: Ledger):
        """Initialize reason service.

        Args:
            ledger: Shared store and pending queue
        """
        self.ledger = ledger
        self.store = ledger.store

    def _canonical_description(self, description: str) -> str:
        description = (description or "").strip()
        if not description:
            raise ValidationError("Reason description cannot be empty")
        return description.upper()

    def add_reason(
        self, description: str, is_quick_reason: bool = False, is_protected: bool = False
    ) -> Reason:
        """Create a reason.

        Args:
            description: Reason description; stored uppercase
            is_quick_reason: Offer the reason as a one-click choice
            is_protected: Protect the reason from edits, deletes and replace imports

        Returns:
            The new reason

        Raises:
            ValidationError: If the description is empty or already used
        """
        canonical = self._canonical_description(description)
        if self.store.find_reason_by_description(canonical) is not None:
            raise ValidationError(errors.duplicate_reason(canonical))

        now = self.ledger.now()
        reason = Reason(
            id=self.ledger.new_id(),
            owner_id=self.ledger.owner_id,
            description=canonical,
            created_at=now,
            updated_at=now,
            is_quick_reason=is_quick_reason,
            is_protected=is_protected,
        )
        return self.ledger.create(reason)

    def get_reason(self, reason_id: str) -> Optional[Reason]:
        """Get a live reason by ID."""
        return self.store.get(EntityKind.REASON, reason_id)

    def require_reason(self, reason_id: str) -> Reason:
        """Get a live reason by ID.

        Raises:
            NotFoundError: If the reason doesn't exist or was deleted
        """
        reason = self.get_reason(reason_id)
        if reason is None:
            raise NotFoundError(errors.reason_not_found(reason_id))
        return reason

    def find_reason(self, description_or_id: str) -> Optional[Reason]:
        """Resolve a reason by ID or, failing that, by description (case-insensitive)."""
        return self.get_reason(description_or_id) or self.store.find_reason_by_description(
            description_or_id
        )

    def update_reason(
        self,
        reason_id: str,
        description: Optional[str] = None,
        is_quick_reason: Optional[bool] = None,
    ) -> Reason:
        """Update reason fields.

        Args:
            reason_id: Reason ID to update
            description: Optional new description
            is_quick_reason: Optional new quick-reason flag

        Raises:
            NotFoundError: If the reason doesn't exist
            ProtectedEntityError: If the reason is protected
            ValidationError: If the description is empty or used by another reason
        """
        reason = self.require_reason(reason_id)
        if reason.is_protected:
            raise ProtectedEntityError(errors.protected_entity("reason", reason.description))

        changes = {}
        if description is not None:
            canonical = self._canonical_description(description)
            existing = self.store.find_reason_by_description(canonical)
            if existing is not None and existing.id != reason_id:
                raise ValidationError(errors.duplicate_reason(canonical))
            if canonical != reason.description:
                changes["description"] = canonical
        if is_quick_reason is not None and is_quick_reason != reason.is_quick_reason:
            changes["is_quick_reason"] = is_quick_reason

        if not changes:
            return reason
        return self.ledger.update(reason, **changes)

    def delete_reason(self, reason_id: str) -> None:
        """Delete a reason (soft delete).

        Raises:
            NotFoundError: If the reason doesn't exist
            ProtectedEntityError: If the reason is protected
            ReferentialIntegrityError: If live records reference the reason
        """
        reason = self.require_reason(reason_id)
        if reason.is_protected:
            raise ProtectedEntityError(errors.protected_entity("reason", reason.description))

        record_count = self.store.references_to(EntityKind.REASON, reason_id)
        if record_count > 0:
            raise ReferentialIntegrityError(
                errors.delete_blocked("reason", reason.description, record_count)
            )

        self.ledger.soft_delete(reason)

    def list_reasons(
        self,
        search: Optional[str] = None,
        quick_only: bool = False,
        sort: str = "alpha-asc",
    ) -> list[Reason]:
        """List live reasons.

        Args:
            search: Optional case-insensitive substring of the description
            quick_only: Only quick reasons
            sort: One of alpha-asc, alpha-desc, id-asc, id-desc
        """
        if sort not in SORT_ORDERS:
            raise ValidationError(f"Unknown sort order '{sort}'")

        reasons = self.store.reasons()
        if search:
            needle = search.strip().lower()
            reasons = [r for r in reasons if needle in r.description.lower()]
        if quick_only:
            reasons = [r for r in reasons if r.is_quick_reason]

        key, reverse = SORT_ORDERS[sort]
        return sorted(reasons, key=key, reverse=reverse)
