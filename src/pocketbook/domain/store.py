"""In-memory entity store backed by the local database."""

import logging
from datetime import date
from typing import TYPE_CHECKING, Optional

from pocketbook.domain.entities import Entity, EntityKind, Member, Reason, Record

if TYPE_CHECKING:
    from pocketbook.database.base import Database

logger = logging.getLogger(__name__)


class EntityStore:
    """Owned collections of members, reasons and records keyed by id.

    Soft-deleted entities (tombstones) are kept so their deletion can reach
    the remote store; every read excludes them unless asked otherwise. Every
    change is written through to the local database immediately.

    Only the mutation services and the sync engine's merge phase write here.
    """

    def __init__(self, db: "Database"):
        """Load the store from the local database.

        Args:
            db: Database instance
        """
        self.db = db
        self._entities: dict[EntityKind, dict[str, Entity]] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read every collection from the local database."""
        for kind in EntityKind:
            self._entities[kind] = {e.id: e for e in self.db.load_entities(kind)}
        logger.debug(
            "Loaded store: %s",
            ", ".join(f"{kind.value}={len(items)}" for kind, items in self._entities.items()),
        )

    def get(self, kind: EntityKind, entity_id: str, include_deleted: bool = False) -> Optional[Entity]:
        """Get an entity by id, or None if missing (or deleted)."""
        entity = self._entities[kind].get(entity_id)
        if entity is None or (entity.is_deleted and not include_deleted):
            return None
        return entity

    def entities(self, kind: EntityKind, include_deleted: bool = False) -> list[Entity]:
        """List entities of a kind in insertion order."""
        return [
            e for e in self._entities[kind].values() if include_deleted or not e.is_deleted
        ]

    def upsert(self, entity: Entity) -> None:
        """Insert or replace an entity and persist it."""
        self.db.save_entity(entity)
        self._entities[entity.kind][entity.id] = entity

    def remove(self, kind: EntityKind, entity_id: str) -> None:
        """Physically remove an entity (tombstone compaction only)."""
        self.db.delete_entity(kind, entity_id)
        self._entities[kind].pop(entity_id, None)

    # Lookups used by the services
    def find_member_by_name(self, name: str) -> Optional[Member]:
        """Find a live member by name, case-insensitively."""
        key = name.strip().lower()
        for member in self.entities(EntityKind.MEMBER):
            if member.key == key:
                return member
        return None

    def find_reason_by_description(self, description: str) -> Optional[Reason]:
        """Find a live reason by description, case-insensitively."""
        key = description.strip().lower()
        for reason in self.entities(EntityKind.REASON):
            if reason.key == key:
                return reason
        return None

    def references_to(self, kind: EntityKind, entity_id: str) -> int:
        """Count live records referencing a member or reason."""
        if kind is EntityKind.MEMBER:
            return sum(1 for r in self.entities(EntityKind.RECORD) if r.member_id == entity_id)
        if kind is EntityKind.REASON:
            return sum(1 for r in self.entities(EntityKind.RECORD) if r.reason_id == entity_id)
        return 0

    def record_dates(self) -> set[date]:
        """Calendar days that have at least one live record."""
        return {r.date for r in self.entities(EntityKind.RECORD)}

    def counts(self) -> dict[str, int]:
        """Live entity count per collection."""
        return {kind.value: len(self.entities(kind)) for kind in EntityKind}

    def members(self) -> list[Member]:
        return self.entities(EntityKind.MEMBER)

    def reasons(self) -> list[Reason]:
        return self.entities(EntityKind.REASON)

    def records(self) -> list[Record]:
        return self.entities(EntityKind.RECORD)
