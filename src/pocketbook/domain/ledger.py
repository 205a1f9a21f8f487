"""Shared mutation plumbing for the domain services.

A ``Ledger`` bundles the entity store, the pending operation queue, the
owner id and the clock. Services validate input and then call
``create``/``update``/``soft_delete`` here, which apply the change to the
store optimistically and queue the equivalent remote operation.

Mutations are always queued, never sent to the remote store directly; the
sync engine is the only component that talks to the remote store, so a
mutation can never be applied twice by a concurrent sync pass.
"""

import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from pocketbook.domain.entities import (
    Entity,
    OperationType,
    entity_to_document,
    fields_to_document,
    utc_now,
)
from pocketbook.domain.queue import PendingOperationQueue
from pocketbook.domain.store import EntityStore

DEFAULT_OWNER_ID = "default-user"


class Ledger:
    """Entity store plus pending queue, mutated as one unit."""

    def __init__(
        self,
        store: EntityStore,
        queue: PendingOperationQueue,
        owner_id: str = DEFAULT_OWNER_ID,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the ledger.

        Args:
            store: Entity store
            queue: Pending operation queue (must share the store's database)
            owner_id: Owner of every entity created through this ledger
            clock: Returns the current aware UTC time; defaults to the wall clock
        """
        self.store = store
        self.queue = queue
        self.owner_id = owner_id
        self.clock = clock or utc_now

    def now(self, not_before: Optional[datetime] = None) -> datetime:
        """Current time, never earlier than ``not_before``."""
        current = self.clock()
        if not_before is not None and current < not_before:
            return not_before
        return current

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Group several mutations so they persist together or not at all.

        On error the database transaction is rolled back and the in-memory
        store is reloaded from it before the exception propagates.
        """
        try:
            with self.store.db.atomic():
                yield
        except BaseException:
            self.store.reload()
            raise

    def create(self, entity: Entity) -> Entity:
        """Store a new entity and queue its creation."""
        with self.atomic():
            self.store.upsert(entity)
            self.queue.enqueue(
                OperationType.CREATE, entity.kind, entity.id, entity_to_document(entity)
            )
        return entity

    def update(self, entity: Entity, **changes: Any) -> Entity:
        """Apply a partial update, bump ``updated_at`` and queue the changed fields."""
        changes["updated_at"] = self.now(not_before=entity.updated_at)
        updated = replace(entity, **changes)
        with self.atomic():
            self.store.upsert(updated)
            self.queue.enqueue(
                OperationType.UPDATE,
                entity.kind,
                entity.id,
                fields_to_document(entity.kind, changes),
            )
        return updated

    def soft_delete(self, entity: Entity) -> Entity:
        """Turn an entity into a tombstone and queue its deletion."""
        updated = replace(
            entity, is_deleted=True, updated_at=self.now(not_before=entity.updated_at)
        )
        with self.atomic():
            self.store.upsert(updated)
            self.queue.enqueue(OperationType.DELETE, entity.kind, entity.id)
        return updated
