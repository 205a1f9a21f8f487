"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Any, ContextManager, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from pocketbook.domain.entities import (
    Entity,
    EntityKind,
    OperationStatus,
    OperationType,
    PendingOperation,
)


class Database(ABC):
    """Abstract local persistence interface for pocketbook.

    Stores the three entity collections, the pending operation queue and
    scalar sync metadata. Reads are synchronous; every write is committed
    immediately.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def atomic(self) -> ContextManager[None]:
        """Context manager grouping writes into one all-or-nothing commit."""
        pass

    # Entity operations
    @abstractmethod
    def load_entities(self, kind: EntityKind) -> list[Entity]:
        """Load every stored entity of a kind, tombstones included.

        Unreadable rows are skipped; an unreadable store yields an empty list.
        """
        pass

    @abstractmethod
    def save_entity(self, entity: Entity) -> None:
        """Insert or replace an entity."""
        pass

    @abstractmethod
    def delete_entity(self, kind: EntityKind, entity_id: str) -> None:
        """Physically remove an entity."""
        pass

    # Pending operation queue
    @abstractmethod
    def append_operation(
        self,
        op_type: OperationType,
        kind: EntityKind,
        entity_id: str,
        payload: dict[str, Any],
    ) -> PendingOperation:
        """Append a queued operation. Returns it with its sequence number."""
        pass

    @abstractmethod
    def list_operations(
        self, status: OperationStatus = OperationStatus.PENDING
    ) -> list[PendingOperation]:
        """List queued operations with a status, in sequence order."""
        pass

    @abstractmethod
    def update_operation(self, operation: PendingOperation) -> None:
        """Persist attempts, last error and status of a queued operation."""
        pass

    @abstractmethod
    def delete_operation(self, seq: int) -> None:
        """Remove a queued operation."""
        pass

    # Sync metadata
    @abstractmethod
    def get_meta(self, key: str) -> Optional[str]:
        """Get a sync metadata value."""
        pass

    @abstractmethod
    def set_meta(self, key: str, value: Optional[str]) -> None:
        """Set a sync metadata value."""
        pass
