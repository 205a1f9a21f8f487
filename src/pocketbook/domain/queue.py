"""Pending operation queue.

Every local mutation is appended here, in the order performed, so the sync
engine can replay it against the remote store. The queue lives in the local
database: an operation is durable as soon as ``enqueue`` returns, and
``drain`` always re-reads it from there.

Invariants:
    - Replay order is enqueue order (the persistence sequence number)
    - An operation leaves the queue only through ``acknowledge`` after its
      remote effect is committed, or by being dead-lettered
    - Failures never reorder the operations that remain
"""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Iterator

from pocketbook.domain.entities import (
    EntityKind,
    OperationStatus,
    OperationType,
    PendingOperation,
)

if TYPE_CHECKING:
    from pocketbook.database.base import Database

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class PendingOperationQueue:
    """Ordered, persisted log of mutations not yet pushed to the remote store."""

    def __init__(self, db: "Database", max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        """Initialize the queue.

        Args:
            db: Database instance holding the queue
            max_attempts: Failed push attempts after which an operation is
                dead-lettered instead of retried
        """
        self.db = db
        self.max_attempts = max_attempts

    def enqueue(
        self,
        op_type: OperationType,
        kind: EntityKind,
        entity_id: str,
        payload: dict[str, Any] | None = None,
    ) -> PendingOperation:
        """Append an operation and persist it.

        Args:
            op_type: Create, update or delete
            kind: Target collection
            entity_id: Target entity id
            payload: Full document for creates, changed fields for updates

        Returns:
            The queued operation
        """
        operation = self.db.append_operation(op_type, kind, entity_id, payload or {})
        logger.debug("Queued #%s %s", operation.seq, operation.describe())
        return operation

    def drain(self) -> Iterator[PendingOperation]:
        """Yield pending operations in enqueue order.

        The sequence is read from persistence when iteration starts; to see
        operations enqueued later, call ``drain`` again.
        """
        yield from self.db.list_operations(OperationStatus.PENDING)

    def pending(self) -> list[PendingOperation]:
        """Snapshot of pending operations in enqueue order."""
        return list(self.drain())

    def acknowledge(self, operation: PendingOperation) -> None:
        """Remove an operation whose remote effect has been committed."""
        self.db.delete_operation(operation.seq)
        logger.debug("Acknowledged #%s %s", operation.seq, operation.describe())

    def record_failure(self, operation: PendingOperation, error: str) -> PendingOperation:
        """Count a failed push attempt, dead-lettering at the attempt cap.

        Returns:
            The updated operation
        """
        attempts = operation.attempts + 1
        status = OperationStatus.PENDING
        if attempts >= self.max_attempts:
            status = OperationStatus.DEAD
            logger.warning(
                "Operation #%s %s exceeded %s attempts, moving to dead letters",
                operation.seq,
                operation.describe(),
                self.max_attempts,
            )
        updated = replace(operation, attempts=attempts, last_error=error[:500], status=status)
        self.db.update_operation(updated)
        return updated

    def reject(self, operation: PendingOperation, error: str) -> PendingOperation:
        """Dead-letter an operation the remote store refused permanently."""
        updated = replace(
            operation,
            attempts=operation.attempts + 1,
            last_error=error[:500],
            status=OperationStatus.DEAD,
        )
        self.db.update_operation(updated)
        logger.warning("Operation #%s %s rejected: %s", operation.seq, operation.describe(), error)
        return updated

    def dead_letters(self) -> list[PendingOperation]:
        """Operations that will not be retried automatically."""
        return self.db.list_operations(OperationStatus.DEAD)

    def requeue_dead_letters(self) -> int:
        """Return dead-lettered operations to the queue with a fresh attempt count.

        They keep their original sequence numbers, so they replay in their
        original position relative to other pending operations.

        Returns:
            Number of operations requeued
        """
        dead = self.dead_letters()
        for operation in dead:
            self.db.update_operation(
                replace(operation, attempts=0, last_error=None, status=OperationStatus.PENDING)
            )
        return len(dead)

    def has_pending_for(self, kind: EntityKind, entity_id: str) -> bool:
        """Whether any pending operation targets the entity."""
        return any(op.kind is kind and op.entity_id == entity_id for op in self.drain())

    def __len__(self) -> int:
        return len(self.pending())
