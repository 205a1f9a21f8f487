"""
Remote document store contract.

A remote store holds one document per entity, grouped in the fixed
collections named by ``EntityKind`` and scoped by owner (``userId``). It is
the shared copy that every replica pushes to and pulls from.

Invariants:
    - The store stamps ``updatedAt`` on every write (and ``createdAt`` on
      create) with its own clock; stamps are strictly increasing per store,
      so ``query_by_owner(updated_after=...)`` is a reliable change cursor
    - ``batch_write`` commits all of its writes or none of them
    - Documents whose stored ``isProtected`` is true are never updated or
      deleted (``RemoteRejectedError``)
    - Deletes are soft: the document stays with ``isDeleted: true``

How to change safely:
    - Contract changes require updating every implementation
    - Keep write validation in ``apply_write`` so implementations agree
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pocketbook.domain.entities import (
    EntityKind,
    OperationType,
    as_utc,
    timestamp_from_document,
    utc_now,
)

logger = logging.getLogger(__name__)

# Largest batch the hosted document database accepts
DEFAULT_MAX_BATCH_SIZE = 500


class RemoteStoreError(Exception):
    """Base exception for remote store operations."""


class RemoteUnavailableError(RemoteStoreError):
    """Remote store unreachable or misconfigured. Transient; retry later."""


class RemoteRejectedError(RemoteStoreError):
    """Remote store refused a write permanently (protected or missing document)."""


class BatchWriteError(RemoteStoreError):
    """A write inside a batch failed; nothing in the batch was committed.

    Attributes:
        index: Position of the failing write in the batch
        cause: Error raised by that write
    """

    def __init__(self, index: int, cause: Exception):
        self.index = index
        self.cause = cause
        super().__init__(f"Batch write {index} failed: {cause}")


@dataclass(frozen=True)
class RemoteWrite:
    """One write of a batch.

    Attributes:
        op_type: Create, update or (soft) delete
        kind: Target collection
        entity_id: Document id (client-generated)
        owner_id: Owner the document belongs to
        fields: Full document for creates, changed fields for updates
    """

    op_type: OperationType
    kind: EntityKind
    entity_id: str
    owner_id: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoteDocument:
    """A document read from the remote store."""

    id: str
    data: dict[str, Any]

    @property
    def updated_at(self) -> datetime:
        """Stamp of the last write to this document.

        Raises:
            ValueError: If ``updatedAt`` is missing or unreadable
        """
        try:
            return timestamp_from_document(self.data["updatedAt"])
        except (KeyError, TypeError, OverflowError, OSError) as e:
            raise ValueError(f"Document '{self.id}' has no readable updatedAt: {e!r}") from e


class RemoteClock:
    """Strictly increasing timestamps from a wall clock."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or utc_now
        self.last: Optional[datetime] = None

    def observe(self, stamp: Optional[datetime]) -> None:
        """Never issue a stamp at or before one already stored."""
        if stamp is not None and (self.last is None or stamp > self.last):
            self.last = stamp

    def stamp(self) -> datetime:
        current = as_utc(self.clock())
        if self.last is not None and current <= self.last:
            current = self.last + timedelta(microseconds=1)
        self.last = current
        return current


def apply_write(
    existing: Optional[dict[str, Any]], write: RemoteWrite, stamp: datetime
) -> dict[str, Any]:
    """Compute the document that results from applying a write.

    Creates overwrite any existing document, so replaying a create whose
    acknowledgement was lost is harmless.

    Args:
        existing: Stored document, or None if absent
        write: The write to apply
        stamp: Server timestamp for ``updatedAt``/``createdAt``

    Returns:
        New document contents

    Raises:
        RemoteRejectedError: If the document is missing, belongs to another
            owner or is protected
    """
    stamp_text = stamp.isoformat()
    if write.op_type is OperationType.CREATE:
        if existing is not None and existing.get("userId") != write.owner_id:
            raise RemoteRejectedError(
                f"{write.kind.value}/{write.entity_id} belongs to another owner"
            )
        document = dict(write.fields)
        document["userId"] = write.owner_id
        document["createdAt"] = stamp_text
        document["updatedAt"] = stamp_text
        document.setdefault("isDeleted", False)
        return document

    if existing is None:
        raise RemoteRejectedError(f"{write.kind.value}/{write.entity_id} does not exist")
    if existing.get("userId") != write.owner_id:
        raise RemoteRejectedError(
            f"{write.kind.value}/{write.entity_id} belongs to another owner"
        )
    if existing.get("isProtected"):
        raise RemoteRejectedError(
            f"{write.kind.value}/{write.entity_id} is protected and cannot be changed"
        )

    document = dict(existing)
    if write.op_type is OperationType.DELETE:
        document["isDeleted"] = True
    else:
        changes = {
            k: v for k, v in write.fields.items() if k not in ("userId", "createdAt")
        }
        document.update(changes)
    document["updatedAt"] = stamp_text
    return document


class RemoteStore(ABC):
    """Abstract remote document store.

    Every call is a suspension point; implementations raise
    ``RemoteUnavailableError`` when the store cannot be reached.
    """

    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE

    @abstractmethod
    async def create(
        self, kind: EntityKind, owner_id: str, document: dict[str, Any], entity_id: str
    ) -> str:
        """Store a new document. Returns its id."""
        pass

    @abstractmethod
    async def update(
        self, kind: EntityKind, entity_id: str, owner_id: str, fields: dict[str, Any]
    ) -> None:
        """Merge fields into an existing document."""
        pass

    async def soft_delete(self, kind: EntityKind, entity_id: str, owner_id: str) -> None:
        """Mark a document deleted; equivalent to updating ``isDeleted``."""
        await self.batch_write(
            [RemoteWrite(OperationType.DELETE, kind, entity_id, owner_id)]
        )

    @abstractmethod
    async def get(self, kind: EntityKind, entity_id: str) -> Optional[RemoteDocument]:
        """Read one document by id, or None."""
        pass

    @abstractmethod
    async def query_by_owner(
        self,
        kind: EntityKind,
        owner_id: str,
        updated_after: Optional[datetime] = None,
    ) -> list[RemoteDocument]:
        """Documents of an owner, optionally only those updated strictly after a time.

        Results are ordered by ``updatedAt``.
        """
        pass

    @abstractmethod
    async def batch_write(self, writes: list[RemoteWrite]) -> None:
        """Apply writes in order as one atomic commit.

        Raises:
            BatchWriteError: If any write fails; nothing is committed
            RemoteUnavailableError: If the store cannot be reached
            ValueError: If the batch exceeds ``max_batch_size``
        """
        pass

    async def close(self) -> None:
        """Release connections."""
        pass
