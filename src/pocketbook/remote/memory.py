"""
In-memory remote store for tests and offline development.

Invariants:
    - All data is lost on process exit
    - Same write validation and stamping as the SQL-backed store
    - ``online = False`` makes every call raise ``RemoteUnavailableError``

Failure injection:
    >>> remote = InMemoryRemoteStore()
    >>> remote.fail_writes_for("record-id", RemoteUnavailableError("timeout"))
    >>> remote.online = False
"""

import asyncio
import copy
import logging
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any, Callable, Optional

from pocketbook.domain.entities import EntityKind, OperationType
from pocketbook.remote.base import (
    DEFAULT_MAX_BATCH_SIZE,
    BatchWriteError,
    RemoteClock,
    RemoteDocument,
    RemoteStore,
    RemoteUnavailableError,
    RemoteWrite,
    apply_write,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _readable_stamp(document: RemoteDocument) -> Optional[datetime]:
    try:
        return document.updated_at
    except ValueError:
        logger.debug("Document %s has no readable updatedAt", document.id)
        return None


class InMemoryRemoteStore(RemoteStore):
    """Remote store keeping documents in process memory.

    Attributes:
        online: When False, every call fails as unreachable
        batches: Every batch committed, in order (for assertions)
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    ) -> None:
        """Initialize in-memory remote store.

        Args:
            clock: Source of server time; defaults to the wall clock
            max_batch_size: Largest accepted batch
        """
        self.max_batch_size = max_batch_size
        self.online = True
        self.batches: list[list[RemoteWrite]] = []
        self._clock = RemoteClock(clock)
        self._documents: dict[EntityKind, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._failures: dict[str, Exception] = {}
        self._lock = asyncio.Lock()

    def fail_writes_for(self, entity_id: str, error: Exception) -> None:
        """Make every write touching an entity raise ``error`` until cleared."""
        self._failures[entity_id] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def documents(self, kind: EntityKind) -> dict[str, dict[str, Any]]:
        """Copy of the stored documents of a collection, keyed by id."""
        return copy.deepcopy(dict(self._documents[kind]))

    def put_document(self, kind: EntityKind, entity_id: str, data: dict[str, Any]) -> None:
        """Store a document as-is, bypassing validation (simulates another replica)."""
        self._documents[kind][entity_id] = copy.deepcopy(data)
        self._clock.observe(_readable_stamp(RemoteDocument(entity_id, data)))

    def _check_online(self) -> None:
        if not self.online:
            raise RemoteUnavailableError("Remote store is offline")

    async def create(
        self, kind: EntityKind, owner_id: str, document: dict[str, Any], entity_id: str
    ) -> str:
        await self.batch_write(
            [RemoteWrite(OperationType.CREATE, kind, entity_id, owner_id, document)]
        )
        return entity_id

    async def update(
        self, kind: EntityKind, entity_id: str, owner_id: str, fields: dict[str, Any]
    ) -> None:
        await self.batch_write(
            [RemoteWrite(OperationType.UPDATE, kind, entity_id, owner_id, fields)]
        )

    async def get(self, kind: EntityKind, entity_id: str) -> Optional[RemoteDocument]:
        self._check_online()
        data = self._documents[kind].get(entity_id)
        if data is None:
            return None
        return RemoteDocument(entity_id, copy.deepcopy(data))

    async def query_by_owner(
        self,
        kind: EntityKind,
        owner_id: str,
        updated_after: Optional[datetime] = None,
    ) -> list[RemoteDocument]:
        self._check_online()
        stamped = []
        for entity_id, data in self._documents[kind].items():
            if data.get("userId") != owner_id:
                continue
            document = RemoteDocument(entity_id, copy.deepcopy(data))
            stamp = _readable_stamp(document)
            # Unstamped documents only match a full pull, ordered first
            if updated_after is not None and (stamp is None or stamp <= updated_after):
                continue
            stamped.append((stamp or _EPOCH, document))
        stamped.sort(key=lambda pair: pair[0])
        return [document for _, document in stamped]

    async def batch_write(self, writes: list[RemoteWrite]) -> None:
        self._check_online()
        if len(writes) > self.max_batch_size:
            raise ValueError(
                f"Batch of {len(writes)} writes exceeds the limit of {self.max_batch_size}"
            )

        async with self._lock:
            # Stage on copies so a failing write leaves nothing behind
            staged: dict[tuple[EntityKind, str], dict[str, Any]] = {}
            last_stamp = self._clock.last
            for index, write in enumerate(writes):
                try:
                    failure = self._failures.get(write.entity_id)
                    if failure is not None:
                        raise failure
                    key = (write.kind, write.entity_id)
                    existing = staged.get(key, self._documents[write.kind].get(write.entity_id))
                    staged[key] = apply_write(existing, write, self._clock.stamp())
                except Exception as e:
                    self._clock.last = last_stamp
                    raise BatchWriteError(index, e) from e

            for (kind, entity_id), data in staged.items():
                self._documents[kind][entity_id] = data
            self.batches.append(list(writes))
            logger.debug("Committed batch of %s writes", len(writes))
