"""Synchronization engine.

Reconciles the local entity store with the remote store in one
non-concurrent pass of three phases:

1. Push: replay the pending operation queue in order, in atomic batches of
   at most ``remote.max_batch_size`` writes. Acknowledge each operation only
   after its batch is committed.
2. Pull: fetch every document of the owner updated after the watermark.
3. Merge: upsert the pulled documents into the store; the remote copy wins,
   except over an entity with an operation queued after push started. That
   local copy stays until the next pass pushes it. Documents that cannot be
   read (including an unreadable ``updatedAt``) are skipped and reported.

Failure policy:
    - Remote unreachable: the pass fails, queue and watermark untouched
    - A write the remote rejects permanently is dead-lettered and reported;
      the rest of the queue is still pushed
    - Any other write failure counts an attempt against that operation and
      ends the pass before pull, leaving it and everything after it queued

Tombstones are kept locally after merge and hidden from every read. They
are physically removed only by ``compact``, once they are older than the
retention window, already confirmed by a pull (at or below the watermark)
and not targeted by a pending operation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pocketbook.domain.entities import (
    Entity,
    EntityKind,
    PendingOperation,
    as_utc,
    entity_from_document,
    utc_now,
)
from pocketbook.domain.queue import PendingOperationQueue
from pocketbook.domain.store import EntityStore
from pocketbook.remote.base import (
    BatchWriteError,
    RemoteDocument,
    RemoteRejectedError,
    RemoteStore,
    RemoteStoreError,
    RemoteWrite,
)

logger = logging.getLogger(__name__)

WATERMARK_KEY = "last_sync_watermark"
DEFAULT_TOMBSTONE_RETENTION = timedelta(days=30)


class SyncState(Enum):
    IDLE = "idle"
    PUSHING = "pushing"
    PULLING = "pulling"
    MERGING = "merging"
    FAILED = "failed"


class SyncStatus(Enum):
    """Outcome of a sync request."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    ALREADY_RUNNING = "already_running"
    DISABLED = "disabled"


@dataclass
class SyncResult:
    """Report of one sync request.

    Attributes:
        status: Overall outcome
        pushed: Operations acknowledged by the remote store
        pulled: Documents fetched from the remote store
        merged: Pulled documents that changed the local store
        rejected: Operations dead-lettered because the remote refused them
        errors: Failure messages
        watermark: Watermark after the pass
    """

    status: SyncStatus
    pushed: int = 0
    pulled: int = 0
    merged: int = 0
    rejected: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    watermark: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.SUCCESS


@dataclass(frozen=True)
class SyncOverview:
    """Snapshot of sync bookkeeping, for status displays."""

    state: SyncState
    remote_available: bool
    pending: int
    dead_letters: int
    watermark: Optional[datetime]


class SyncEngine:
    """Push, pull and merge between the local store and a remote store.

    Args:
        store: Local entity store
        queue: Pending operation queue sharing the store's database
        remote: Remote store, or None when sync is disabled
        owner_id: Owner whose documents are synchronized
    """

    def __init__(
        self,
        store: EntityStore,
        queue: PendingOperationQueue,
        remote: Optional[RemoteStore],
        owner_id: str,
    ):
        self.store = store
        self.queue = queue
        self.remote = remote
        self.owner_id = owner_id
        self.state = SyncState.IDLE

    @property
    def remote_available(self) -> bool:
        return self.remote is not None

    # === Watermark ===

    @property
    def watermark(self) -> Optional[datetime]:
        """Greatest remote ``updatedAt`` merged so far, or None before the first pull."""
        value = self.store.db.get_meta(WATERMARK_KEY)
        if not value:
            return None
        try:
            return as_utc(datetime.fromisoformat(value))
        except ValueError:
            logger.warning("Ignoring unreadable sync watermark %r", value)
            return None

    def _advance_watermark(self, candidate: Optional[datetime]) -> Optional[datetime]:
        current = self.watermark
        if candidate is None or (current is not None and candidate <= current):
            return current
        self.store.db.set_meta(WATERMARK_KEY, candidate.isoformat())
        return candidate

    # === Sync pass ===

    async def sync(self) -> SyncResult:
        """Run one push, pull and merge pass.

        Returns immediately with ALREADY_RUNNING if a pass is in flight, and
        with DISABLED if there is no remote store.
        """
        if self.state not in (SyncState.IDLE, SyncState.FAILED):
            logger.info("Sync requested while %s; ignoring", self.state.value)
            return SyncResult(SyncStatus.ALREADY_RUNNING, watermark=self.watermark)
        if self.remote is None:
            return SyncResult(SyncStatus.DISABLED, watermark=self.watermark)

        result = SyncResult(SyncStatus.SUCCESS)
        self.state = SyncState.PUSHING
        try:
            completed = await self._push(result)
            if not completed:
                result.status = SyncStatus.PARTIAL
                result.watermark = self.watermark
                self.state = SyncState.IDLE
                logger.warning("Sync stopped after push: %s", "; ".join(result.errors))
                return result

            self.state = SyncState.PULLING
            documents = await self._pull()
            result.pulled = len(documents)

            self.state = SyncState.MERGING
            newest = self._merge(documents, result)
            result.watermark = self._advance_watermark(newest)
        except RemoteStoreError as e:
            self.state = SyncState.FAILED
            result.status = SyncStatus.FAILED
            result.errors.append(str(e))
            result.watermark = self.watermark
            logger.error("Sync failed: %s", e)
            return result
        except BaseException:
            self.state = SyncState.FAILED
            raise

        if result.rejected:
            result.status = SyncStatus.PARTIAL
        self.state = SyncState.IDLE
        logger.info(
            "Sync finished: pushed %s, pulled %s, merged %s, rejected %s",
            result.pushed,
            result.pulled,
            result.merged,
            len(result.rejected),
        )
        return result

    def _to_write(self, operation: PendingOperation) -> RemoteWrite:
        return RemoteWrite(
            op_type=operation.op_type,
            kind=operation.kind,
            entity_id=operation.entity_id,
            owner_id=self.owner_id,
            fields=operation.payload,
        )

    def _acknowledge(self, operations: list[PendingOperation], result: SyncResult) -> None:
        with self.store.db.atomic():
            for operation in operations:
                self.queue.acknowledge(operation)
        result.pushed += len(operations)

    async def _push(self, result: SyncResult) -> bool:
        """Replay the queue. Returns False if the pass must stop before pull."""
        operations = self.queue.pending()
        if not operations:
            return True
        logger.debug("Pushing %s queued operations", len(operations))

        batch_size = self.remote.max_batch_size
        position = 0
        while position < len(operations):
            chunk = operations[position : position + batch_size]
            writes = [self._to_write(op) for op in chunk]
            try:
                await self.remote.batch_write(writes)
            except BatchWriteError as e:
                # The batch was discarded; commit the part before the failing write
                good = chunk[: e.index]
                if good:
                    await self.remote.batch_write(writes[: e.index])
                    self._acknowledge(good, result)

                failed = chunk[e.index]
                if isinstance(e.cause, RemoteRejectedError):
                    self.queue.reject(failed, str(e.cause))
                    result.rejected.append(f"{failed.describe()}: {e.cause}")
                    position += e.index + 1
                    continue

                updated = self.queue.record_failure(failed, str(e.cause))
                result.errors.append(f"{failed.describe()}: {e.cause}")
                logger.warning(
                    "Push of #%s %s failed (attempt %s): %s",
                    failed.seq,
                    failed.describe(),
                    updated.attempts,
                    e.cause,
                )
                return False

            self._acknowledge(chunk, result)
            position += len(chunk)
        return True

    async def _pull(self) -> list[tuple[EntityKind, RemoteDocument]]:
        watermark = self.watermark
        documents = []
        for kind in EntityKind:
            for document in await self.remote.query_by_owner(kind, self.owner_id, watermark):
                documents.append((kind, document))
        logger.debug("Pulled %s documents changed after %s", len(documents), watermark)
        return documents

    def _merge(
        self, documents: list[tuple[EntityKind, RemoteDocument]], result: SyncResult
    ) -> Optional[datetime]:
        """Upsert pulled documents. Returns the newest remote stamp seen."""
        newest: Optional[datetime] = None
        # Edits queued while the pass was pulling
        pending = {(op.kind, op.entity_id) for op in self.queue.drain()}
        try:
            with self.store.db.atomic():
                for kind, document in documents:
                    try:
                        stamp = document.updated_at
                    except ValueError as e:
                        self._skip_malformed(kind, document, e, result)
                        continue
                    if newest is None or stamp > newest:
                        newest = stamp
                    try:
                        entity = entity_from_document(kind, document.id, document.data)
                    except (ValueError, TypeError, KeyError) as e:
                        self._skip_malformed(kind, document, e, result)
                        continue
                    if (kind, entity.id) in pending:
                        logger.debug(
                            "Keeping local %s/%s until its queued change is pushed",
                            kind.value,
                            entity.id,
                        )
                        continue
                    if self._merge_entity(entity):
                        result.merged += 1
        except BaseException:
            # Roll the in-memory store back to what the database kept
            self.store.reload()
            raise
        return newest

    @staticmethod
    def _skip_malformed(
        kind: EntityKind, document: RemoteDocument, error: Exception, result: SyncResult
    ) -> None:
        logger.warning("Skipping malformed %s/%s: %s", kind.value, document.id, error)
        result.errors.append(f"{kind.value}/{document.id}: {error}")

    def _merge_entity(self, entity: Entity) -> bool:
        local = self.store.get(entity.kind, entity.id, include_deleted=True)
        if local == entity:
            return False
        self.store.upsert(entity)
        return True

    # === Maintenance ===

    def compact(
        self,
        retention: timedelta = DEFAULT_TOMBSTONE_RETENTION,
        now: Optional[datetime] = None,
    ) -> int:
        """Physically remove tombstones no replica still needs.

        A tombstone is removed when its deletion was confirmed by a pull (its
        ``updated_at`` is at or below the watermark), it is older than
        ``retention`` and no pending operation targets it.

        Args:
            retention: Minimum age of a removable tombstone
            now: Reference time; defaults to the current time

        Returns:
            Number of tombstones removed
        """
        watermark = self.watermark
        if watermark is None:
            return 0
        cutoff = min(watermark, (now or utc_now()) - retention)

        removed = 0
        try:
            with self.store.db.atomic():
                for kind in EntityKind:
                    for entity in self.store.entities(kind, include_deleted=True):
                        if not entity.is_deleted or entity.updated_at > cutoff:
                            continue
                        if self.queue.has_pending_for(kind, entity.id):
                            continue
                        self.store.remove(kind, entity.id)
                        removed += 1
        except BaseException:
            self.store.reload()
            raise
        if removed:
            logger.info("Compacted %s tombstones older than %s", removed, cutoff)
        return removed

    def overview(self) -> SyncOverview:
        return SyncOverview(
            state=self.state,
            remote_available=self.remote_available,
            pending=len(self.queue),
            dead_letters=len(self.queue.dead_letters()),
            watermark=self.watermark,
        )
