"""
Remote store backed by any SQLAlchemy database.

Documents are kept as JSON text in a single ``remote_documents`` table,
keyed by collection and id, with owner and server stamp columns for the
change query. Blocking database calls run in a worker thread so they do not
stall the event loop.

Invariants:
    - One batch is one database transaction
    - ``updated_at`` is stored as naive UTC so range comparisons work on
      every backend
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Column, DateTime, Index, String, Text, create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from pocketbook.domain.entities import EntityKind, OperationType, as_utc
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

RemoteBase = declarative_base()


class RemoteDocumentRow(RemoteBase):
    """One remote document."""

    __tablename__ = "remote_documents"

    collection = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    data = Column(Text, nullable=False)

    __table_args__ = (Index("idx_remote_owner_updated", "collection", "owner_id", "updated_at"),)


def _naive_utc(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


class SQLAlchemyRemoteStore(RemoteStore):
    """Remote store persisting documents through SQLAlchemy."""

    def __init__(self, database_url: str, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE, clock=None):
        """Initialize the store and create its table if needed.

        Args:
            database_url: SQLAlchemy database URL
            max_batch_size: Largest accepted batch
            clock: Source of server time; defaults to the wall clock
        """
        self.database_url = database_url
        self.max_batch_size = max_batch_size
        kwargs: dict[str, Any] = {}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, echo=False, **kwargs)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._clock = RemoteClock(clock)
        self._clock_loaded = False
        self._lock = asyncio.Lock()
        self._schema_ready = False

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except OperationalError as e:
            logger.error("Remote store %s unreachable: %s", self.engine.url, e)
            raise RemoteUnavailableError(f"Remote store unreachable: {e.orig}") from e

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            RemoteBase.metadata.create_all(self.engine)
            self._schema_ready = True

    def _load_clock(self, session: Session) -> None:
        if self._clock_loaded:
            return
        latest = session.scalar(select(func.max(RemoteDocumentRow.updated_at)))
        if latest is not None:
            self._clock.observe(as_utc(latest))
        self._clock_loaded = True

    @staticmethod
    def _to_document(row: RemoteDocumentRow) -> RemoteDocument:
        return RemoteDocument(row.id, json.loads(row.data))

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

    def _get(self, kind: EntityKind, entity_id: str) -> Optional[RemoteDocument]:
        self._ensure_schema()
        with self.session_factory() as session:
            row = session.get(RemoteDocumentRow, (kind.value, entity_id))
            return self._to_document(row) if row is not None else None

    async def get(self, kind: EntityKind, entity_id: str) -> Optional[RemoteDocument]:
        return await self._run(self._get, kind, entity_id)

    def _query(
        self, kind: EntityKind, owner_id: str, updated_after: Optional[datetime]
    ) -> list[RemoteDocument]:
        self._ensure_schema()
        statement = select(RemoteDocumentRow).where(
            RemoteDocumentRow.collection == kind.value,
            RemoteDocumentRow.owner_id == owner_id,
        )
        if updated_after is not None:
            statement = statement.where(RemoteDocumentRow.updated_at > _naive_utc(updated_after))
        statement = statement.order_by(RemoteDocumentRow.updated_at)
        with self.session_factory() as session:
            return [self._to_document(row) for row in session.scalars(statement)]

    async def query_by_owner(
        self,
        kind: EntityKind,
        owner_id: str,
        updated_after: Optional[datetime] = None,
    ) -> list[RemoteDocument]:
        return await self._run(self._query, kind, owner_id, updated_after)

    def _batch_write(self, writes: list[RemoteWrite]) -> None:
        self._ensure_schema()
        with self.session_factory() as session:
            self._load_clock(session)
            last_stamp = self._clock.last
            staged: dict[tuple[str, str], dict[str, Any]] = {}
            for index, write in enumerate(writes):
                key = (write.kind.value, write.entity_id)
                try:
                    if key in staged:
                        existing = staged[key]
                    else:
                        row = session.get(RemoteDocumentRow, key)
                        existing = json.loads(row.data) if row is not None else None
                    staged[key] = apply_write(existing, write, self._clock.stamp())
                except OperationalError:
                    self._clock.last = last_stamp
                    raise
                except Exception as e:
                    self._clock.last = last_stamp
                    raise BatchWriteError(index, e) from e

            try:
                for (collection, entity_id), data in staged.items():
                    session.merge(
                        RemoteDocumentRow(
                            collection=collection,
                            id=entity_id,
                            owner_id=data["userId"],
                            updated_at=_naive_utc(datetime.fromisoformat(data["updatedAt"])),
                            data=json.dumps(data),
                        )
                    )
                session.commit()
            except Exception:
                session.rollback()
                self._clock.last = last_stamp
                raise

    async def batch_write(self, writes: list[RemoteWrite]) -> None:
        if len(writes) > self.max_batch_size:
            raise ValueError(
                f"Batch of {len(writes)} writes exceeds the limit of {self.max_batch_size}"
            )
        async with self._lock:
            await self._run(self._batch_write, writes)
        logger.debug("Committed batch of %s writes", len(writes))

    async def close(self) -> None:
        self.engine.dispose()
