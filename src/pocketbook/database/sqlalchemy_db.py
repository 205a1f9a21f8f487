"""Generic SQLAlchemy database implementation."""

import json
import logging
import os
from datetime import datetime, UTC
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from sqlalchemy.exc import DatabaseError, SQLAlchemyError
from sqlalchemy.orm import Session

from pocketbook.database.base import Database
from pocketbook.database.models import (
    Base,
    PendingOperation,
    SyncMeta,
    create_session_factory,
)
from pocketbook.database.mappers import (
    ORM_MODELS,
    TO_DOMAIN,
    entity_to_orm_values,
    pending_operation_to_domain,
)
from pocketbook.domain.entities import (
    Entity,
    EntityKind,
    OperationStatus,
    OperationType,
    PendingOperation as DomainPendingOperation,
)

logger = logging.getLogger(__name__)


class SQLAlchemyDatabase(Database):
    """SQLAlchemy-based implementation of Database interface."""

    def __init__(self, database_url: str, database_path: Optional[str] = None):
        """Initialize SQLAlchemy database.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
            database_path: Backing file, if any. Used to set aside a corrupt
                file and start over with an empty store.
        """
        self.database_url = database_url
        self.database_path = database_path
        self.engine, self.session_factory = create_session_factory(database_url)
        self._session: Optional[Session] = None
        self._atomic_depth = 0

    def _get_session(self) -> Session:
        """Get current session, creating one if needed."""
        if self._session is None:
            self._session = self.session_factory()
        return self._session

    def _commit(self) -> None:
        """Commit, or only flush while inside ``atomic``."""
        session = self._get_session()
        if self._atomic_depth:
            session.flush()
        else:
            session.commit()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Defer commits until the outermost block exits; roll back on error."""
        session = self._get_session()
        self._atomic_depth += 1
        try:
            yield
        except BaseException:
            self._atomic_depth -= 1
            if self._atomic_depth == 0:
                session.rollback()
            raise
        self._atomic_depth -= 1
        if self._atomic_depth == 0:
            session.commit()

    def connect(self) -> None:
        """Connect to the database."""
        # Connection is lazy, so this is a no-op
        pass

    def disconnect(self) -> None:
        """Disconnect from the database."""
        if self._session is not None:
            self._session.close()
            self._session = None
        self.engine.dispose()

    def initialize_schema(self) -> None:
        """Initialize database schema (create tables).

        An unreadable database file is renamed with a ``.corrupt`` suffix and
        replaced by an empty one instead of failing startup.
        """
        try:
            Base.metadata.create_all(self.engine)
        except DatabaseError as e:
            if self.database_path is None or not os.path.exists(self.database_path):
                raise
            stamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
            aside = f"{self.database_path}.corrupt-{stamp}"
            logger.error(
                "Local database %s is unreadable (%s); moving it to %s and starting empty",
                self.database_path,
                e,
                aside,
            )
            self.disconnect()
            os.replace(self.database_path, aside)
            self.engine, self.session_factory = create_session_factory(self.database_url)
            Base.metadata.create_all(self.engine)

    # Entity operations
    def load_entities(self, kind: EntityKind) -> list[Entity]:
        """Load every stored entity of a kind, tombstones included."""
        session = self._get_session()
        model = ORM_MODELS[kind]
        try:
            rows = session.query(model).all()
        except SQLAlchemyError as e:
            logger.error("Could not read %s from local database: %s", kind.value, e)
            session.rollback()
            return []

        entities = []
        for row in rows:
            try:
                entities.append(TO_DOMAIN[kind](row))
            except (ValueError, TypeError) as e:
                logger.warning("Skipping unreadable %s row %s: %s", kind.value, row.id, e)
        return entities

    def save_entity(self, entity: Entity) -> None:
        """Insert or replace an entity."""
        session = self._get_session()
        model = ORM_MODELS[entity.kind]
        session.merge(model(**entity_to_orm_values(entity)))
        self._commit()

    def delete_entity(self, kind: EntityKind, entity_id: str) -> None:
        """Physically remove an entity."""
        session = self._get_session()
        model = ORM_MODELS[kind]
        session.query(model).filter(model.id == entity_id).delete()
        self._commit()

    # Pending operation queue
    def append_operation(
        self,
        op_type: OperationType,
        kind: EntityKind,
        entity_id: str,
        payload: dict[str, Any],
    ) -> DomainPendingOperation:
        """Append a queued operation. Returns it with its sequence number."""
        session = self._get_session()
        operation = PendingOperation(
            op_type=op_type.value,
            kind=kind.value,
            entity_id=entity_id,
            payload=json.dumps(payload),
            enqueued_at=datetime.now(UTC),
            attempts=0,
            status=OperationStatus.PENDING.value,
        )
        session.add(operation)
        self._commit()
        return pending_operation_to_domain(operation)

    def list_operations(
        self, status: OperationStatus = OperationStatus.PENDING
    ) -> list[DomainPendingOperation]:
        """List queued operations with a status, in sequence order."""
        session = self._get_session()
        try:
            rows = (
                session.query(PendingOperation)
                .filter(PendingOperation.status == status.value)
                .order_by(PendingOperation.seq)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Could not read pending operations: %s", e)
            session.rollback()
            return []

        operations = []
        for row in rows:
            try:
                operations.append(pending_operation_to_domain(row))
            except (ValueError, TypeError) as e:
                logger.warning("Skipping unreadable pending operation %s: %s", row.seq, e)
        return operations

    def update_operation(self, operation: DomainPendingOperation) -> None:
        """Persist attempts, last error and status of a queued operation."""
        session = self._get_session()
        row = session.query(PendingOperation).filter(PendingOperation.seq == operation.seq).first()
        if row is None:
            raise ValueError(f"Pending operation {operation.seq} not found")
        row.attempts = operation.attempts
        row.last_error = operation.last_error
        row.status = operation.status.value
        self._commit()

    def delete_operation(self, seq: int) -> None:
        """Remove a queued operation."""
        session = self._get_session()
        session.query(PendingOperation).filter(PendingOperation.seq == seq).delete()
        self._commit()

    # Sync metadata
    def get_meta(self, key: str) -> Optional[str]:
        """Get a sync metadata value."""
        session = self._get_session()
        try:
            row = session.query(SyncMeta).filter(SyncMeta.key == key).first()
        except SQLAlchemyError as e:
            logger.error("Could not read sync metadata '%s': %s", key, e)
            session.rollback()
            return None
        return row.value if row is not None else None

    def set_meta(self, key: str, value: Optional[str]) -> None:
        """Set a sync metadata value."""
        session = self._get_session()
        session.merge(SyncMeta(key=key, value=value))
        self._commit()
