"""SQLAlchemy models for the pocketbook local database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Index,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


class Member(Base):
    """Member (integrante) model."""

    __tablename__ = "integrantes"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    is_protected = Column(Boolean, default=False, nullable=False)


class Reason(Base):
    """Reason (razon) model."""

    __tablename__ = "razones"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False)
    is_quick_reason = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    is_protected = Column(Boolean, default=False, nullable=False)


class Record(Base):
    """Financial record model."""

    __tablename__ = "financial_records"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    # No foreign keys: referential checks are enforced by the domain services,
    # and pulled documents may arrive before the entities they reference.
    member_id = Column(String, nullable=False, index=True)
    reason_id = Column(String, nullable=False, index=True)
    movement_type = Column(String, nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=True), nullable=False)
    description = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)


class PendingOperation(Base):
    """Queued mutation waiting to be pushed to the remote store."""

    __tablename__ = "pending_operations"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    op_type = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    payload = Column(Text, nullable=False, default="{}")
    enqueued_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(String, nullable=True)
    status = Column(String, default="pending", nullable=False)

    __table_args__ = (Index("ix_pending_operations_status_seq", "status", "seq"),)


class SyncMeta(Base):
    """Scalar sync bookkeeping values (e.g. the last-sync watermark)."""

    __tablename__ = "sync_meta"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=True)


def create_session_factory(database_url: str) -> tuple[Engine, sessionmaker[Session]]:
    """Create a SQLAlchemy engine and session factory.

    The schema is created separately by ``initialize_schema`` so that an
    unreadable database file can be detected and replaced.
    """
    engine = create_engine(database_url, echo=False)
    return engine, sessionmaker(bind=engine, expire_on_commit=False)
