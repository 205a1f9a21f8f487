"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so the domain entities stay
independent of the local table layout.
"""

import json

from pocketbook.domain import entities as domain
from pocketbook.database.models import (
    Member as ORMMember,
    Reason as ORMReason,
    Record as ORMRecord,
    PendingOperation as ORMPendingOperation,
)


def member_to_domain(orm_member: ORMMember) -> domain.Member:
    """Convert SQLAlchemy Member model to domain Member entity."""
    return domain.Member(
        id=orm_member.id,
        owner_id=orm_member.owner_id,
        name=orm_member.name,
        created_at=domain.as_utc(orm_member.created_at),
        updated_at=domain.as_utc(orm_member.updated_at),
        is_deleted=orm_member.is_deleted,
        is_protected=orm_member.is_protected,
    )


def reason_to_domain(orm_reason: ORMReason) -> domain.Reason:
    """Convert SQLAlchemy Reason model to domain Reason entity."""
    return domain.Reason(
        id=orm_reason.id,
        owner_id=orm_reason.owner_id,
        description=orm_reason.description,
        is_quick_reason=orm_reason.is_quick_reason,
        created_at=domain.as_utc(orm_reason.created_at),
        updated_at=domain.as_utc(orm_reason.updated_at),
        is_deleted=orm_reason.is_deleted,
        is_protected=orm_reason.is_protected,
    )


def record_to_domain(orm_record: ORMRecord) -> domain.Record:
    """Convert SQLAlchemy Record model to domain Record entity.

    Raises:
        ValueError: If the stored movement type is not recognized
    """
    return domain.Record(
        id=orm_record.id,
        owner_id=orm_record.owner_id,
        date=orm_record.date,
        member_id=orm_record.member_id,
        reason_id=orm_record.reason_id,
        movement_type=domain.MovementType.parse(orm_record.movement_type),
        amount=orm_record.amount,
        description=orm_record.description or "",
        created_at=domain.as_utc(orm_record.created_at),
        updated_at=domain.as_utc(orm_record.updated_at),
        is_deleted=orm_record.is_deleted,
    )


def pending_operation_to_domain(orm_op: ORMPendingOperation) -> domain.PendingOperation:
    """Convert SQLAlchemy PendingOperation model to domain PendingOperation.

    Raises:
        ValueError: If the payload is not valid JSON or an enum value is unknown
    """
    return domain.PendingOperation(
        seq=orm_op.seq,
        op_type=domain.OperationType(orm_op.op_type),
        kind=domain.EntityKind(orm_op.kind),
        entity_id=orm_op.entity_id,
        payload=json.loads(orm_op.payload or "{}"),
        enqueued_at=domain.as_utc(orm_op.enqueued_at),
        attempts=orm_op.attempts,
        last_error=orm_op.last_error,
        status=domain.OperationStatus(orm_op.status),
    )


def entity_to_orm_values(entity: domain.Entity) -> dict:
    """Column values for persisting a domain entity."""
    values = {
        "id": entity.id,
        "owner_id": entity.owner_id,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
        "is_deleted": entity.is_deleted,
    }
    if isinstance(entity, domain.Member):
        values.update(name=entity.name, is_protected=entity.is_protected)
    elif isinstance(entity, domain.Reason):
        values.update(
            description=entity.description,
            is_quick_reason=entity.is_quick_reason,
            is_protected=entity.is_protected,
        )
    else:
        values.update(
            date=entity.date,
            member_id=entity.member_id,
            reason_id=entity.reason_id,
            movement_type=entity.movement_type.value,
            amount=entity.amount,
            description=entity.description,
        )
    return values


ORM_MODELS = {
    domain.EntityKind.MEMBER: ORMMember,
    domain.EntityKind.REASON: ORMReason,
    domain.EntityKind.RECORD: ORMRecord,
}

TO_DOMAIN = {
    domain.EntityKind.MEMBER: member_to_domain,
    domain.EntityKind.REASON: reason_to_domain,
    domain.EntityKind.RECORD: record_to_domain,
}
