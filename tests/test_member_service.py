"""Tests for MemberService."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from pocketbook.domain.entities import EntityKind, OperationType
from pocketbook.domain.errors import (
    NotFoundError,
    ProtectedEntityError,
    ReferentialIntegrityError,
    ValidationError,
)
from pocketbook.domain.store import EntityStore


def test_add_member_uppercases_and_queues_create(member_service, queue):
    member = member_service.add_member("  beto ")

    assert member.name == "BETO"
    assert member.owner_id == "user-1"
    assert member.created_at == member.updated_at
    assert member_service.get_member(member.id) == member

    [operation] = queue.pending()
    assert operation.op_type is OperationType.CREATE
    assert operation.kind is EntityKind.MEMBER
    assert operation.entity_id == member.id
    assert operation.payload["nombre"] == "BETO"
    assert operation.payload["isProtected"] is False


def test_add_member_rejects_empty_name(member_service, queue):
    with pytest.raises(ValidationError, match="empty"):
        member_service.add_member("   ")
    assert len(queue) == 0


def test_add_member_rejects_case_insensitive_duplicate(member_service):
    member_service.add_member("Ana")
    with pytest.raises(ValidationError, match="already exists"):
        member_service.add_member("ANA")


def test_deleted_name_can_be_reused(member_service):
    member = member_service.add_member("Ana")
    member_service.delete_member(member.id)

    again = member_service.add_member("ana")

    assert again.id != member.id


def test_rename_member_bumps_updated_at(member_service, queue):
    member = member_service.add_member("Ana")

    renamed = member_service.rename_member(member.id, "Anita")

    assert renamed.name == "ANITA"
    assert renamed.updated_at > member.updated_at
    operation = queue.pending()[-1]
    assert operation.op_type is OperationType.UPDATE
    assert operation.payload == {
        "nombre": "ANITA",
        "updatedAt": renamed.updated_at.isoformat(),
    }


def test_rename_to_same_name_is_a_no_op(member_service, queue):
    member = member_service.add_member("Ana")

    assert member_service.rename_member(member.id, "ana") == member
    assert len(queue) == 1


def test_rename_rejects_name_of_another_member(member_service):
    member_service.add_member("Ana")
    beto = member_service.add_member("Beto")
    with pytest.raises(ValidationError):
        member_service.rename_member(beto.id, "ana")


def test_protected_member_cannot_change(member_service):
    member = member_service.add_member("Casa", is_protected=True)

    with pytest.raises(ProtectedEntityError):
        member_service.rename_member(member.id, "Hogar")
    with pytest.raises(ProtectedEntityError):
        member_service.delete_member(member.id)

    assert member_service.get_member(member.id) == member


def test_delete_member_is_soft_and_queued(member_service, store, queue):
    member = member_service.add_member("Ana")

    member_service.delete_member(member.id)

    assert member_service.get_member(member.id) is None
    tombstone = store.get(EntityKind.MEMBER, member.id, include_deleted=True)
    assert tombstone.is_deleted
    assert queue.pending()[-1].op_type is OperationType.DELETE


def test_delete_referenced_member_fails_until_records_removed(
    member_service, sample_member, sample_reason, record_service
):
    record = record_service.add_record(
        date(2024, 6, 1), sample_member.id, sample_reason.id, "EXPENSE", Decimal("10")
    )

    with pytest.raises(ReferentialIntegrityError, match="1 record"):
        member_service.delete_member(sample_member.id)

    record_service.delete_record(record.id)
    member_service.delete_member(sample_member.id)
    assert member_service.get_member(sample_member.id) is None


def test_delete_unknown_member(member_service):
    with pytest.raises(NotFoundError):
        member_service.delete_member("missing")


def test_list_members_search_and_sort(member_service):
    member_service.add_member("Carla")
    member_service.add_member("Ana")
    member_service.add_member("Beto")

    assert [m.name for m in member_service.list_members()] == ["ANA", "BETO", "CARLA"]
    assert [m.name for m in member_service.list_members(sort="alpha-desc")] == [
        "CARLA",
        "BETO",
        "ANA",
    ]
    assert [m.name for m in member_service.list_members(search="ar")] == ["CARLA"]


def test_list_members_rejects_unknown_sort(member_service):
    with pytest.raises(ValidationError):
        member_service.list_members(sort="newest")


def test_find_member_by_id_or_name(member_service):
    member = member_service.add_member("Ana")
    assert member_service.find_member(member.id) == member
    assert member_service.find_member("ana") == member
    assert member_service.find_member("nobody") is None


def _failing_append(*args, **kwargs):
    raise OperationalError("INSERT INTO pending_operations", {}, Exception("disk I/O error"))


def test_failed_enqueue_leaves_no_member_behind(member_service, temp_db, queue, monkeypatch):
    monkeypatch.setattr(temp_db, "append_operation", _failing_append)

    with pytest.raises(OperationalError):
        member_service.add_member("Ana")

    assert member_service.list_members() == []
    assert EntityStore(temp_db).members() == []
    assert len(queue) == 0


def test_failed_enqueue_keeps_member_alive(member_service, temp_db, queue, monkeypatch):
    member = member_service.add_member("Ana")
    monkeypatch.setattr(temp_db, "append_operation", _failing_append)

    with pytest.raises(OperationalError):
        member_service.delete_member(member.id)

    assert member_service.get_member(member.id) == member
    assert EntityStore(temp_db).members() == [member]
    assert [op.op_type for op in queue.pending()] == [OperationType.CREATE]
