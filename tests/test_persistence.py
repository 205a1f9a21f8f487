"""Tests for the local database and the entity store."""

import os
import tempfile
from datetime import date, datetime, UTC
from decimal import Decimal

from sqlalchemy import text

from pocketbook.database.factories import create_sqlite_database
from pocketbook.domain.entities import EntityKind, Member, MovementType, Record
from pocketbook.domain.store import EntityStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _member(member_id="m1", name="ANA", **kwargs):
    return Member(id=member_id, owner_id="u", name=name, created_at=NOW, updated_at=NOW, **kwargs)


def _record(record_id="r1", member_id="m1", day=date(2024, 6, 1), **kwargs):
    return Record(
        id=record_id,
        owner_id="u",
        date=day,
        member_id=member_id,
        reason_id="z1",
        movement_type=MovementType.EXPENSE,
        amount=Decimal("-200"),
        description="",
        created_at=NOW,
        updated_at=NOW,
        **kwargs,
    )


def _reopen(db):
    other = create_sqlite_database(database_path=db.database_path)
    other.connect()
    other.initialize_schema()
    return other


def test_store_writes_through_to_database(temp_db):
    store = EntityStore(temp_db)
    store.upsert(_member())
    store.upsert(_record())

    reopened = _reopen(temp_db)
    try:
        fresh = EntityStore(reopened)
        assert fresh.get(EntityKind.MEMBER, "m1") == _member()
        record = fresh.get(EntityKind.RECORD, "r1")
        assert record.amount == Decimal("-200")
        assert record.updated_at == NOW
    finally:
        reopened.disconnect()


def test_tombstones_are_hidden_from_reads(temp_db):
    store = EntityStore(temp_db)
    store.upsert(_member(is_deleted=True))

    assert store.get(EntityKind.MEMBER, "m1") is None
    assert store.get(EntityKind.MEMBER, "m1", include_deleted=True) is not None
    assert store.members() == []
    assert store.find_member_by_name("ana") is None


def test_references_count_only_live_records(temp_db):
    store = EntityStore(temp_db)
    store.upsert(_member())
    store.upsert(_record("r1"))
    store.upsert(_record("r2", is_deleted=True))

    assert store.references_to(EntityKind.MEMBER, "m1") == 1
    assert store.references_to(EntityKind.REASON, "z1") == 1


def test_record_dates_ignore_deleted_records(temp_db):
    store = EntityStore(temp_db)
    store.upsert(_record("r1", day=date(2024, 6, 1)))
    store.upsert(_record("r2", day=date(2024, 6, 2), is_deleted=True))

    assert store.record_dates() == {date(2024, 6, 1)}


def test_remove_deletes_physically(temp_db):
    store = EntityStore(temp_db)
    store.upsert(_member())
    store.remove(EntityKind.MEMBER, "m1")

    assert store.get(EntityKind.MEMBER, "m1", include_deleted=True) is None
    assert temp_db.load_entities(EntityKind.MEMBER) == []


def test_unreadable_rows_are_skipped(temp_db):
    store = EntityStore(temp_db)
    store.upsert(_record("good"))
    store.upsert(_record("bad"))
    session = temp_db._get_session()
    session.execute(text("UPDATE financial_records SET movement_type = 'LOTTERY' WHERE id = 'bad'"))
    session.commit()

    reopened = _reopen(temp_db)
    try:
        records = reopened.load_entities(EntityKind.RECORD)
    finally:
        reopened.disconnect()

    assert [r.id for r in records] == ["good"]


def test_corrupt_database_file_starts_empty():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "pocketbook.db")
        with open(path, "wb") as f:
            f.write(b"this is not a sqlite database" * 100)

        db = create_sqlite_database(database_path=path)
        db.connect()
        db.initialize_schema()
        try:
            store = EntityStore(db)
            assert store.counts() == {"integrantes": 0, "razones": 0, "financialRecords": 0}
            store.upsert(_member())
            assert store.get(EntityKind.MEMBER, "m1") is not None
            assert any(name.startswith("pocketbook.db.corrupt-") for name in os.listdir(tmp))
        finally:
            db.disconnect()


def test_atomic_rolls_back_every_write(temp_db):
    store = EntityStore(temp_db)
    try:
        with temp_db.atomic():
            store.upsert(_member("m1", "ANA"))
            store.upsert(_member("m2", "BETO"))
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    store.reload()
    assert store.members() == []


def test_sync_meta_round_trip(temp_db):
    assert temp_db.get_meta("last_sync_watermark") is None
    temp_db.set_meta("last_sync_watermark", "2024-06-01T12:00:00+00:00")
    temp_db.set_meta("last_sync_watermark", "2024-06-02T12:00:00+00:00")
    assert temp_db.get_meta("last_sync_watermark") == "2024-06-02T12:00:00+00:00"
