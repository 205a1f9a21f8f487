"""Tests for CSVImportService."""

from datetime import date
from decimal import Decimal

import pytest

from pocketbook.domain.csv_import import ImportMode
from pocketbook.domain.entities import EntityKind, MovementType
from pocketbook.domain.errors import ImportParseError, ReferentialIntegrityError

RECORD_HEADER = "fecha,integranteNombre,movimiento,razonDescripcion,descripcion,monto\n"


def test_import_members_add_mode(import_service, member_service):
    result = import_service.import_members("nombre,isprotected\nAna,false\nBeto,TRUE\n")

    assert result.created == 2
    assert result.skipped == 0
    beto = member_service.find_member("beto")
    assert beto.name == "BETO"
    assert beto.is_protected


def test_add_import_skips_existing_names_case_insensitively(import_service, member_service):
    member_service.add_member("ANA")

    result = import_service.import_members("nombre\nana\n", ImportMode.ADD)

    assert result.created == 0
    assert result.skipped == 1
    assert len(member_service.list_members()) == 1


def test_add_import_skips_duplicates_within_file(import_service, member_service):
    result = import_service.import_members("Nombre\nAna\nANA\n")

    assert result.created == 1
    assert result.skipped == 1


def test_import_members_headers_are_case_insensitive(import_service, member_service):
    result = import_service.import_members("NOMBRE,IsProtected\nAna,true\n")
    assert result.created == 1
    assert member_service.find_member("ana").is_protected


def test_import_members_requires_nombre_column(import_service, queue):
    with pytest.raises(ImportParseError, match="nombre"):
        import_service.import_members("name\nAna\n")
    assert len(queue) == 0


def test_import_collects_every_row_error(import_service, queue):
    with pytest.raises(ImportParseError) as exc_info:
        import_service.import_members("nombre,isprotected\nAna\n,false\nBeto,true,extra\n")

    assert len(exc_info.value.errors) == 3
    assert exc_info.value.errors[0].startswith("Line 2")
    assert len(queue) == 0


def test_import_empty_file(import_service):
    with pytest.raises(ImportParseError, match="empty"):
        import_service.import_members("\n\n")


def test_replace_import_preserves_protected_reasons(import_service, reason_service):
    protected = [
        reason_service.add_reason("Sueldo", is_protected=True),
        reason_service.add_reason("Ahorro", is_protected=True),
    ]
    reason_service.add_reason("Renta")
    reason_service.add_reason("Luz")

    result = import_service.import_reasons(
        "descripcion,isquickreason\nComida,true\nBus,false\nCine,false\n", ImportMode.REPLACE
    )

    assert result.created == 3
    assert result.removed == 2
    live = reason_service.list_reasons()
    assert len(live) == 3 + 2
    for reason in protected:
        assert reason_service.get_reason(reason.id) == reason
    assert reason_service.find_reason("renta") is None
    assert reason_service.find_reason("comida").is_quick_reason


def test_replace_import_refuses_to_orphan_records(
    import_service, record_service, member_service, sample_member, sample_reason
):
    record_service.add_record(
        date(2024, 6, 1), sample_member.id, sample_reason.id, "EXPENSE", Decimal("5")
    )

    with pytest.raises(ReferentialIntegrityError):
        import_service.import_members("nombre\nAna\n", "replace")

    assert member_service.find_member("beto") is not None
    assert member_service.find_member("ana") is None


def test_import_records(import_service, record_service, sample_member, sample_reason):
    text = (
        RECORD_HEADER
        + '01/06/2024,beto,GASTOS,renta,"Pago, junio",200\n'
        + '02/06/2024,BETO,ingresos,RENTA,"Dice ""hola""",-50.5\n'
    )

    result = import_service.import_records(text)

    assert result.created == 2
    records = record_service.filter_records()
    assert [r.amount for r in records] == [Decimal("50.5"), Decimal("-200")]
    assert records[0].movement_type is MovementType.INCOME
    assert records[0].description == 'Dice "hola"'
    assert records[1].description == "Pago, junio"
    assert records[1].member_id == sample_member.id
    assert records[1].reason_id == sample_reason.id


def test_import_records_reports_unresolved_references(import_service, queue, sample_member, sample_reason):
    queued = len(queue)
    text = (
        RECORD_HEADER
        + "01/06/2024,Beto,GASTOS,Renta,,10\n"
        + "01/06/2024,Nadie,GASTOS,Renta,,10\n"
        + "31/02/2024,Beto,GASTOS,Nada,,abc\n"
    )

    with pytest.raises(ImportParseError) as exc_info:
        import_service.import_records(text)

    errors = exc_info.value.errors
    assert any("Line 3" in e and "Nadie" in e for e in errors)
    assert sum(1 for e in errors if e.startswith("Line 4")) == 3
    assert len(queue) == queued


def test_import_records_requires_exact_headers(import_service):
    with pytest.raises(ImportParseError, match="integranteNombre"):
        import_service.import_records("fecha,integrante,movimiento,razonDescripcion,descripcion,monto\n")


def test_import_records_replace_wipes_existing(import_service, record_service, store, sample_member, sample_reason):
    old = record_service.add_record(
        date(2024, 1, 1), sample_member.id, sample_reason.id, "EXPENSE", Decimal("1")
    )

    result = import_service.import_records(RECORD_HEADER + "01/06/2024,Beto,GASTOS,Renta,,10\n", "replace")

    assert result.created == 1
    assert result.removed == 1
    assert store.get(EntityKind.RECORD, old.id) is None
    assert len(store.records()) == 1


def test_failed_apply_leaves_nothing_behind(import_service, member_service, store, queue, monkeypatch):
    member_service.add_member("Ana")
    queued = len(queue)
    calls = {"n": 0}
    original = import_service.ledger.create

    def flaky_create(entity):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("disk full")
        return original(entity)

    monkeypatch.setattr(import_service.ledger, "create", flaky_create)

    with pytest.raises(RuntimeError):
        import_service.import_members("nombre\nBeto\nCarla\n", "replace")

    assert [m.name for m in store.members()] == ["ANA"]
    assert len(queue) == queued


def test_import_from_file_with_bom(import_service, member_service, tmp_path):
    path = tmp_path / "integrantes.csv"
    path.write_bytes("\ufeffnombre\nAna\n".encode("utf-8"))

    result = import_service.import_members_file(path)

    assert result.created == 1
    assert member_service.find_member("ana") is not None


def test_import_missing_file(import_service, tmp_path):
    with pytest.raises(FileNotFoundError):
        import_service.import_members_file(tmp_path / "missing.csv")
