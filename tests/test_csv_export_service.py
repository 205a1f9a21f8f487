"""Tests for CSVExportService."""

from datetime import date
from decimal import Decimal


def test_export_members(export_service, member_service):
    member_service.add_member("Beto")
    member_service.add_member("Ana", is_protected=True)
    gone = member_service.add_member("Zoe")
    member_service.delete_member(gone.id)

    assert export_service.export_members() == (
        'nombre,isprotected\n"ANA",true\n"BETO",false\n'
    )


def test_export_reasons(export_service, reason_service):
    reason_service.add_reason('Dice "hola"', is_quick_reason=True)

    assert export_service.export_reasons() == (
        'descripcion,isquickreason,isprotected\n"DICE ""HOLA""",true,false\n'
    )


def test_export_records_with_filter(export_service, record_service, sample_member, sample_reason):
    record_service.add_record(
        date(2024, 6, 1), sample_member.id, sample_reason.id, "EXPENSE", Decimal("200"), "Pago, junio"
    )
    record_service.add_record(
        date(2024, 6, 2), sample_member.id, sample_reason.id, "INCOME", Decimal("5"), "Otro"
    )

    text = export_service.export_records("description", "junio")

    assert text == (
        "fecha,integranteNombre,movimiento,razonDescripcion,descripcion,monto\n"
        '"01/06/2024","BETO","GASTOS","RENTA","Pago, junio",-200\n'
    )


def test_exported_records_import_back(
    export_service, import_service, record_service, sample_member, sample_reason
):
    record_service.add_record(
        date(2024, 6, 1), sample_member.id, sample_reason.id, "INVESTMENT", Decimal("99.5"), 'a "b"'
    )

    result = import_service.import_records(export_service.export_records(), "replace")

    assert result.created == 1
    [record] = record_service.filter_records()
    assert record.amount == Decimal("-99.5")
    assert record.description == 'a "b"'
