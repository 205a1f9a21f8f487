"""CSV export domain service."""

from typing import Optional

from pocketbook.domain.csv_import import RECORD_HEADERS
from pocketbook.domain.entities import EntityKind, format_date
from pocketbook.domain.record import RecordService
from pocketbook.domain.store import EntityStore
from pocketbook.utils.csv_text import format_bool, join_row, quote


class CSVExportService:
    """Render the live collections as CSV text that the importer reads back."""

    def __init__(self, store: EntityStore, record_service: RecordService):
        """Initialize CSV export service.

        Args:
            store: Entity store to export from
            record_service: Used to apply the records filter
        """
        self.store = store
        self.record_service = record_service

    def export_members(self) -> str:
        lines = [join_row(["nombre", "isprotected"])]
        for member in sorted(self.store.members(), key=lambda m: m.name):
            lines.append(join_row([quote(member.name), format_bool(member.is_protected)]))
        return "\n".join(lines) + "\n"

    def export_reasons(self) -> str:
        lines = [join_row(["descripcion", "isquickreason", "isprotected"])]
        for reason in sorted(self.store.reasons(), key=lambda r: r.description):
            lines.append(
                join_row(
                    [
                        quote(reason.description),
                        format_bool(reason.is_quick_reason),
                        format_bool(reason.is_protected),
                    ]
                )
            )
        return "\n".join(lines) + "\n"

    def export_records(self, filter_field: str = "description", query: Optional[str] = None) -> str:
        """Export records matching a browse filter, newest first.

        Args:
            filter_field: Same fields as RecordService.browse
            query: Optional filter text

        Returns:
            CSV text with the record import header
        """
        members = {
            m.id: m.name for m in self.store.entities(EntityKind.MEMBER, include_deleted=True)
        }
        reasons = {
            r.id: r.description
            for r in self.store.entities(EntityKind.REASON, include_deleted=True)
        }

        lines = [join_row(RECORD_HEADERS)]
        for record in self.record_service.filter_records(filter_field, query):
            lines.append(
                join_row(
                    [
                        quote(format_date(record.date)),
                        quote(members.get(record.member_id, "")),
                        quote(record.movement_type.value),
                        quote(reasons.get(record.reason_id, "")),
                        quote(record.description),
                        str(record.amount),
                    ]
                )
            )
        return "\n".join(lines) + "\n"
