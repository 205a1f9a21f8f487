"""CSV import domain service."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Union

from pocketbook.domain import errors
from pocketbook.domain.entities import (
    DESCRIPTION_MAX_LENGTH,
    EntityKind,
    Member,
    MovementType,
    Reason,
    Record,
    normalize_amount,
    parse_document_date,
)
from pocketbook.domain.errors import ImportParseError, ReferentialIntegrityError
from pocketbook.domain.ledger import Ledger
from pocketbook.utils.amount_parser import parse_amount
from pocketbook.utils.csv_text import parse_bool, read_csv_rows

logger = logging.getLogger(__name__)

RECORD_HEADERS = [
    "fecha",
    "integranteNombre",
    "movimiento",
    "razonDescripcion",
    "descripcion",
    "monto",
]


class ImportMode(Enum):
    """How imported rows combine with the existing collection."""

    ADD = "add"
    REPLACE = "replace"

    @classmethod
    def parse(cls, value: Union[str, "ImportMode"]) -> "ImportMode":
        if isinstance(value, ImportMode):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            raise ValueError(f"Unknown import mode '{value}' (use add or replace)") from e


@dataclass(frozen=True)
class ImportResult:
    """Outcome of an import.

    Attributes:
        created: Entities actually created
        skipped: Rows skipped as duplicates (add mode only)
        removed: Existing entities soft-deleted (replace mode only)
    """

    created: int
    skipped: int = 0
    removed: int = 0


@dataclass(frozen=True)
class _RecordRow:
    date: date
    member_id: str
    reason_id: str
    movement_type: MovementType
    amount: Decimal
    description: str


class CSVImportService:
    """Service for importing members, reasons and records from CSV text.

    Every import parses and validates the whole input first; if any row is
    invalid an ImportParseError listing every problem is raised and nothing
    is created. Valid input is applied as one atomic unit.
    """

    def __init__(self, ledger: Ledger):
        """Initialize CSV import service.

        Args:
            ledger: Shared store and pending queue
        """
        self.ledger = ledger
        self.store = ledger.store

    @staticmethod
    def _read(text: str) -> tuple[list[str], list[tuple[int, list[str]]]]:
        try:
            return read_csv_rows(text)
        except ValueError as e:
            raise ImportParseError([str(e)]) from e

    @staticmethod
    def _read_file(path: Union[str, Path]) -> str:
        csv_path = Path(path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {path}")
        return csv_path.read_text(encoding="utf-8-sig")

    @staticmethod
    def _rows_as_dicts(
        header: list[str], rows: list[tuple[int, list[str]]], problems: list[str]
    ) -> list[tuple[int, dict[str, str]]]:
        result = []
        for line_num, fields in rows:
            if len(fields) != len(header):
                problems.append(
                    f"Line {line_num}: has {len(fields)} columns but the header has {len(header)}"
                )
                continue
            result.append((line_num, dict(zip(header, fields))))
        return result

    def _replace_check(self, kind: EntityKind) -> list:
        """Non-protected live entities a replace import would remove.

        Raises:
            ReferentialIntegrityError: If any of them is referenced by a live record
        """
        doomed = [e for e in self.store.entities(kind) if not e.is_protected]
        label = "member" if kind is EntityKind.MEMBER else "reason"
        for entity in doomed:
            count = self.store.references_to(kind, entity.id)
            if count:
                value = entity.name if kind is EntityKind.MEMBER else entity.description
                raise ReferentialIntegrityError(errors.delete_blocked(label, value, count))
        return doomed

    def _parse_keyed_rows(
        self, text: str, key_column: str, flag_columns: tuple[str, ...]
    ) -> list[tuple[str, dict[str, bool]]]:
        header, rows = self._read(text)
        header = [h.lower() for h in header]
        if key_column not in header:
            raise ImportParseError([f"Missing required column '{key_column}'"])

        problems: list[str] = []
        parsed = []
        for line_num, row in self._rows_as_dicts(header, rows, problems):
            value = row[key_column]
            if not value:
                problems.append(f"Line {line_num}: '{key_column}' is empty")
                continue
            flags = {column: parse_bool(row.get(column)) for column in flag_columns}
            parsed.append((value.upper(), flags))

        if problems:
            raise ImportParseError(problems)
        return parsed

    def _apply_keyed(
        self, kind: EntityKind, rows: list[tuple[str, dict[str, bool]]], mode: ImportMode
    ) -> ImportResult:
        find = (
            self.store.find_member_by_name
            if kind is EntityKind.MEMBER
            else self.store.find_reason_by_description
        )
        created = skipped = removed = 0
        with self.ledger.atomic():
            if mode is ImportMode.REPLACE:
                for entity in self._replace_check(kind):
                    self.ledger.soft_delete(entity)
                    removed += 1

            seen = set()
            for value, flags in rows:
                key = value.lower()
                if mode is ImportMode.ADD and (key in seen or find(value) is not None):
                    skipped += 1
                    continue
                seen.add(key)
                self.ledger.create(self._build_keyed(kind, value, flags))
                created += 1

        logger.info(
            "Imported %s: %s created, %s skipped, %s removed",
            kind.value,
            created,
            skipped,
            removed,
        )
        return ImportResult(created=created, skipped=skipped, removed=removed)

    def _build_keyed(self, kind: EntityKind, value: str, flags: dict[str, bool]):
        now = self.ledger.now()
        common = dict(
            id=self.ledger.new_id(),
            owner_id=self.ledger.owner_id,
            created_at=now,
            updated_at=now,
            is_protected=flags.get("isprotected", False),
        )
        if kind is EntityKind.MEMBER:
            return Member(name=value, **common)
        return Reason(
            description=value,
            is_quick_reason=flags.get("isquickreason", False),
            **common,
        )

    def import_members(self, text: str, mode: Union[str, ImportMode] = ImportMode.ADD) -> ImportResult:
        """Import members from CSV text.

        The header must contain 'nombre' and may contain 'isprotected'
        (matched case-insensitively).

        Args:
            text: CSV text
            mode: ADD skips names that already exist (case-insensitive);
                REPLACE soft-deletes every non-protected member first

        Returns:
            ImportResult with counts

        Raises:
            ImportParseError: If the CSV is malformed; nothing is imported
            ReferentialIntegrityError: If replace would remove a member
                still used by records
        """
        rows = self._parse_keyed_rows(text, "nombre", ("isprotected",))
        return self._apply_keyed(EntityKind.MEMBER, rows, ImportMode.parse(mode))

    def import_reasons(self, text: str, mode: Union[str, ImportMode] = ImportMode.ADD) -> ImportResult:
        """Import reasons from CSV text.

        The header must contain 'descripcion' and may contain
        'isquickreason' and 'isprotected' (matched case-insensitively).
        Modes and errors are as for import_members.
        """
        rows = self._parse_keyed_rows(text, "descripcion", ("isquickreason", "isprotected"))
        return self._apply_keyed(EntityKind.REASON, rows, ImportMode.parse(mode))

    def _parse_record_rows(self, text: str) -> list[_RecordRow]:
        header, rows = self._read(text)
        missing = [h for h in RECORD_HEADERS if h not in header]
        if missing:
            raise ImportParseError(
                [f"Header must contain {', '.join(RECORD_HEADERS)}; missing {', '.join(missing)}"]
            )

        problems: list[str] = []
        parsed = []
        for line_num, row in self._rows_as_dicts(header, rows, problems):
            row_problems = []

            try:
                record_date = parse_document_date(row["fecha"])
            except ValueError:
                row_problems.append(f"invalid date '{row['fecha']}' (expected dd/mm/yyyy)")
                record_date = None

            member = self.store.find_member_by_name(row["integranteNombre"])
            if member is None:
                row_problems.append(f"member '{row['integranteNombre']}' not found")

            reason = self.store.find_reason_by_description(row["razonDescripcion"])
            if reason is None:
                row_problems.append(f"reason '{row['razonDescripcion']}' not found")

            try:
                movement = MovementType.parse(row["movimiento"])
            except ValueError as e:
                row_problems.append(str(e))
                movement = None

            try:
                amount = parse_amount(row["monto"])
                if amount == 0:
                    row_problems.append("amount must be non-zero")
            except ValueError as e:
                row_problems.append(str(e))
                amount = None

            if len(row["descripcion"]) > DESCRIPTION_MAX_LENGTH:
                row_problems.append(f"description exceeds {DESCRIPTION_MAX_LENGTH} characters")

            if row_problems:
                problems.extend(f"Line {line_num}: {p}" for p in row_problems)
                continue

            parsed.append(
                _RecordRow(
                    date=record_date,
                    member_id=member.id,
                    reason_id=reason.id,
                    movement_type=movement,
                    amount=normalize_amount(movement, amount),
                    description=row["descripcion"],
                )
            )

        if problems:
            raise ImportParseError(problems)
        return parsed

    def import_records(self, text: str, mode: Union[str, ImportMode] = ImportMode.ADD) -> ImportResult:
        """Import financial records from CSV text.

        The header must contain fecha, integranteNombre, movimiento,
        razonDescripcion, descripcion and monto. Members and reasons are
        resolved by case-insensitive name. Records have no unique key, so
        ADD creates every row and REPLACE soft-deletes all records first.

        Raises:
            ImportParseError: With one message per bad row; nothing is imported
        """
        mode = ImportMode.parse(mode)
        rows = self._parse_record_rows(text)

        removed = 0
        with self.ledger.atomic():
            if mode is ImportMode.REPLACE:
                for record in self.store.records():
                    self.ledger.soft_delete(record)
                    removed += 1

            for row in rows:
                now = self.ledger.now()
                self.ledger.create(
                    Record(
                        id=self.ledger.new_id(),
                        owner_id=self.ledger.owner_id,
                        date=row.date,
                        member_id=row.member_id,
                        reason_id=row.reason_id,
                        movement_type=row.movement_type,
                        amount=row.amount,
                        description=row.description,
                        created_at=now,
                        updated_at=now,
                    )
                )

        logger.info("Imported %s records, removed %s", len(rows), removed)
        return ImportResult(created=len(rows), removed=removed)

    def import_members_file(self, path: Union[str, Path], mode: Union[str, ImportMode] = ImportMode.ADD) -> ImportResult:
        """Import members from a UTF-8 CSV file."""
        return self.import_members(self._read_file(path), mode)

    def import_reasons_file(self, path: Union[str, Path], mode: Union[str, ImportMode] = ImportMode.ADD) -> ImportResult:
        """Import reasons from a UTF-8 CSV file."""
        return self.import_reasons(self._read_file(path), mode)

    def import_records_file(self, path: Union[str, Path], mode: Union[str, ImportMode] = ImportMode.ADD) -> ImportResult:
        """Import records from a UTF-8 CSV file."""
        return self.import_records(self._read_file(path), mode)
