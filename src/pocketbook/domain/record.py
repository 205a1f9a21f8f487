"""Financial record domain service."""

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from pocketbook.domain import errors
from pocketbook.domain.entities import (
    DESCRIPTION_MAX_LENGTH,
    EntityKind,
    MovementType,
    Record,
    format_date,
    normalize_amount,
)
from pocketbook.domain.errors import NotFoundError, ValidationError
from pocketbook.domain.ledger import Ledger

DEFAULT_PER_PAGE = 20

# Browse filter field -> canonical name; Spanish names are what the CSV uses
FILTER_FIELDS = {
    "description": "description",
    "descripcion": "description",
    "member": "member",
    "integrante": "member",
    "reason": "reason",
    "razon": "reason",
    "date": "date",
    "fecha": "date",
}


@dataclass(frozen=True)
class RecordPage:
    """One page of browsed records.

    Attributes:
        records: Records on this page, newest date first
        page: 1-based page number actually returned
        per_page: Page size
        total: Number of records matching the filter
    """

    records: list[Record]
    page: int
    per_page: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))


class RecordService:
    """Service for managing financial records."""

    def __init__(self, ledger: Ledger):
        """Initialize record service.

        Args:
            ledger: Shared store and pending queue
        """
        self.ledger = ledger
        self.store = ledger.store

    def _require_references(self, member_id: str, reason_id: str) -> None:
        if self.store.get(EntityKind.MEMBER, member_id) is None:
            raise NotFoundError(errors.member_not_found(member_id))
        if self.store.get(EntityKind.REASON, reason_id) is None:
            raise NotFoundError(errors.reason_not_found(reason_id))

    @staticmethod
    def _validate_amount(amount: Decimal) -> Decimal:
        amount = Decimal(amount)
        if not amount.is_finite() or amount == 0:
            raise ValidationError("Amount must be a non-zero number")
        return amount

    @staticmethod
    def _validate_description(description: Optional[str]) -> str:
        description = (description or "").strip()
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                f"Description is longer than {DESCRIPTION_MAX_LENGTH} characters"
            )
        return description

    @staticmethod
    def _parse_movement_type(movement_type: Union[str, MovementType]) -> MovementType:
        try:
            return MovementType.parse(movement_type)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def add_record(
        self,
        date: date,
        member_id: str,
        reason_id: str,
        movement_type: Union[str, MovementType],
        amount: Decimal,
        description: Optional[str] = "",
    ) -> Record:
        """Create a record.

        The amount may be given with either sign; it is stored with the sign
        implied by the movement type (income positive, expense and investment
        negative).

        Args:
            date: Calendar day of the movement
            member_id: Member the movement is attributed to
            reason_id: Reason categorizing the movement
            movement_type: MovementType or its name/token
            amount: Non-zero amount
            description: Optional free text

        Returns:
            The new record

        Raises:
            ValidationError: If the amount is zero, the movement type unknown
                or the description too long
            NotFoundError: If the member or reason doesn't exist
        """
        movement = self._parse_movement_type(movement_type)
        amount = self._validate_amount(amount)
        description = self._validate_description(description)
        self._require_references(member_id, reason_id)

        now = self.ledger.now()
        record = Record(
            id=self.ledger.new_id(),
            owner_id=self.ledger.owner_id,
            date=date,
            member_id=member_id,
            reason_id=reason_id,
            movement_type=movement,
            amount=normalize_amount(movement, amount),
            description=description,
            created_at=now,
            updated_at=now,
        )
        return self.ledger.create(record)

    def get_record(self, record_id: str) -> Optional[Record]:
        """Get a live record by ID."""
        return self.store.get(EntityKind.RECORD, record_id)

    def require_record(self, record_id: str) -> Record:
        record = self.get_record(record_id)
        if record is None:
            raise NotFoundError(errors.record_not_found(record_id))
        return record

    def update_record(
        self,
        record_id: str,
        date: Optional[date] = None,
        member_id: Optional[str] = None,
        reason_id: Optional[str] = None,
        movement_type: Union[str, MovementType, None] = None,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Record:
        """Update record fields.

        Only the given fields change. When the amount or the movement type
        changes, the stored amount is renormalized against the resulting
        movement type.

        Args:
            record_id: Record ID to update
            date: Optional new date
            member_id: Optional new member
            reason_id: Optional new reason
            movement_type: Optional new movement type
            amount: Optional new amount
            description: Optional new description

        Returns:
            The updated record

        Raises:
            NotFoundError: If the record, member or reason doesn't exist
            ValidationError: If a new value is invalid
        """
        record = self.require_record(record_id)

        changes = {}
        if date is not None and date != record.date:
            changes["date"] = date
        if member_id is not None and member_id != record.member_id:
            changes["member_id"] = member_id
        if reason_id is not None and reason_id != record.reason_id:
            changes["reason_id"] = reason_id
        self._require_references(
            changes.get("member_id", record.member_id),
            changes.get("reason_id", record.reason_id),
        )

        movement = record.movement_type
        if movement_type is not None:
            movement = self._parse_movement_type(movement_type)
            if movement is not record.movement_type:
                changes["movement_type"] = movement

        if amount is not None or "movement_type" in changes:
            new_amount = record.amount if amount is None else self._validate_amount(amount)
            new_amount = normalize_amount(movement, new_amount)
            if new_amount != record.amount:
                changes["amount"] = new_amount

        if description is not None:
            description = self._validate_description(description)
            if description != record.description:
                changes["description"] = description

        if not changes:
            return record
        return self.ledger.update(record, **changes)

    def delete_record(self, record_id: str) -> None:
        """Delete a record (soft delete).

        Raises:
            NotFoundError: If the record doesn't exist
        """
        record = self.require_record(record_id)
        self.ledger.soft_delete(record)

    def record_dates(self) -> set[date]:
        """Calendar days that have at least one record."""
        return self.store.record_dates()

    def filter_records(
        self,
        filter_field: str = "description",
        query: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Record]:
        """Live records matching a filter, newest date first.

        Args:
            filter_field: description, member, reason or date (Spanish
                names accepted)
            query: Case-insensitive text the field must contain; dates are
                matched against their dd/mm/yyyy text
            start_date: Optional inclusive lower bound
            end_date: Optional inclusive upper bound

        Raises:
            ValidationError: If the filter field is unknown
        """
        field = FILTER_FIELDS.get((filter_field or "").strip().lower())
        if field is None:
            raise ValidationError(f"Unknown filter field '{filter_field}'")

        needle = (query or "").strip().lower()
        members = {m.id: m.name for m in self.store.entities(EntityKind.MEMBER, include_deleted=True)}
        reasons = {
            r.id: r.description
            for r in self.store.entities(EntityKind.REASON, include_deleted=True)
        }

        def text_of(record: Record) -> str:
            if field == "member":
                return members.get(record.member_id, "")
            if field == "reason":
                return reasons.get(record.reason_id, "")
            if field == "date":
                return format_date(record.date)
            return record.description

        records = []
        for record in self.store.records():
            if start_date and record.date < start_date:
                continue
            if end_date and record.date > end_date:
                continue
            if needle and needle not in text_of(record).lower():
                continue
            records.append(record)

        records.sort(key=lambda r: (r.date, r.created_at), reverse=True)
        return records

    def browse(
        self,
        filter_field: str = "description",
        query: Optional[str] = None,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> RecordPage:
        """Filter records and return one page of them.

        Pages past the end are clamped to the last page.

        Returns:
            RecordPage with the requested slice and the match count
        """
        if per_page < 1:
            raise ValidationError("Page size must be at least 1")

        records = self.filter_records(filter_field, query, start_date, end_date)
        total_pages = max(1, math.ceil(len(records) / per_page))
        page = min(max(page, 1), total_pages)
        start = (page - 1) * per_page
        return RecordPage(
            records=records[start : start + per_page],
            page=page,
            per_page=per_page,
            total=len(records),
        )

    def description_suggestions(self, prefix: str = "") -> list[str]:
        """Distinct record descriptions, for autocompletion.

        Args:
            prefix: Optional case-insensitive prefix the description must start with
        """
        prefix = prefix.strip().lower()
        seen = {}
        for record in self.store.records():
            text = record.description
            if text and text.lower().startswith(prefix):
                seen.setdefault(text.lower(), text)
        return sorted(seen.values(), key=str.lower)
