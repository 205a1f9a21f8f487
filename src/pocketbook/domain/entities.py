"""Domain model entities for pocketbook.

These are pure data classes representing business concepts, independent of
both the local database schema and the remote document layout. Documents
exchanged with the remote store (and queued for it) use the camelCase field
names of the hosted collections; the conversion lives here so every layer
agrees on it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, UTC
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

DESCRIPTION_MAX_LENGTH = 500
DATE_FORMAT = "%d/%m/%Y"


class EntityKind(Enum):
    """Entity collections, valued by their fixed collection names."""

    MEMBER = "integrantes"
    REASON = "razones"
    RECORD = "financialRecords"


class MovementType(Enum):
    """Kind of financial movement, valued by its CSV/document token."""

    INCOME = "INGRESOS"
    EXPENSE = "GASTOS"
    INVESTMENT = "INVERSION"

    @classmethod
    def parse(cls, value: Union[str, "MovementType"]) -> "MovementType":
        """Parse a movement type from its token or its English name.

        Raises:
            ValueError: If value is neither
        """
        if isinstance(value, MovementType):
            return value
        token = (value or "").strip().upper()
        for member in cls:
            if token in (member.value, member.name):
                return member
        raise ValueError(f"Unknown movement type '{value}'")


def normalize_amount(movement_type: MovementType, amount: Decimal) -> Decimal:
    """Return amount with the sign implied by the movement type."""
    if movement_type is MovementType.INCOME:
        return abs(amount)
    return -abs(amount)


@dataclass(frozen=True)
class Member:
    """Person to whom financial records are attributed."""

    id: str
    owner_id: str
    name: str
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False
    is_protected: bool = False

    kind = EntityKind.MEMBER

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Reason:
    """Category describing the purpose of a financial record."""

    id: str
    owner_id: str
    description: str
    created_at: datetime
    updated_at: datetime
    is_quick_reason: bool = False
    is_deleted: bool = False
    is_protected: bool = False

    kind = EntityKind.REASON

    @property
    def key(self) -> str:
        return self.description.lower()


@dataclass(frozen=True)
class Record:
    """One dated financial movement."""

    id: str
    owner_id: str
    date: date
    member_id: str
    reason_id: str
    movement_type: MovementType
    amount: Decimal
    description: str
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False

    kind = EntityKind.RECORD


Entity = Union[Member, Reason, Record]

ENTITY_TYPES: dict[EntityKind, type] = {
    EntityKind.MEMBER: Member,
    EntityKind.REASON: Reason,
    EntityKind.RECORD: Record,
}


class OperationType(Enum):
    """Mutation kinds recorded in the pending operation queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OperationStatus(Enum):
    """Queue status of a pending operation."""

    PENDING = "pending"
    DEAD = "dead"


@dataclass(frozen=True)
class PendingOperation:
    """A local mutation waiting to be replayed against the remote store.

    Attributes:
        seq: Persistence sequence number; defines FIFO order
        op_type: Create, update or delete
        kind: Entity collection the operation targets
        entity_id: Identifier of the target entity
        payload: Full document for creates, changed fields for updates,
            empty for deletes
        enqueued_at: When the mutation was performed locally
        attempts: Failed push attempts so far
        last_error: Message of the most recent failure
        status: Pending or dead-lettered
    """

    seq: int
    op_type: OperationType
    kind: EntityKind
    entity_id: str
    payload: dict[str, Any]
    enqueued_at: datetime
    attempts: int = 0
    last_error: Optional[str] = None
    status: OperationStatus = OperationStatus.PENDING

    def describe(self) -> str:
        return f"{self.op_type.value} {self.kind.value}/{self.entity_id}"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from storage."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_date(value: date) -> str:
    """Format a calendar day as dd/MM/yyyy."""
    return value.strftime(DATE_FORMAT)


def parse_document_date(value: str) -> date:
    """Parse a dd/MM/yyyy document date."""
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def _timestamp_to_document(value: datetime) -> str:
    return as_utc(value).isoformat()


def timestamp_from_document(value: Any) -> datetime:
    """Read a document stamp: an ISO string, a datetime or epoch milliseconds."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as written by web clients
        return datetime.fromtimestamp(value / 1000, UTC)
    return as_utc(datetime.fromisoformat(value))


# Document field name -> (entity attribute, to_document, from_document)
_COMMON_FIELDS = {
    "userId": ("owner_id", str, str),
    "createdAt": ("created_at", _timestamp_to_document, timestamp_from_document),
    "updatedAt": ("updated_at", _timestamp_to_document, timestamp_from_document),
    "isDeleted": ("is_deleted", bool, bool),
}


def _parse_amount(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount '{value}'") from e


DOCUMENT_FIELDS: dict[EntityKind, dict[str, tuple]] = {
    EntityKind.MEMBER: {
        **_COMMON_FIELDS,
        "nombre": ("name", str, str),
        "isProtected": ("is_protected", bool, bool),
    },
    EntityKind.REASON: {
        **_COMMON_FIELDS,
        "descripcion": ("description", str, str),
        "isQuickReason": ("is_quick_reason", bool, bool),
        "isProtected": ("is_protected", bool, bool),
    },
    EntityKind.RECORD: {
        **_COMMON_FIELDS,
        "fecha": ("date", format_date, parse_document_date),
        "integranteId": ("member_id", str, str),
        "razonId": ("reason_id", str, str),
        "movimiento": ("movement_type", lambda m: m.value, MovementType.parse),
        "monto": ("amount", str, _parse_amount),
        "descripcion": ("description", str, lambda v: v or ""),
    },
}

_ATTRIBUTE_TO_DOCUMENT: dict[EntityKind, dict[str, str]] = {
    kind: {attr: name for name, (attr, _, _) in fields.items()}
    for kind, fields in DOCUMENT_FIELDS.items()
}


def fields_to_document(kind: EntityKind, values: dict[str, Any]) -> dict[str, Any]:
    """Convert entity attribute values to document fields.

    Args:
        kind: Entity collection
        values: Mapping of entity attribute name to value

    Returns:
        Mapping of document field name to JSON-compatible value
    """
    document = {}
    for attr, value in values.items():
        name = _ATTRIBUTE_TO_DOCUMENT[kind][attr]
        to_document = DOCUMENT_FIELDS[kind][name][1]
        document[name] = to_document(value)
    return document


def fields_from_document(kind: EntityKind, document: dict[str, Any]) -> dict[str, Any]:
    """Convert document fields (possibly partial) to entity attribute values.

    Unknown document fields are ignored.
    """
    values = {}
    for name, value in document.items():
        field_def = DOCUMENT_FIELDS[kind].get(name)
        if field_def is None:
            continue
        attr, _, from_document = field_def
        values[attr] = from_document(value)
    return values


def entity_to_document(entity: Entity) -> dict[str, Any]:
    """Serialize an entity to a full document (the id is carried separately)."""
    values = {
        attr: getattr(entity, attr) for attr in _ATTRIBUTE_TO_DOCUMENT[entity.kind]
    }
    return fields_to_document(entity.kind, values)


def entity_from_document(kind: EntityKind, entity_id: str, document: dict[str, Any]) -> Entity:
    """Build an entity from a full document.

    Raises:
        ValueError: If a required field is missing or malformed
    """
    values = fields_from_document(kind, document)
    values.setdefault("is_deleted", False)
    if "updated_at" in values:
        values.setdefault("created_at", values["updated_at"])
    if kind is EntityKind.RECORD:
        values.setdefault("description", "")
    else:
        values.setdefault("is_protected", False)
    if kind is EntityKind.REASON:
        values.setdefault("is_quick_reason", False)
    try:
        return ENTITY_TYPES[kind](id=entity_id, **values)
    except TypeError as e:
        raise ValueError(f"Incomplete {kind.value} document '{entity_id}': {e}") from e
