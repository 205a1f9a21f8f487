"""Domain layer for pocketbook application."""

from pocketbook.domain.store import EntityStore
from pocketbook.domain.queue import PendingOperationQueue
from pocketbook.domain.ledger import Ledger
from pocketbook.domain.member import MemberService
from pocketbook.domain.reason import ReasonService
from pocketbook.domain.record import RecordService, RecordPage
from pocketbook.domain.csv_import import CSVImportService, ImportMode, ImportResult
from pocketbook.domain.csv_export import CSVExportService

__all__ = [
    "EntityStore",
    "PendingOperationQueue",
    "Ledger",
    "MemberService",
    "ReasonService",
    "RecordService",
    "RecordPage",
    "CSVImportService",
    "ImportMode",
    "ImportResult",
    "CSVExportService",
]
