"""Shared pytest fixtures for pocketbook tests."""

import os
import tempfile
from datetime import datetime, timedelta, UTC

import pytest
from click.testing import CliRunner

from pocketbook.database.factories import create_sqlite_database
from pocketbook.domain.csv_export import CSVExportService
from pocketbook.domain.csv_import import CSVImportService
from pocketbook.domain.ledger import Ledger
from pocketbook.domain.member import MemberService
from pocketbook.domain.queue import PendingOperationQueue
from pocketbook.domain.reason import ReasonService
from pocketbook.domain.record import RecordService
from pocketbook.domain.store import EntityStore
from pocketbook.remote.memory import InMemoryRemoteStore
from pocketbook.sync.engine import SyncEngine

OWNER = "user-1"


class TickingClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store(temp_db):
    return EntityStore(temp_db)


@pytest.fixture
def queue(temp_db):
    return PendingOperationQueue(temp_db, max_attempts=3)


@pytest.fixture
def ledger(store, queue, clock):
    return Ledger(store, queue, owner_id=OWNER, clock=clock)


@pytest.fixture
def member_service(ledger):
    return MemberService(ledger)


@pytest.fixture
def reason_service(ledger):
    return ReasonService(ledger)


@pytest.fixture
def record_service(ledger):
    return RecordService(ledger)


@pytest.fixture
def import_service(ledger):
    return CSVImportService(ledger)


@pytest.fixture
def export_service(store, record_service):
    return CSVExportService(store, record_service)


@pytest.fixture
def remote():
    """In-memory remote store with its own clock, one hour ahead of the local one."""
    return InMemoryRemoteStore(clock=TickingClock(datetime(2024, 6, 1, 13, 0, tzinfo=UTC)))


@pytest.fixture
def engine(store, queue, remote):
    return SyncEngine(store, queue, remote, OWNER)


@pytest.fixture
def sample_member(member_service):
    return member_service.add_member("Beto")


@pytest.fixture
def sample_reason(reason_service):
    return reason_service.add_reason("Renta")


@pytest.fixture
def cli_runner():
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def db_path():
    """Path for a database the CLI creates itself."""
    with tempfile.TemporaryDirectory() as tmp:
        yield os.path.join(tmp, "pocketbook.db")
