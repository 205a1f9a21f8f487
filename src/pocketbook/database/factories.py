"""Construction of the local store."""

import os
from pathlib import Path
from typing import Optional

from pocketbook.database.sqlalchemy_db import SQLAlchemyDatabase


def default_database_path() -> Path:
    """Location used when neither an option nor POCKETBOOK_DB_PATH names one."""
    return Path.home() / ".pocketbook" / "pocketbook.db"


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Open (creating if needed) the SQLite file backing the local store.

    The lookup order is the explicit argument, then POCKETBOOK_DB_PATH, then
    :func:`default_database_path`. Missing parent directories are created.
    """
    path = Path(
        database_path or os.environ.get("POCKETBOOK_DB_PATH") or default_database_path()
    ).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return SQLAlchemyDatabase(f"sqlite:///{path}", database_path=str(path))
