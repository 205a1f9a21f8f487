"""
Configuration for pocketbook.

Settings come from environment variables; CLI options override them.

Invariants:
    - Every setting has a default that works for a single local user
    - An unset remote URL disables sync; local use is unaffected
"""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from pocketbook.domain.ledger import DEFAULT_OWNER_ID
from pocketbook.domain.queue import DEFAULT_MAX_ATTEMPTS

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default
    if value < 1:
        logger.warning("Ignoring %s=%r below 1; using %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime settings.

    Attributes:
        db_path: Local database file; None selects the default location
        remote_url: ``memory://`` or a SQLAlchemy URL; None disables sync
        owner_id: Owner of the local data (authentication is a stub)
        max_attempts: Failed pushes after which an operation is dead-lettered
        tombstone_retention_days: Minimum age of tombstones removed by compaction
    """

    db_path: Optional[str] = None
    remote_url: Optional[str] = None
    owner_id: str = DEFAULT_OWNER_ID
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    tombstone_retention_days: int = DEFAULT_RETENTION_DAYS

    @property
    def tombstone_retention(self) -> timedelta:
        return timedelta(days=self.tombstone_retention_days)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            db_path=os.getenv("POCKETBOOK_DB_PATH") or None,
            remote_url=os.getenv("POCKETBOOK_REMOTE_URL") or None,
            owner_id=os.getenv("POCKETBOOK_OWNER_ID") or DEFAULT_OWNER_ID,
            max_attempts=_int_env("POCKETBOOK_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            tombstone_retention_days=_int_env(
                "POCKETBOOK_TOMBSTONE_RETENTION_DAYS", DEFAULT_RETENTION_DAYS
            ),
        )
