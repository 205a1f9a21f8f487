"""Remote document store adapters."""

import logging
from typing import Optional

from pocketbook.remote.base import (
    BatchWriteError,
    RemoteDocument,
    RemoteRejectedError,
    RemoteStore,
    RemoteStoreError,
    RemoteUnavailableError,
    RemoteWrite,
)
from pocketbook.remote.memory import InMemoryRemoteStore

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"

__all__ = [
    "BatchWriteError",
    "InMemoryRemoteStore",
    "RemoteDocument",
    "RemoteRejectedError",
    "RemoteStore",
    "RemoteStoreError",
    "RemoteUnavailableError",
    "RemoteWrite",
    "create_remote_store",
]


def create_remote_store(url: Optional[str]) -> Optional[RemoteStore]:
    """Create the remote store named by a URL.

    Args:
        url: ``memory://`` for an in-process store, any other value is a
            SQLAlchemy database URL; None or empty means no remote

    Returns:
        RemoteStore instance, or None when sync is disabled
    """
    if not url:
        return None
    if url == MEMORY_URL:
        return InMemoryRemoteStore()

    from pocketbook.remote.sqlalchemy_store import SQLAlchemyRemoteStore

    logger.debug("Using SQL remote store at %s", url)
    return SQLAlchemyRemoteStore(url)
