"""
Append-only audit log of symptom checks.

Writes are independent of each other; nothing reads the log on the
request path except the history and stats endpoints.
"""

import asyncio
from typing import Protocol

from arango.database import StandardDatabase
from arango.exceptions import ArangoError

from config.constants import HISTORY_LIMIT
from config.logging_config import get_logger
from database.database import HISTORY_COLLECTION, query_documents, strip_system_fields
from models.models import QueryLogEntry
from services.errors import QueryLogError

logger = get_logger(__name__)


class QueryLog(Protocol):
    """Sink for query audit records."""

    async def append(self, entry: QueryLogEntry) -> None:
        ...

    async def recent(self, limit: int = HISTORY_LIMIT) -> list[QueryLogEntry]:
        """Newest entries first."""
        ...

    async def count(self, is_emergency: bool | None = None) -> int:
        ...


class InMemoryQueryLog:
    """Query log kept in process memory."""

    def __init__(self):
        self._entries: list[QueryLogEntry] = []

    async def append(self, entry: QueryLogEntry) -> None:
        self._entries.append(entry)

    async def recent(self, limit: int = HISTORY_LIMIT) -> list[QueryLogEntry]:
        # append-only, so insertion order is time order
        return list(reversed(self._entries))[:limit]

    async def count(self, is_emergency: bool | None = None) -> int:
        if is_emergency is None:
            return len(self._entries)
        return sum(1 for e in self._entries if e.is_emergency == is_emergency)


class ArangoQueryLog:
    """Query log stored in the ``query_history`` collection."""

    RECENT_AQL = f"""
        FOR doc IN {HISTORY_COLLECTION}
            SORT doc.createdAt DESC
            LIMIT @limit
            RETURN doc
    """

    COUNT_AQL = f"""
        RETURN LENGTH(
            FOR doc IN {HISTORY_COLLECTION}
                FILTER @is_emergency == null OR doc.isEmergency == @is_emergency
                RETURN 1
        )
    """

    def __init__(self, db: StandardDatabase):
        self.db = db

    async def append(self, entry: QueryLogEntry) -> None:
        collection = self.db.collection(HISTORY_COLLECTION)
        try:
            await asyncio.to_thread(collection.insert, entry.to_document())
        except ArangoError as e:
            raise QueryLogError(f"Query log write failed: {e}") from e

    async def recent(self, limit: int = HISTORY_LIMIT) -> list[QueryLogEntry]:
        try:
            rows = await asyncio.to_thread(
                query_documents, self.db, self.RECENT_AQL, {"limit": limit}
            )
        except ArangoError as e:
            raise QueryLogError(f"Query log read failed: {e}") from e
        return [QueryLogEntry.model_validate(strip_system_fields(row)) for row in rows]

    async def count(self, is_emergency: bool | None = None) -> int:
        try:
            rows = await asyncio.to_thread(
                query_documents, self.db, self.COUNT_AQL, {"is_emergency": is_emergency}
            )
        except ArangoError as e:
            raise QueryLogError(f"Query log count failed: {e}") from e
        return int(rows[0]) if rows else 0
