"""
Query auditor: append-only record of every query and backup attempt.

The store is a JSON array rewritten whole on each append. Existing records
are carried over untouched; only reads validate them.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from database.exceptions import StoreCorruptError
from database.models import ExecutionStatus, QueryLogEntry
from storage.json_store import JsonFileStore

logger = logging.getLogger(__name__)


class QueryAuditor:
    """Append-only query history persisted as a JSON array."""

    def __init__(self, history_file: Union[str, Path]):
        self.store = JsonFileStore(history_file)

    @property
    def path(self) -> Path:
        return self.store.path

    def _load_raw(self) -> list:
        data = self.store.load()
        # Absent, blank and the {} placeholder all mean "no entries yet"
        if data is None or data == {}:
            return []
        if not isinstance(data, list):
            raise StoreCorruptError(
                self.store.path, f"expected a JSON array, got {type(data).__name__}"
            )
        return data

    def append(self, entry: QueryLogEntry) -> None:
        """Append one entry, rewriting the whole store."""
        with self.store.locked():
            records = self._load_raw()
            records.append(entry.to_record())
            self.store.save(records)
        logger.debug(
            f"Audited {entry.status.value} on {entry.database} "
            f"({entry.execution_time_ms} ms, {entry.affected_rows} rows)"
        )

    def record(
        self,
        database: str,
        query_text: str,
        status: ExecutionStatus,
        affected_rows: int = 0,
        execution_time_ms: float = 0.0,
        timestamp: Optional[datetime] = None,
    ) -> QueryLogEntry:
        """Build an entry from its parts, append it and return it."""
        entry = QueryLogEntry(
            database=database,
            query_text=query_text,
            status=status,
            affected_rows=max(affected_rows, 0),
            execution_time_ms=max(execution_time_ms, 0.0),
            timestamp=timestamp or datetime.now(),
        )
        self.append(entry)
        return entry

    def entries(self) -> List[QueryLogEntry]:
        """
        Read every entry in store order.

        Raises:
            StoreCorruptError: If the store or any record cannot be parsed
        """
        with self.store.locked():
            records = self._load_raw()

        entries = []
        for position, record in enumerate(records):
            try:
                entries.append(QueryLogEntry.model_validate(record))
            except ValidationError as e:
                raise StoreCorruptError(
                    self.store.path, f"record {position} is invalid: {e.errors()[0]['msg']}"
                ) from e
        return entries

    def query(
        self,
        database: str,
        status: Optional[ExecutionStatus] = None,
    ) -> List[QueryLogEntry]:
        """
        Entries for one database, optionally restricted to one status.

        Args:
            database: Database name the entries were recorded against
            status: Optional status filter

        Returns:
            Matching entries in store order
        """
        return [
            entry for entry in self.entries()
            if entry.database == database and (status is None or entry.status == status)
        ]
