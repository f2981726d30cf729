"""
Base provider with shared state and "not implemented" defaults.

Concrete engines subclass BaseProvider and override the operations they
support. Anything left alone still satisfies the contract: it checks the
connection, logs at ERROR and raises ProviderNotImplementedError.
"""

import logging
from typing import Any, Dict, List, Optional

from history.auditor import QueryAuditor

from ..exceptions import NotConnectedError, ProviderNotImplementedError
from ..models import (
    BackupKind,
    BackupRecord,
    ExecutionStatus,
    IndexDescriptor,
    LoginDescriptor,
    PerformanceSnapshot,
    QueryLogEntry,
    QueryResult,
    TableDescriptor,
)
from .contract import DatabaseProvider

logger = logging.getLogger(__name__)


class BaseProvider(DatabaseProvider):
    """Shared provider state: display name, handle, connected flag, config."""

    ENGINE_NAME = "generic"

    def __init__(
        self,
        name: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        auditor: Optional[QueryAuditor] = None,
    ):
        """
        Initialize the provider.

        Args:
            name: Display name until a connection reports the real database name
            config: Engine-specific options
            auditor: History store for audited statements. If None, uses the
                configured history file.
        """
        self.name = name or self.ENGINE_NAME
        self.config: Dict[str, Any] = dict(config or {})
        self.connection: Optional[Any] = None
        self.connected = False
        if auditor is None:
            from config.settings import get_settings
            auditor = QueryAuditor(get_settings().history_path)
        self.auditor = auditor

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"<{type(self).__name__}(name='{self.name}', {state})>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()
        return False

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _require_connection(self, operation: str) -> None:
        if not self.connected or self.connection is None:
            logger.error(f"{operation} called on {self.name} while disconnected")
            raise NotConnectedError(f"{operation} requires an open connection")

    def _not_implemented(self, operation: str):
        self._require_connection(operation)
        logger.error(f"{operation} is not implemented for {self.ENGINE_NAME}")
        raise ProviderNotImplementedError(self.ENGINE_NAME, operation)

    def _audit(
        self,
        query_text: str,
        status: ExecutionStatus,
        affected_rows: int = 0,
        execution_time_ms: float = 0.0,
    ) -> QueryLogEntry:
        return self.auditor.record(
            database=self.name,
            query_text=query_text,
            status=status,
            affected_rows=affected_rows,
            execution_time_ms=execution_time_ms,
        )

    # ------------------------------------------------------------------
    # Contract defaults
    # ------------------------------------------------------------------

    def connect(self, connection_input: str) -> None:
        logger.error(f"connect is not implemented for {self.ENGINE_NAME}")
        raise ProviderNotImplementedError(self.ENGINE_NAME, "connect")

    def disconnect(self) -> None:
        connection, self.connection = self.connection, None
        self.connected = False
        if connection is not None and hasattr(connection, "close"):
            connection.close()
            logger.info(f"Disconnected from {self.name}")

    def run_query(self, query: str) -> QueryResult:
        self._not_implemented("run_query")

    def get_tables(self) -> List[TableDescriptor]:
        self._not_implemented("get_tables")

    def get_table_schema(self, table_name: str) -> TableDescriptor:
        self._not_implemented("get_table_schema")

    def get_indexes(self, table_name: Optional[str] = None) -> List[IndexDescriptor]:
        self._not_implemented("get_indexes")

    def new_backup(
        self,
        destination: str,
        kind: BackupKind = BackupKind.FULL,
        compressed: bool = False,
    ) -> QueryResult:
        self._not_implemented("new_backup")

    def get_backup_history(self, limit: Optional[int] = None) -> List[BackupRecord]:
        self._not_implemented("get_backup_history")

    def get_latest_backup(self) -> str:
        self._not_implemented("get_latest_backup")

    def get_edition(self) -> str:
        self._not_implemented("get_edition")

    def get_performance_stats(self, strict: bool = True) -> PerformanceSnapshot:
        self._not_implemented("get_performance_stats")

    def get_users(self) -> List[LoginDescriptor]:
        self._not_implemented("get_users")
