"""
Provider contract - the capability set every database engine exposes.

Usage:
    provider = create_provider("sqlserver", auditor=auditor)
    provider.connect("Server=.;Database=TestDB;Trusted_Connection=yes;")
    result = provider.run_query("SELECT name FROM sys.databases")
    provider.disconnect()
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import (
    BackupKind,
    BackupRecord,
    IndexDescriptor,
    LoginDescriptor,
    PerformanceSnapshot,
    QueryResult,
    TableDescriptor,
)


class DatabaseProvider(ABC):
    """
    Abstract base class for engine-specific providers.

    A provider owns at most one live connection. Every operation except
    connect() and disconnect() requires that connection and raises
    NotConnectedError without touching the engine otherwise.
    """

    # ========================================================================
    # Connection lifecycle
    # ========================================================================

    @abstractmethod
    def connect(self, connection_input: str) -> None:
        """Open the connection. Raises DatabaseConnectionError on failure."""

    @abstractmethod
    def disconnect(self) -> None:
        """Release the connection. Safe to call repeatedly."""

    # ========================================================================
    # Query execution
    # ========================================================================

    @abstractmethod
    def run_query(self, query: str) -> QueryResult:
        """Execute text verbatim; failures come back as QueryFailure."""

    # ========================================================================
    # Schema introspection
    # ========================================================================

    @abstractmethod
    def get_tables(self) -> List[TableDescriptor]:
        """All user tables with their columns."""

    @abstractmethod
    def get_table_schema(self, table_name: str) -> TableDescriptor:
        """One table. Raises TableNotFoundError if it doesn't exist."""

    @abstractmethod
    def get_indexes(self, table_name: Optional[str] = None) -> List[IndexDescriptor]:
        """Indexes with key columns, kind, size and last use."""

    # ========================================================================
    # Backups
    # ========================================================================

    @abstractmethod
    def new_backup(
        self,
        destination: str,
        kind: BackupKind = BackupKind.FULL,
        compressed: bool = False,
    ) -> QueryResult:
        """Back up the connected database; failures come back as QueryFailure."""

    @abstractmethod
    def get_backup_history(self, limit: Optional[int] = None) -> List[BackupRecord]:
        """Backups of the connected database, newest first."""

    @abstractmethod
    def get_latest_backup(self) -> str:
        """Finish time of the newest backup, or NO_BACKUP."""

    # ========================================================================
    # Server information
    # ========================================================================

    @abstractmethod
    def get_edition(self) -> str:
        """Engine edition string."""

    @abstractmethod
    def get_performance_stats(self, strict: bool = True) -> PerformanceSnapshot:
        """Throughput, connection count, CPU busy and memory in use."""

    @abstractmethod
    def get_users(self) -> List[LoginDescriptor]:
        """Server logins."""
