"""
Data models for the database administration core.

Defines query results, schema descriptors, backup records and the
persisted query log entry written by the query auditor.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Returned by get_latest_backup when the database has never been backed up
NO_BACKUP = "none"

BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ExecutionStatus(str, Enum):
    """Outcome of an audited statement."""
    SUCCESS = "Success"
    FAILURE = "Failure"


class BackupKind(str, Enum):
    """Backup types the providers can issue."""
    FULL = "Full"
    DIFFERENTIAL = "Differential"


class IndexKind(str, Enum):
    """Index classification, listed in display precedence."""
    PRIMARY_KEY = "PRIMARY KEY"
    UNIQUE_CLUSTERED = "UNIQUE CLUSTERED"
    UNIQUE_NONCLUSTERED = "UNIQUE NONCLUSTERED"
    OTHER = "OTHER"


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TabularResult:
    """Successful statement: ordered columns and positional rows."""
    columns: List[str]
    rows: List[Tuple[Any, ...]]
    affected_rows: int = 0
    execution_time_ms: float = 0.0
    audit_warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dataframe(self) -> pd.DataFrame:
        """Return the rows as a DataFrame for display."""
        return pd.DataFrame.from_records(self.rows, columns=self.columns)


@dataclass(frozen=True)
class QueryFailure:
    """Failed statement: message for the operator plus the wrapped error."""
    message: str
    error: Optional[Exception] = None
    execution_time_ms: float = 0.0
    # Set when the statement ran but its history entry could not be written
    audit_warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


QueryResult = Union[TabularResult, QueryFailure]


# ---------------------------------------------------------------------------
# Schema descriptors
# ---------------------------------------------------------------------------

@dataclass
class ColumnDescriptor:
    """Column metadata; the key flags are independent of each other."""
    name: str
    data_type: str
    is_primary_key: bool = False
    is_foreign_key: bool = False
    is_unique: bool = False
    is_nullable: bool = True
    is_indexed: bool = False

    @property
    def key_label(self) -> str:
        """Single label for display, precedence PK > FK > UNIQUE > INDEX."""
        if self.is_primary_key:
            return "PK"
        if self.is_foreign_key:
            return "FK"
        if self.is_unique:
            return "UNIQUE"
        if self.is_indexed:
            return "INDEX"
        return ""


@dataclass
class TableDescriptor:
    name: str
    columns: List[ColumnDescriptor] = field(default_factory=list)

    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]


@dataclass
class IndexDescriptor:
    """Index metadata. Columns are (name, "ASC"|"DESC") pairs in key order."""
    table: str
    name: str
    columns: List[Tuple[str, str]] = field(default_factory=list)
    kind: IndexKind = IndexKind.OTHER
    size_kb: float = 0.0
    last_used: Optional[datetime] = None


@dataclass
class BackupRecord:
    database: str
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    kind: str
    destination: str
    user: str


@dataclass
class LoginDescriptor:
    name: str
    login_type: str
    is_disabled: bool
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


@dataclass
class PerformanceSnapshot:
    """Point-in-time server diagnostics. None marks an unavailable metric."""
    batch_requests: Optional[int]
    connections: Optional[int]
    cpu_busy_percent: Optional[float]
    memory_in_use_mb: Optional[float]
    captured_at: datetime = field(default_factory=datetime.now)

    def unavailable(self) -> Sequence[str]:
        return [
            name for name in ("batch_requests", "connections", "cpu_busy_percent", "memory_in_use_mb")
            if getattr(self, name) is None
        ]


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class QueryLogEntry(BaseModel):
    """One audited statement, serialized with the store's PascalCase keys."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, use_enum_values=False)

    database: str = Field(alias="Database")
    query_text: str = Field(alias="QueryText")
    status: ExecutionStatus = Field(alias="ExecutionStatus")
    affected_rows: int = Field(default=0, ge=0, alias="AffectedRows")
    execution_time_ms: float = Field(default=0.0, ge=0, alias="ExecutionTime")
    timestamp: datetime = Field(default_factory=datetime.now, alias="Timestamp")

    @field_validator("timestamp")
    @classmethod
    def to_local_naive(cls, value: datetime) -> datetime:
        """Store every timestamp as naive local time so entries stay comparable."""
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def to_record(self) -> dict:
        """JSON-ready dict using the store's key names."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True)
class HistorySummary:
    """Aggregate statistics over one database's successful entries."""
    database: str
    count: int
    average_ms: float
    total_ms: float
    fastest_ms: float
    slowest_ms: float
    last_success: datetime
