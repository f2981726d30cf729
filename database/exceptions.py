"""Exception hierarchy for the database administration core.

All application-specific exceptions inherit from DBAdminError,
allowing callers to catch broad or narrow as needed.
"""


class DBAdminError(Exception):
    """Base exception for all database administration errors."""


class NotConnectedError(DBAdminError):
    """Operation requires a connected provider."""


class AlreadyConnectedError(DBAdminError):
    """Connect called on a provider that already holds a connection."""


class DatabaseConnectionError(DBAdminError):
    """Opening the connection to the database failed."""


class ProviderNotImplementedError(DBAdminError, NotImplementedError):
    """The provider (or engine) does not support the requested operation."""

    def __init__(self, engine: str, operation: str):
        self.engine = engine
        self.operation = operation
        super().__init__(f"{operation} is not implemented for {engine}")


class TableNotFoundError(DBAdminError):
    """Requested table does not exist in the connected database."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        super().__init__(f"Table '{table_name}' does not exist")


class QueryExecutionError(DBAdminError):
    """The engine rejected or failed to execute a statement."""


class BackupError(QueryExecutionError):
    """A backup command failed on the engine."""


class StoreCorruptError(DBAdminError):
    """A JSON-backed store holds content that cannot be parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Store {path} is corrupt: {reason}")
