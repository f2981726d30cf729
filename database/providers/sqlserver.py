"""
Microsoft SQL Server provider.

Connects through SQLAlchemy's mssql+pyodbc dialect with a single unpooled
autocommit connection, runs operator queries verbatim and reads schema,
backup and server metadata from the system catalogs.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import sqlparse
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from history.auditor import QueryAuditor

from ..exceptions import (
    AlreadyConnectedError,
    BackupError,
    DatabaseConnectionError,
    QueryExecutionError,
    StoreCorruptError,
    TableNotFoundError,
)
from ..models import (
    BACKUP_TIMESTAMP_FORMAT,
    NO_BACKUP,
    BackupKind,
    BackupRecord,
    ColumnDescriptor,
    ExecutionStatus,
    IndexDescriptor,
    IndexKind,
    LoginDescriptor,
    PerformanceSnapshot,
    QueryFailure,
    QueryResult,
    TableDescriptor,
    TabularResult,
)
from . import sqlserver_queries as queries
from .base import BaseProvider

logger = logging.getLogger(__name__)

DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

_DRIVER_KEY = re.compile(r"(^|;)\s*driver\s*=", re.IGNORECASE)
_SECRET_PAIR = re.compile(r"((?:pwd|password)\s*=\s*)(\{[^}]*\}|[^;]*)", re.IGNORECASE)
_URL_PASSWORD = re.compile(r"(://[^:/@]+:)[^@]*@")


def mask_secrets(connection_input: str) -> str:
    """Hide passwords in an ODBC string or URL before it is logged."""
    masked = _SECRET_PAIR.sub(r"\1***", connection_input)
    return _URL_PASSWORD.sub(r"\1***@", masked)


def build_connection_url(
    connection_input: str,
    driver: str = DEFAULT_ODBC_DRIVER,
) -> Union[str, URL]:
    """
    Turn operator input into something create_engine() accepts.

    Input containing "://" is taken as a SQLAlchemy URL. Anything else is an
    ODBC connection string ("Server=.;Database=TestDB;..."), given a Driver
    entry when it has none.
    """
    connection_input = connection_input.strip()
    if not connection_input:
        raise ValueError("Connection input is empty")
    if "://" in connection_input:
        return connection_input

    odbc = connection_input
    if not _DRIVER_KEY.search(odbc):
        odbc = f"Driver={{{driver}}};{odbc}"
    return URL.create("mssql+pyodbc", query={"odbc_connect": odbc})


def _coerce_backup_kind(kind: Union[str, BackupKind]) -> BackupKind:
    if isinstance(kind, BackupKind):
        return kind
    for member in BackupKind:
        if str(kind).strip().lower() == member.value.lower():
            return member
    raise ValueError(f"Unknown backup kind '{kind}'. Valid kinds: Full, Differential")


def _quote_identifier(name: str) -> str:
    return "[" + name.replace("]", "]]") + "]"


def _quote_literal(value: str) -> str:
    return value.replace("'", "''")


def build_backup_command(
    database: str,
    destination: str,
    kind: Union[str, BackupKind] = BackupKind.FULL,
    compressed: bool = False,
) -> str:
    """
    Build a BACKUP DATABASE statement.

    Args:
        database: Database to back up
        destination: File path on the server, forwarded as given
        kind: Full or Differential
        compressed: Whether to append the COMPRESSION option

    Returns:
        The T-SQL command

    Raises:
        ValueError: If kind is not Full or Differential
    """
    kind = _coerce_backup_kind(kind)

    options = []
    if kind is BackupKind.DIFFERENTIAL:
        options.append("DIFFERENTIAL")
    options.append("INIT")
    options.append(f"NAME = N'{_quote_literal(f'{database}-{kind.value} Database Backup')}'")
    if compressed:
        options.append("COMPRESSION")

    return (
        f"BACKUP DATABASE {_quote_identifier(database)} "
        f"TO DISK = N'{_quote_literal(destination)}' "
        f"WITH {', '.join(options)}"
    )


def classify_index(is_primary_key: bool, is_unique: bool, type_desc: str) -> IndexKind:
    """Index kind, precedence primary key > unique clustered > unique nonclustered."""
    if is_primary_key:
        return IndexKind.PRIMARY_KEY
    if is_unique and (type_desc or "").upper() == "CLUSTERED":
        return IndexKind.UNIQUE_CLUSTERED
    if is_unique:
        return IndexKind.UNIQUE_NONCLUSTERED
    return IndexKind.OTHER


def statement_kind(query: str) -> str:
    """Leading statement type (SELECT, INSERT, ...) for log lines."""
    statements = [stmt for stmt in sqlparse.parse(query) if str(stmt).strip()]
    if not statements:
        return "EMPTY"
    kind = statements[0].get_type()
    return kind if kind != "UNKNOWN" else "SQL"


def _preview(query: str, limit: int = 200) -> str:
    flat = " ".join(query.split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class SqlServerProvider(BaseProvider):
    """Provider for Microsoft SQL Server over mssql+pyodbc."""

    ENGINE_NAME = "sqlserver"

    def __init__(
        self,
        name: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        auditor: Optional[QueryAuditor] = None,
        engine_factory: Callable[..., Engine] = create_engine,
    ):
        super().__init__(name=name or "SQL Server", config=config, auditor=auditor)
        self._engine_factory = engine_factory
        self._engine: Optional[Engine] = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _engine_options(self, url: Union[str, URL]) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "poolclass": NullPool,
            "isolation_level": "AUTOCOMMIT",
        }
        drivername = url.drivername if isinstance(url, URL) else make_url(url).drivername
        timeout = self.config.get("login_timeout")
        if drivername == "mssql+pyodbc" and timeout:
            options["connect_args"] = {"timeout": int(timeout)}
        return options

    def connect(self, connection_input: str) -> None:
        """
        Open the connection and adopt the server-reported database name.

        Args:
            connection_input: ODBC connection string or SQLAlchemy URL

        Raises:
            AlreadyConnectedError: If this provider is already connected
            DatabaseConnectionError: If the connection cannot be opened
        """
        if self.connected:
            logger.error(f"connect called on {self.name} while already connected")
            raise AlreadyConnectedError(
                f"Already connected to {self.name}; disconnect first"
            )

        masked = mask_secrets(connection_input)
        logger.info(f"Connecting with {masked}")

        engine = None
        try:
            url = build_connection_url(
                connection_input, self.config.get("odbc_driver", DEFAULT_ODBC_DRIVER)
            )
            engine = self._engine_factory(url, **self._engine_options(url))
            connection = engine.connect()
            try:
                database_name = connection.execute(text(queries.CURRENT_DATABASE)).scalar()
            except Exception:
                connection.close()
                raise
        except Exception as e:
            if engine is not None:
                engine.dispose()
            logger.error(f"Connection failed for '{masked}': {e}")
            raise DatabaseConnectionError(f"Could not connect using '{masked}': {e}") from e

        self._engine = engine
        self.connection = connection
        self.connected = True
        if database_name:
            self.name = str(database_name)
        logger.info(f"Connected to {self.name}")

    def disconnect(self) -> None:
        """Close the connection and dispose the engine; no-op when disconnected."""
        connection, engine = self.connection, self._engine
        self.connection = None
        self._engine = None
        self.connected = False

        if connection is None and engine is None:
            logger.debug(f"disconnect called on {self.name} with no open connection")
            return

        try:
            if connection is not None:
                connection.close()
        except SQLAlchemyError as e:
            logger.warning(f"Error closing connection to {self.name}: {e}")
        finally:
            if engine is not None:
                engine.dispose()
        logger.info(f"Disconnected from {self.name}")

    # ------------------------------------------------------------------
    # Audited execution
    # ------------------------------------------------------------------

    def _run_statement(self, statement: str) -> Tuple[List[str], List[tuple], Optional[int]]:
        result = self.connection.exec_driver_sql(statement)
        if result.returns_rows:
            return list(result.keys()), [tuple(row) for row in result.fetchall()], result.rowcount
        return [], [], result.rowcount

    def _run_to_completion(self, statement: str) -> Tuple[List[str], List[tuple], Optional[int]]:
        """
        Execute on a raw DBAPI cursor and read past every result set.

        SQL Server streams informational messages while a BACKUP runs and only
        finishes it once the client has consumed all of them.
        """
        cursor = self.connection.connection.cursor()
        try:
            cursor.execute(statement)
            rowcount = cursor.rowcount
            sets = 0
            while cursor.nextset():
                sets += 1
        finally:
            cursor.close()
        logger.debug(f"Read {sets} trailing result sets from {self.name}")
        return [], [], rowcount

    def _driver_errors(self) -> tuple:
        dbapi = getattr(getattr(self.connection, "dialect", None), "dbapi", None)
        if dbapi is None:
            return (SQLAlchemyError,)
        return (SQLAlchemyError, dbapi.Error)

    def _audit_outcome(
        self,
        statement: str,
        status: ExecutionStatus,
        affected_rows: int,
        execution_time: float,
    ) -> Optional[str]:
        """Write the history entry; returns a warning instead of raising once the statement ran."""
        try:
            self._audit(statement, status, affected_rows, execution_time)
        except (StoreCorruptError, OSError) as e:
            logger.error(
                f"Could not record {status.value} of statement on {self.name} in query history: "
                f"{e} | query: {_preview(statement)}"
            )
            return f"Query history not updated: {e}"
        return None

    def _execute_audited(
        self,
        statement: str,
        error_cls=QueryExecutionError,
        drain_results: bool = False,
    ) -> QueryResult:
        """Run one statement verbatim and write exactly one audit entry."""
        kind = statement_kind(statement)
        logger.debug(f"Executing {kind} statement on {self.name}: {_preview(statement)}")
        runner = self._run_to_completion if drain_results else self._run_statement

        start = time.perf_counter()
        try:
            columns, rows, rowcount = runner(statement)
        except self._driver_errors() as e:
            execution_time = _elapsed_ms(start)
            message = str(getattr(e, "orig", None) or e)
            logger.error(
                f"{kind} statement failed on {self.name} after {execution_time} ms: "
                f"{message} | query: {_preview(statement)}"
            )
            warning = self._audit_outcome(statement, ExecutionStatus.FAILURE, 0, execution_time)
            error = error_cls(message)
            error.__cause__ = e
            return QueryFailure(
                message=message,
                error=error,
                execution_time_ms=execution_time,
                audit_warning=warning,
            )

        execution_time = _elapsed_ms(start)
        # Drivers report -1 (or None) when the count is unknown
        affected_rows = rowcount if rowcount is not None and rowcount >= 0 else 0
        warning = self._audit_outcome(statement, ExecutionStatus.SUCCESS, affected_rows, execution_time)
        logger.info(
            f"{kind} statement on {self.name} succeeded in {execution_time} ms "
            f"({len(rows)} rows returned, {affected_rows} affected)"
        )
        return TabularResult(
            columns=columns,
            rows=rows,
            affected_rows=affected_rows,
            execution_time_ms=execution_time,
            audit_warning=warning,
        )

    def run_query(self, query: str) -> QueryResult:
        """
        Execute operator SQL exactly as written.

        Args:
            query: SQL text; the engine is the only syntax authority

        Returns:
            TabularResult on success, QueryFailure if the engine rejects it

        Raises:
            NotConnectedError: If called while disconnected
        """
        self._require_connection("run_query")
        return self._execute_audited(query)

    # ------------------------------------------------------------------
    # Catalog helpers
    # ------------------------------------------------------------------

    def _fetch_rows(self, operation: str, query: str, params: Optional[dict] = None) -> List[dict]:
        try:
            result = self.connection.execute(text(query), params or {})
            return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed on {self.name} (params={params}): {e}")
            raise QueryExecutionError(f"{operation} failed: {e}") from e

    def _fetch_scalar(self, operation: str, query: str) -> Any:
        try:
            return self.connection.execute(text(query)).scalar()
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed on {self.name}: {e}")
            raise QueryExecutionError(f"{operation} failed: {e}") from e

    @staticmethod
    def _build_tables(rows: List[dict]) -> List[TableDescriptor]:
        tables: Dict[str, TableDescriptor] = {}
        for row in rows:
            table = tables.setdefault(row["table_name"], TableDescriptor(name=row["table_name"]))
            table.columns.append(ColumnDescriptor(
                name=row["column_name"],
                data_type=row["data_type"],
                is_primary_key=bool(row["is_primary_key"]),
                is_foreign_key=bool(row["is_foreign_key"]),
                is_unique=bool(row["is_unique"]),
                is_nullable=bool(row["is_nullable"]),
                is_indexed=bool(row["is_indexed"]),
            ))
        return sorted(tables.values(), key=lambda table: table.name)

    # ------------------------------------------------------------------
    # Schema introspection
    # ------------------------------------------------------------------

    def get_tables(self) -> List[TableDescriptor]:
        self._require_connection("get_tables")
        tables = self._build_tables(self._fetch_rows("get_tables", queries.TABLE_COLUMNS))
        logger.info(f"Loaded {len(tables)} tables from {self.name}")
        return tables

    def get_table_schema(self, table_name: str) -> TableDescriptor:
        """
        Describe one table.

        Args:
            table_name: "table" or "schema.table"

        Raises:
            TableNotFoundError: If no such table exists
        """
        self._require_connection("get_table_schema")
        rows = self._fetch_rows(
            "get_table_schema", queries.TABLE_COLUMNS_FOR_TABLE, {"table_name": table_name}
        )
        if not rows:
            logger.warning(f"Table '{table_name}' not found in {self.name}")
            raise TableNotFoundError(table_name)
        return self._build_tables(rows)[0]

    def get_indexes(self, table_name: Optional[str] = None) -> List[IndexDescriptor]:
        self._require_connection("get_indexes")
        rows = self._fetch_rows("get_indexes", queries.INDEXES)

        indexes: Dict[tuple, IndexDescriptor] = {}
        for row in rows:
            if (row["type_desc"] or "").upper() == "HEAP":
                continue
            qualified = row["table_name"]
            if table_name and table_name not in (qualified, qualified.split(".", 1)[-1]):
                continue

            key = (qualified, row["index_name"])
            index = indexes.get(key)
            if index is None:
                index = indexes[key] = IndexDescriptor(
                    table=qualified,
                    name=row["index_name"],
                    kind=classify_index(
                        bool(row["is_primary_key"]), bool(row["is_unique"]), row["type_desc"]
                    ),
                    size_kb=float(row["size_kb"] or 0),
                    last_used=row["last_used"],
                )
            if row["is_included_column"]:
                continue
            direction = "DESC" if row["is_descending_key"] else "ASC"
            index.columns.append((row["column_name"], direction))

        result = sorted(indexes.values(), key=lambda index: (index.table, index.name))
        logger.info(f"Loaded {len(result)} indexes from {self.name}")
        return result

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def new_backup(
        self,
        destination: str,
        kind: Union[str, BackupKind] = BackupKind.FULL,
        compressed: bool = False,
    ) -> QueryResult:
        """
        Back up the connected database to a server-side file.

        The command is audited like any other query. A failed backup is
        returned as QueryFailure (error is a BackupError), never raised.
        """
        self._require_connection("new_backup")
        try:
            kind = _coerce_backup_kind(kind)
        except ValueError as e:
            logger.error(f"new_backup rejected for {self.name} (destination={destination}): {e}")
            raise
        command = build_backup_command(self.name, destination, kind, compressed)
        logger.info(f"Starting {kind.value} backup of {self.name} to {destination}")

        result = self._execute_audited(command, error_cls=BackupError, drain_results=True)
        if result.ok:
            logger.info(f"Backup of {self.name} written to {destination}")
        else:
            logger.error(f"Backup of {self.name} to {destination} failed: {result.message}")
        return result

    def get_backup_history(self, limit: Optional[int] = None) -> List[BackupRecord]:
        self._require_connection("get_backup_history")
        rows = self._fetch_rows("get_backup_history", queries.BACKUP_HISTORY)
        if limit is not None:
            rows = rows[:limit]
        return [
            BackupRecord(
                database=row["database_name"],
                started_at=row["backup_start_date"],
                finished_at=row["backup_finish_date"],
                kind=queries.BACKUP_TYPE_NAMES.get(row["backup_type"], row["backup_type"]),
                destination=row["destination"],
                user=row["user_name"],
            )
            for row in rows
        ]

    def get_latest_backup(self) -> str:
        self._require_connection("get_latest_backup")
        finished = self._fetch_scalar("get_latest_backup", queries.LATEST_BACKUP)
        if finished is None:
            logger.info(f"No backups recorded for {self.name}")
            return NO_BACKUP
        if hasattr(finished, "strftime"):
            return finished.strftime(BACKUP_TIMESTAMP_FORMAT)
        return str(finished)

    # ------------------------------------------------------------------
    # Server information
    # ------------------------------------------------------------------

    def get_edition(self) -> str:
        self._require_connection("get_edition")
        return str(self._fetch_scalar("get_edition", queries.EDITION))

    def get_performance_stats(self, strict: bool = True) -> PerformanceSnapshot:
        """
        Collect server diagnostics from four independent queries.

        Args:
            strict: If True, any failing metric fails the whole call. If False,
                failing metrics are reported as None.

        Raises:
            QueryExecutionError: In strict mode, when any metric query fails
        """
        self._require_connection("get_performance_stats")
        metrics = (
            ("batch_requests", queries.BATCH_REQUESTS, int),
            ("connections", queries.CONNECTION_COUNT, int),
            ("cpu_busy_percent", queries.CPU_BUSY, lambda value: round(float(value), 2)),
            ("memory_in_use_mb", queries.MEMORY_IN_USE, lambda value: round(float(value), 2)),
        )

        values: Dict[str, Any] = {}
        for name, query, convert in metrics:
            try:
                value = self._fetch_scalar("get_performance_stats", query)
            except QueryExecutionError:
                if strict:
                    raise
                logger.warning(f"Metric {name} unavailable on {self.name}")
                values[name] = None
                continue
            values[name] = convert(value) if value is not None else None

        return PerformanceSnapshot(**values)

    def get_users(self) -> List[LoginDescriptor]:
        self._require_connection("get_users")
        rows = self._fetch_rows("get_users", queries.SERVER_LOGINS)
        return [
            LoginDescriptor(
                name=row["login_name"],
                login_type=row["login_type"],
                is_disabled=bool(row["is_disabled"]),
                created_at=row["create_date"],
                modified_at=row["modify_date"],
            )
            for row in rows
        ]
