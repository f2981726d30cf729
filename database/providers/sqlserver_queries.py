"""
Catalog and diagnostic queries for Microsoft SQL Server.

All queries are read-only and scoped to the connected database where the
catalog allows it. Named parameters use SQLAlchemy's :name syntax.
"""

CURRENT_DATABASE = "SELECT DB_NAME()"

EDITION = "SELECT CAST(SERVERPROPERTY('Edition') AS nvarchar(128))"

# One row per column of every user table, with key/index flags computed
# from the index and foreign key catalogs.
_TABLE_COLUMNS = """
SELECT
    s.name + '.' + t.name AS table_name,
    c.name AS column_name,
    ty.name AS data_type,
    c.is_nullable AS is_nullable,
    CAST(CASE WHEN EXISTS (
        SELECT 1 FROM sys.index_columns ic
        JOIN sys.indexes i ON i.object_id = ic.object_id AND i.index_id = ic.index_id
        WHERE ic.object_id = c.object_id AND ic.column_id = c.column_id
          AND i.is_primary_key = 1
    ) THEN 1 ELSE 0 END AS bit) AS is_primary_key,
    CAST(CASE WHEN EXISTS (
        SELECT 1 FROM sys.foreign_key_columns fkc
        WHERE fkc.parent_object_id = c.object_id AND fkc.parent_column_id = c.column_id
    ) THEN 1 ELSE 0 END AS bit) AS is_foreign_key,
    CAST(CASE WHEN EXISTS (
        SELECT 1 FROM sys.index_columns ic
        JOIN sys.indexes i ON i.object_id = ic.object_id AND i.index_id = ic.index_id
        WHERE ic.object_id = c.object_id AND ic.column_id = c.column_id
          AND i.is_unique = 1 AND i.is_primary_key = 0
    ) THEN 1 ELSE 0 END AS bit) AS is_unique,
    CAST(CASE WHEN EXISTS (
        SELECT 1 FROM sys.index_columns ic
        WHERE ic.object_id = c.object_id AND ic.column_id = c.column_id
          AND ic.is_included_column = 0
    ) THEN 1 ELSE 0 END AS bit) AS is_indexed
FROM sys.tables t
JOIN sys.schemas s ON s.schema_id = t.schema_id
JOIN sys.columns c ON c.object_id = t.object_id
JOIN sys.types ty ON ty.user_type_id = c.user_type_id
WHERE t.is_ms_shipped = 0
"""

TABLE_COLUMNS = _TABLE_COLUMNS + "ORDER BY table_name, c.column_id"

TABLE_COLUMNS_FOR_TABLE = (
    _TABLE_COLUMNS
    + "  AND (t.name = :table_name OR s.name + '.' + t.name = :table_name)\n"
    + "ORDER BY table_name, c.column_id"
)

# Key and included columns of every non-heap index. Included columns are
# returned with their flag so the provider can drop them.
INDEXES = """
SELECT
    s.name + '.' + t.name AS table_name,
    i.name AS index_name,
    i.is_primary_key AS is_primary_key,
    i.is_unique AS is_unique,
    i.type_desc AS type_desc,
    c.name AS column_name,
    ic.is_descending_key AS is_descending_key,
    ic.is_included_column AS is_included_column,
    ic.key_ordinal AS key_ordinal,
    COALESCE(sz.size_kb, 0) AS size_kb,
    (SELECT MAX(v) FROM (VALUES (us.last_user_seek), (us.last_user_scan),
        (us.last_user_lookup), (us.last_user_update)) AS used(v)) AS last_used
FROM sys.indexes i
JOIN sys.tables t ON t.object_id = i.object_id
JOIN sys.schemas s ON s.schema_id = t.schema_id
JOIN sys.index_columns ic ON ic.object_id = i.object_id AND ic.index_id = i.index_id
JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
LEFT JOIN (
    SELECT object_id, index_id, SUM(used_page_count) * 8 AS size_kb
    FROM sys.dm_db_partition_stats
    GROUP BY object_id, index_id
) sz ON sz.object_id = i.object_id AND sz.index_id = i.index_id
LEFT JOIN sys.dm_db_index_usage_stats us
    ON us.object_id = i.object_id AND us.index_id = i.index_id
    AND us.database_id = DB_ID()
WHERE t.is_ms_shipped = 0
  AND i.type <> 0
ORDER BY table_name, index_name, ic.key_ordinal, ic.index_column_id
"""

BACKUP_HISTORY = """
SELECT
    bs.database_name AS database_name,
    bs.backup_start_date AS backup_start_date,
    bs.backup_finish_date AS backup_finish_date,
    bs.type AS backup_type,
    mf.physical_device_name AS destination,
    bs.user_name AS user_name
FROM msdb.dbo.backupset bs
JOIN msdb.dbo.backupmediafamily mf ON mf.media_set_id = bs.media_set_id
WHERE bs.database_name = DB_NAME()
ORDER BY bs.backup_finish_date DESC
"""

LATEST_BACKUP = """
SELECT MAX(bs.backup_finish_date)
FROM msdb.dbo.backupset bs
WHERE bs.database_name = DB_NAME()
"""

# Cumulative counter; callers diff two snapshots for a rate.
BATCH_REQUESTS = """
SELECT cntr_value
FROM sys.dm_os_performance_counters
WHERE counter_name = 'Batch Requests/sec'
"""

CONNECTION_COUNT = "SELECT COUNT(*) FROM sys.dm_exec_connections"

CPU_BUSY = """
SELECT CAST(@@CPU_BUSY AS float) * 100.0
    / NULLIF(CAST(@@CPU_BUSY AS float) + @@IDLE + @@IO_BUSY, 0)
"""

MEMORY_IN_USE = """
SELECT physical_memory_in_use_kb / 1024.0
FROM sys.dm_os_process_memory
"""

SERVER_LOGINS = """
SELECT
    sp.name AS login_name,
    sp.type_desc AS login_type,
    sp.is_disabled AS is_disabled,
    sp.create_date AS create_date,
    sp.modify_date AS modify_date
FROM sys.server_principals sp
WHERE sp.type IN ('S', 'U', 'G', 'E', 'X')
ORDER BY sp.name
"""

# msdb backupset.type codes
BACKUP_TYPE_NAMES = {
    "D": "Full",
    "I": "Differential",
    "L": "Log",
    "F": "File",
    "G": "Differential File",
    "P": "Partial",
    "Q": "Differential Partial",
}
