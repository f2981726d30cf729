"""History statistics computed from the query auditor's store."""

import logging
from typing import Optional

from database.models import ExecutionStatus, HistorySummary

from .auditor import QueryAuditor

logger = logging.getLogger(__name__)


class HistoryAggregator:
    """Summarizes successful executions per database.

    Every call re-reads the whole store; nothing is cached.
    """

    def __init__(self, auditor: QueryAuditor):
        self.auditor = auditor

    def get_stats(self, database: str) -> Optional[HistorySummary]:
        """
        Compute execution statistics for one database.

        Args:
            database: Database name to summarize

        Returns:
            HistorySummary, or None when the database has no successful entries
        """
        entries = self.auditor.query(database, ExecutionStatus.SUCCESS)
        if not entries:
            logger.info(f"No successful history for {database}")
            return None

        times = [entry.execution_time_ms for entry in entries]
        total = sum(times)
        latest = sorted(entries, key=lambda entry: entry.timestamp, reverse=True)[0]

        summary = HistorySummary(
            database=database,
            count=len(entries),
            average_ms=round(total / len(entries), 2),
            total_ms=round(total, 2),
            fastest_ms=min(times),
            slowest_ms=max(times),
            last_success=latest.timestamp,
        )
        logger.debug(f"History stats for {database}: {summary.count} successful queries")
        return summary
