"""
Tests for the query auditor and history aggregator.
"""

import json
from datetime import datetime, timedelta

import pytest

from database.exceptions import StoreCorruptError
from database.models import ExecutionStatus, QueryLogEntry
from history.aggregator import HistoryAggregator


def make_entry(database="db1", status=ExecutionStatus.SUCCESS, ms=100.0, at=None, query="SELECT 1"):
    return QueryLogEntry(
        database=database,
        query_text=query,
        status=status,
        affected_rows=0,
        execution_time_ms=ms,
        timestamp=at or datetime(2024, 6, 1, 9, 0, 0),
    )


class TestQueryAuditor:

    def test_append_then_read_preserves_entry(self, auditor):
        entry = QueryLogEntry(
            database="TestDB",
            query_text="UPDATE dbo.T SET x = 'a''b' WHERE id = 1",
            status=ExecutionStatus.SUCCESS,
            affected_rows=1,
            execution_time_ms=12.5,
            timestamp=datetime(2024, 6, 1, 9, 0, 0, 123456),
        )

        auditor.append(entry)

        assert auditor.entries() == [entry]

    def test_append_twice_keeps_both(self, auditor):
        entry = make_entry()

        auditor.append(entry)
        auditor.append(entry)

        assert auditor.entries() == [entry, entry]

    def test_store_uses_pascal_case_keys(self, auditor, history_file):
        auditor.append(make_entry(ms=42))

        records = json.loads(history_file.read_text(encoding="utf-8"))
        assert set(records[0]) == {
            "Database", "QueryText", "ExecutionStatus", "AffectedRows", "ExecutionTime", "Timestamp",
        }
        assert records[0]["ExecutionStatus"] == "Success"

    def test_absent_store_reads_empty(self, auditor, history_file):
        assert not history_file.exists()
        assert auditor.entries() == []

    @pytest.mark.parametrize("content", ["", "   \n", "{}"])
    def test_placeholder_store_reads_empty(self, auditor, history_file, content):
        history_file.parent.mkdir(parents=True, exist_ok=True)
        history_file.write_text(content, encoding="utf-8")

        assert auditor.entries() == []

        auditor.append(make_entry())
        assert len(auditor.entries()) == 1

    @pytest.mark.parametrize("content", [
        "[{\"Database\": ",
        "{\"Database\": \"db1\"}",
        "[{\"Database\": \"db1\", \"QueryText\": \"x\", \"ExecutionStatus\": \"Maybe\"}]",
    ])
    def test_corrupt_store_raises(self, auditor, history_file, content):
        history_file.parent.mkdir(parents=True, exist_ok=True)
        history_file.write_text(content, encoding="utf-8")

        with pytest.raises(StoreCorruptError):
            auditor.entries()

    def test_existing_records_kept_verbatim(self, auditor, history_file):
        legacy = {
            "Database": "db1",
            "QueryText": "SELECT 1",
            "ExecutionStatus": "Success",
            "AffectedRows": 0,
            "ExecutionTime": 5,
            "Timestamp": "2024-01-01 10:00:00",
        }
        history_file.parent.mkdir(parents=True, exist_ok=True)
        history_file.write_text(json.dumps([legacy]), encoding="utf-8")

        auditor.append(make_entry())

        records = json.loads(history_file.read_text(encoding="utf-8"))
        assert records[0] == legacy
        assert len(records) == 2

    def test_query_filters_database_and_status(self, auditor):
        auditor.append(make_entry("db1", ExecutionStatus.SUCCESS))
        auditor.append(make_entry("db1", ExecutionStatus.FAILURE))
        auditor.append(make_entry("db2", ExecutionStatus.SUCCESS))

        assert len(auditor.query("db1")) == 2
        failures = auditor.query("db1", ExecutionStatus.FAILURE)
        assert [entry.status for entry in failures] == [ExecutionStatus.FAILURE]
        assert auditor.query("db3") == []

    def test_record_clamps_negative_values(self, auditor):
        entry = auditor.record("db1", "SELECT 1", ExecutionStatus.SUCCESS, affected_rows=-1, execution_time_ms=3)

        assert entry.affected_rows == 0
        assert auditor.entries() == [entry]


class TestHistoryAggregator:

    def test_stats_for_one_database(self, auditor):
        start = datetime(2024, 6, 1, 9, 0, 0)
        auditor.append(make_entry("db1", ms=100, at=start))
        auditor.append(make_entry("db1", ms=200, at=start + timedelta(minutes=5)))
        auditor.append(make_entry("db1", ExecutionStatus.FAILURE, ms=50, at=start + timedelta(minutes=10)))
        auditor.append(make_entry("db2", ms=300, at=start))

        stats = HistoryAggregator(auditor).get_stats("db1")

        assert stats.database == "db1"
        assert stats.count == 2
        assert stats.average_ms == 150.00
        assert stats.total_ms == 300.00
        assert stats.fastest_ms == 100
        assert stats.slowest_ms == 200
        assert stats.last_success == start + timedelta(minutes=5)

    def test_latest_success_uses_timestamp_not_store_order(self, auditor):
        later = datetime(2024, 6, 2, 8, 0, 0)
        auditor.append(make_entry("db1", at=later))
        auditor.append(make_entry("db1", at=later - timedelta(days=1)))

        assert HistoryAggregator(auditor).get_stats("db1").last_success == later

    def test_mixed_timezone_timestamps(self, auditor, history_file):
        records = [
            {"Database": "db1", "QueryText": "SELECT 1", "ExecutionStatus": "Success",
             "AffectedRows": 0, "ExecutionTime": 10, "Timestamp": "2024-01-01T10:00:00Z"},
            {"Database": "db1", "QueryText": "SELECT 2", "ExecutionStatus": "Success",
             "AffectedRows": 0, "ExecutionTime": 20, "Timestamp": "2024-03-01T10:00:00"},
        ]
        history_file.parent.mkdir(parents=True, exist_ok=True)
        history_file.write_text(json.dumps(records), encoding="utf-8")

        stats = HistoryAggregator(auditor).get_stats("db1")

        assert stats.count == 2
        assert stats.last_success == datetime(2024, 3, 1, 10, 0, 0)

    def test_rounding(self, auditor):
        for ms in (1.111, 2.222, 3.333):
            auditor.append(make_entry("db1", ms=ms))

        stats = HistoryAggregator(auditor).get_stats("db1")

        assert stats.total_ms == 6.67
        assert stats.average_ms == 2.22

    def test_empty_history_returns_none(self, auditor):
        assert HistoryAggregator(auditor).get_stats("db1") is None

    def test_all_failures_returns_none(self, auditor):
        auditor.append(make_entry("db1", ExecutionStatus.FAILURE))
        auditor.append(make_entry("db1", ExecutionStatus.FAILURE))

        assert HistoryAggregator(auditor).get_stats("db1") is None

    def test_corrupt_store_propagates(self, auditor, history_file):
        history_file.parent.mkdir(parents=True, exist_ok=True)
        history_file.write_text("not json", encoding="utf-8")

        with pytest.raises(StoreCorruptError):
            HistoryAggregator(auditor).get_stats("db1")
