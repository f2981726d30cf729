"""
Tests for connection input handling and open_provider().
"""

import json

import pytest

from database.connection import open_provider
from database.exceptions import DatabaseConnectionError, ProviderNotImplementedError
from database.providers.sqlserver import build_connection_url, mask_secrets, statement_kind
from history.auditor import QueryAuditor


class TestConnectionUrl:

    def test_odbc_string_gets_driver(self):
        url = build_connection_url("Server=.;Database=TestDB;", driver="ODBC Driver 17 for SQL Server")

        assert url.drivername == "mssql+pyodbc"
        assert url.query["odbc_connect"] == "Driver={ODBC Driver 17 for SQL Server};Server=.;Database=TestDB;"

    def test_existing_driver_kept(self):
        url = build_connection_url("DRIVER={FreeTDS};Server=db;Database=Sales;")

        assert url.query["odbc_connect"] == "DRIVER={FreeTDS};Server=db;Database=Sales;"

    def test_sqlalchemy_url_passed_through(self):
        literal = "mssql+pyodbc://sa:pw@db/Sales?driver=ODBC+Driver+18+for+SQL+Server"

        assert build_connection_url(literal) == literal

    def test_empty_input_rejected(self):
        with pytest.raises(ValueError):
            build_connection_url("   ")

    @pytest.mark.parametrize("raw, expected", [
        ("Server=.;UID=sa;PWD=hunter2;", "Server=.;UID=sa;PWD=***;"),
        ("Server=.;Password={a;b};Database=x", "Server=.;Password=***;Database=x"),
        ("mssql+pyodbc://sa:hunter2@db/Sales", "mssql+pyodbc://sa:***@db/Sales"),
        ("Server=.;Trusted_Connection=yes;", "Server=.;Trusted_Connection=yes;"),
    ])
    def test_mask_secrets(self, raw, expected):
        assert mask_secrets(raw) == expected

    @pytest.mark.parametrize("query, kind", [
        ("select * from t", "SELECT"),
        ("  UPDATE t SET a = 1", "UPDATE"),
        ("BACKUP DATABASE [x] TO DISK = N'/tmp/x.bak'", "SQL"),
        ("", "EMPTY"),
    ])
    def test_statement_kind(self, query, kind):
        assert statement_kind(query) == kind


class TestOpenProvider:

    def test_alias_resolved_before_connect(self, test_settings, engine_factory):
        test_settings.aliases_path.write_text(json.dumps({"MyDatabase": "Server=.;Database=TestDB;"}))

        provider = open_provider("MyDatabase", settings=test_settings, engine_factory=engine_factory)

        url, _ = engine_factory.calls[0]
        assert url.query["odbc_connect"].endswith("Server=.;Database=TestDB;")
        assert provider.connected
        assert provider.name == "TestDB"
        assert isinstance(provider.auditor, QueryAuditor)
        assert provider.auditor.path == test_settings.history_path
        provider.disconnect()

    def test_literal_input_used_as_is(self, test_settings, engine_factory):
        provider = open_provider(
            "Server=other;Database=TestDB;", settings=test_settings, engine_factory=engine_factory
        )

        url, kwargs = engine_factory.calls[0]
        assert "Server=other;Database=TestDB;" in url.query["odbc_connect"]
        assert kwargs["connect_args"] == {"timeout": test_settings.login_timeout}
        assert test_settings.aliases_path.exists()
        provider.disconnect()

    def test_connection_failure_propagates(self, test_settings, engine_factory, fake_engine):
        fake_engine.connect_error = RuntimeError("network unreachable")

        with pytest.raises(DatabaseConnectionError):
            open_provider("Server=down;", settings=test_settings, engine_factory=engine_factory)

    def test_unknown_engine(self, test_settings):
        with pytest.raises(ProviderNotImplementedError):
            open_provider("Server=.;", engine="db2", settings=test_settings)
