"""
Pytest Configuration and Shared Fixtures.

Provides common fixtures and configuration for all test modules.
"""

import pytest
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import Settings
from database.providers import sqlserver_queries as queries
from database.providers.sqlserver import SqlServerProvider
from history.auditor import QueryAuditor
from tests.fakes import FakeConnection, FakeEngine, FakeEngineFactory, scalar_result

TEST_CONNECTION_STRING = "Server=.;Database=TestDB;Trusted_Connection=yes;"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing every store and log file into a temp directory."""
    settings = Settings(
        data_dir=str(tmp_path / "data"),
        logs_dir=str(tmp_path / "logs"),
        log_level="DEBUG",
    )
    settings.create_directories()
    return settings


@pytest.fixture
def history_file(tmp_path) -> Path:
    return tmp_path / "data" / "query_history.json"


@pytest.fixture
def auditor(history_file) -> QueryAuditor:
    return QueryAuditor(history_file)


@pytest.fixture
def fake_connection() -> FakeConnection:
    """Fake connection that already answers the current-database query."""
    connection = FakeConnection()
    connection.respond(queries.CURRENT_DATABASE, scalar_result("TestDB"))
    return connection


@pytest.fixture
def fake_engine(fake_connection) -> FakeEngine:
    return FakeEngine(fake_connection)


@pytest.fixture
def engine_factory(fake_engine) -> FakeEngineFactory:
    return FakeEngineFactory(fake_engine)


@pytest.fixture
def provider(auditor, engine_factory) -> SqlServerProvider:
    """Disconnected SQL Server provider wired to fakes."""
    return SqlServerProvider(
        config={"odbc_driver": "ODBC Driver 18 for SQL Server", "login_timeout": 5},
        auditor=auditor,
        engine_factory=engine_factory,
    )


@pytest.fixture
def connected_provider(provider, fake_connection) -> SqlServerProvider:
    provider.connect(TEST_CONNECTION_STRING)
    fake_connection.executed.clear()
    yield provider
    provider.disconnect()


@pytest.fixture
def environment_variables():
    """Set up test environment variables."""
    original_env = os.environ.copy()

    test_env = {
        'DBADMIN_LOG_LEVEL': 'DEBUG',
        'DBADMIN_LOG_RETENTION_DAYS': '7',
        'DBADMIN_DEFAULT_ENGINE': 'sqlserver',
        'DBADMIN_ODBC_DRIVER': 'ODBC Driver 17 for SQL Server',
    }

    for key, value in test_env.items():
        os.environ[key] = value

    yield test_env

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest settings."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "database: marks tests that drive a provider against a fake engine")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths."""
    for item in items:
        if "provider" in item.fspath.basename or "test_connection" in item.fspath.basename:
            item.add_marker(pytest.mark.database)
        else:
            item.add_marker(pytest.mark.unit)
