"""Shared fixtures for unit tests."""

from typing import cast

import pytest
from pytest_mock import MockerFixture, MockType

from sqlrepo.core.config import Settings
from sqlrepo.infrastructure.database.connection import Database
from sqlrepo.infrastructure.database.dialect import Dialect
from sqlrepo.infrastructure.database.dsn import DialectConfig


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Provide a Settings object built from test environment values.

    Returns:
        Settings: Settings with test defaults.
    """
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("SQL_LOG_LEVEL", "silent")
    return Settings()


@pytest.fixture
def postgres_config() -> DialectConfig:
    """A complete postgres DialectConfig.

    Returns:
        DialectConfig: Config for a local test server.
    """
    return DialectConfig(
        database="realorm",
        user="realorm",
        password="password",
        host="localhost",
        sslmode="disable",
        timezone="Africa/Kampala",
    )


@pytest.fixture
def mock_database(mocker: MockerFixture) -> MockType:
    """Mock Database handle whose session must never be opened.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock Database with a sqlite3 dialect.
    """
    database = mocker.Mock(spec=Database)
    database.dialect = Dialect.SQLITE3
    return cast("MockType", database)
