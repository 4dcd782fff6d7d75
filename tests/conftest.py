"""Root conftest.py for the sqlrepo test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import Generator

import pytest
from loguru import logger

from sqlrepo.core.config import get_settings
from sqlrepo.core.error_context import _configured_fields


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Give every test settings built from its own environment."""
    monkeypatch.delenv("SQL_LOG_LEVEL", raising=False)
    get_settings.cache_clear()
    _configured_fields.cache_clear()
    yield
    get_settings.cache_clear()
    _configured_fields.cache_clear()


@pytest.fixture
def captured_logs() -> Generator[list[str]]:
    """Collect every Loguru message emitted during the test.

    Yields:
        list[str]: Formatted messages as ``LEVEL message``.
    """
    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(str(message).rstrip("\n")),
        format="{level} {message}",
        level="TRACE",
    )
    yield messages
    logger.remove(handler_id)
