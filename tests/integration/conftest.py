"""Shared fixtures for integration tests.

Integration tests run the repository against the shared in-memory SQLite
database, so they need no server.
"""

from collections.abc import Generator

import pytest

from sqlrepo.infrastructure.constants import SQLITE_MEMORY_DSN
from sqlrepo.infrastructure.database.dialect import Dialect
from sqlrepo.infrastructure.database.repository import Repository


@pytest.fixture
def sqlite_repository() -> Generator[Repository]:
    """Provide a repository on the shared in-memory SQLite database.

    The database lives only as long as the engine, so every test starts
    from an empty schema.

    Yields:
        Repository: Repository with no tables migrated yet.
    """
    repo = Repository.connect(
        SQLITE_MEMORY_DSN, Dialect.SQLITE3, sql_log_level="silent"
    )
    yield repo
    repo.db.close()
