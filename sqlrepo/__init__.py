"""sqlrepo - generic relational data access on SQLAlchemy.

Open a database from a postgres config or a DSN string for postgres,
sqlite3 or mysql, then create, read, update, delete and paginate any
mapped model through one repository:

    from sqlrepo import Dialect, Repository, SQLITE_MEMORY_DSN, WhereClause

    repo = Repository.connect(SQLITE_MEMORY_DSN, Dialect.SQLITE3)
    repo.migrate(Post)
    post = repo.create(Post(title="Hello World"))
    page = repo.find_all_paginated(Post, page=1, page_size=10)

Scoped operations (find, update, delete) require a WhereClause.
Call setup_logging(get_settings()) once at startup to install the Loguru
sinks when the application does not configure Loguru itself.
"""

from sqlrepo.core.config import Settings, get_settings
from sqlrepo.core.exceptions import (
    EmptyDSNError,
    InvalidConfigForDialectError,
    InvalidConnectionDescriptorError,
    MissingFieldError,
    NoWhereClauseError,
    SqlRepoError,
    UnknownDialectError,
    ValidationError,
)
from sqlrepo.core.logging import setup_logging
from sqlrepo.infrastructure.constants import SQLITE_MEMORY_DSN
from sqlrepo.infrastructure.database import (
    Base,
    BaseModel,
    BaseRepository,
    Database,
    Dialect,
    DialectConfig,
    EngineOptions,
    PaginatedResult,
    Repository,
    WhereClause,
    connect,
    dsn_from_config,
    new_config,
    parse_dsn,
    resolve_dialect,
)

__all__ = [
    "SQLITE_MEMORY_DSN",
    "Base",
    "BaseModel",
    "BaseRepository",
    "Database",
    "Dialect",
    "DialectConfig",
    "EmptyDSNError",
    "EngineOptions",
    "InvalidConfigForDialectError",
    "InvalidConnectionDescriptorError",
    "MissingFieldError",
    "NoWhereClauseError",
    "PaginatedResult",
    "Repository",
    "Settings",
    "SqlRepoError",
    "UnknownDialectError",
    "ValidationError",
    "WhereClause",
    "connect",
    "dsn_from_config",
    "get_settings",
    "new_config",
    "parse_dsn",
    "resolve_dialect",
    "setup_logging",
]
