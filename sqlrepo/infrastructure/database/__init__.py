"""Database access layer built on synchronous SQLAlchemy 2.0.

Core components:
- **dsn**: Key=value DSN parsing into DialectConfig
- **dialect**: Dialect tags and per-dialect engine options
- **connection**: Connection factory and the Database handle
- **repository**: Generic repository with CRUD and pagination
- **base**: Declarative base and common model fields
"""

from sqlrepo.infrastructure.database.base import Base, BaseModel
from sqlrepo.infrastructure.database.connection import (
    ConnectionDescriptor,
    Database,
    connect,
    create_database_engine,
)
from sqlrepo.infrastructure.database.dialect import (
    Dialect,
    EngineOptions,
    resolve_dialect,
)
from sqlrepo.infrastructure.database.dsn import (
    DialectConfig,
    dsn_from_config,
    new_config,
    parse_dsn,
)
from sqlrepo.infrastructure.database.repository import (
    BaseRepository,
    PaginatedResult,
    Repository,
    WhereClause,
)

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "ConnectionDescriptor",
    "Database",
    "Dialect",
    "DialectConfig",
    "EngineOptions",
    "PaginatedResult",
    "Repository",
    "WhereClause",
    "connect",
    "create_database_engine",
    "dsn_from_config",
    "new_config",
    "parse_dsn",
    "resolve_dialect",
]
