"""Connection factory and the Database handle.

:func:`connect` accepts either a :class:`DialectConfig` (postgres only) or
a raw DSN string, resolves the dialect, creates a SQLAlchemy engine and
checks that the server answers before handing back a :class:`Database`.

The Database owns the engine and its connection pool. Sessions taken from
it are short-lived and independent, so one Database may be shared by any
number of threads.

SQL statement logging follows the resolved ``sql_log_level``:
- **info**: every statement with its duration, slow ones as warnings
- **error**: failed statements only
- **silent**: nothing
"""

import time
from collections import defaultdict
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any
from weakref import WeakKeyDictionary

from loguru import logger
from sqlalchemy import Engine, MetaData, Table, create_engine, event, text
from sqlalchemy.engine import Connection
from sqlalchemy.engine.interfaces import (
    DBAPICursor,
    ExceptionContext,
    ExecutionContext,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sqlrepo.core.config import get_settings
from sqlrepo.core.constants import MILLISECONDS_PER_SECOND
from sqlrepo.core.error_context import redact_dsn, sanitize_sql_params
from sqlrepo.core.exceptions import (
    InvalidConfigForDialectError,
    InvalidConnectionDescriptorError,
)
from sqlrepo.infrastructure.constants import MAX_LOGGED_STATEMENT_LENGTH
from sqlrepo.infrastructure.database.base import Base
from sqlrepo.infrastructure.database.dialect import (
    Dialect,
    EngineOptions,
    resolve_dialect,
)
from sqlrepo.infrastructure.database.dsn import DialectConfig

type ConnectionDescriptor = DialectConfig | str

# perf_counter at cursor execute, keyed by execution context
_query_start_times: WeakKeyDictionary[ExecutionContext, float] = WeakKeyDictionary()


def _clean_statement(statement: str) -> str:
    return " ".join(statement.split())[:MAX_LOGGED_STATEMENT_LENGTH]


def _before_cursor_execute(
    _conn: Connection,
    _cursor: DBAPICursor,
    _statement: str,
    _parameters: Any,
    context: ExecutionContext,
    _executemany: bool,
) -> None:
    """Record when a statement started executing."""
    _query_start_times[context] = time.perf_counter()


def _after_cursor_execute(
    _conn: Connection,
    cursor: DBAPICursor,
    statement: str,
    parameters: Any,
    context: ExecutionContext,
    executemany: bool,
) -> None:
    """Log an executed statement with its timing and sanitized parameters.

    Statements at or over ``LOG_CONFIG__SLOW_QUERY_THRESHOLD_MS`` are logged
    as warnings. The driver rowcount is reported as -1 when unknown.
    """
    threshold_ms = get_settings().log_config.slow_query_threshold_ms

    duration_ms = 0.0
    started = _query_start_times.pop(context, None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * MILLISECONDS_PER_SECOND

    rowcount = getattr(cursor, "rowcount", None)
    rows_affected: int = -1 if rowcount is None else rowcount

    clean_statement = _clean_statement(statement)
    fields = {
        "duration_ms": round(duration_ms, 2),
        "rows_affected": rows_affected,
        "parameters": sanitize_sql_params(parameters),
        "executemany": executemany,
    }

    if duration_ms >= threshold_ms:
        logger.warning(
            "Slow query detected: {} Duration: {:.2f}ms Rows: {}",
            clean_statement[:100],
            duration_ms,
            rows_affected,
            threshold_ms=threshold_ms,
            **fields,
        )
    else:
        logger.info("{} [{:.2f}ms]", clean_statement, duration_ms, **fields)


def _handle_error(context: ExceptionContext) -> None:
    """Log a statement that failed to execute."""
    statement = context.statement or ""
    logger.error(
        "Query failed: {}: {} - {}",
        type(context.original_exception).__name__,
        context.original_exception,
        _clean_statement(statement),
        parameters=sanitize_sql_params(context.parameters),
    )


def _register_sql_logging(engine: Engine, options: EngineOptions) -> None:
    """Attach statement logging listeners matching the SQL log level."""
    if options.sql_log_level == "silent":
        return

    if options.sql_log_level == "info":
        event.listen(engine, "before_cursor_execute", _before_cursor_execute)
        event.listen(engine, "after_cursor_execute", _after_cursor_execute)

    event.listen(engine, "handle_error", _handle_error)
    logger.debug("Registered {} level SQL logging", options.sql_log_level)


def create_database_engine(options: EngineOptions) -> Engine:
    """Create a SQLAlchemy engine from resolved engine options.

    Pool sizing from the settings applies to postgres and mysql. SQLite
    keeps the pool SQLAlchemy picks for the database type.

    Args:
        options: Output of :func:`resolve_dialect`.

    Returns:
        Engine: Configured engine. No connection has been opened yet.
    """
    db_config = get_settings().database_config

    engine_kwargs: dict[str, Any] = {
        "pool_pre_ping": db_config.pool_pre_ping,
        "connect_args": dict(options.connect_args),
    }
    if options.dialect is not Dialect.SQLITE3:
        engine_kwargs.update(
            pool_size=db_config.pool_size,
            max_overflow=db_config.max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_recycle=db_config.pool_recycle,
        )

    engine = create_engine(options.url, **engine_kwargs)
    _register_sql_logging(engine, options)

    logger.info(
        "Created {} database engine - prepared_statements: {}, sql_log_level: {}",
        options.dialect.value,
        options.prepared_statements,
        options.sql_log_level,
    )
    return engine


class Database:
    """An open database: engine, connection pool and session factory.

    Args:
        engine: The engine to wrap.
        dialect: Dialect the engine was created for.
    """

    def __init__(self, engine: Engine, dialect: Dialect) -> None:
        self.engine = engine
        self.dialect = dialect
        self.session_factory = sessionmaker(
            engine,
            class_=Session,
            expire_on_commit=False,  # Returned models stay readable
        )

    @contextmanager
    def session(self) -> Generator[Session]:
        """Get a session that commits on success and rolls back on error.

        Yields:
            Session: Database session for performing operations.

        Example:
            with database.session() as session:
                posts = session.scalars(select(Post)).all()
        """
        with self.session_factory() as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                logger.debug("Database session rolled back due to error")
                raise

    def ping(self) -> None:
        """Run ``SELECT 1`` to prove the server is reachable.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If the server cannot be reached.
        """
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def migrate(self, *models: type[Base]) -> None:
        """Create the tables of ``models`` that do not exist yet.

        Tables sharing a MetaData are created together so foreign keys
        between them are ordered correctly.

        Args:
            *models: Mapped classes whose tables should exist.
        """
        tables_by_metadata: defaultdict[MetaData, list[Table]] = defaultdict(list)
        for model in models:
            table = model.__table__
            if not isinstance(table, Table):
                msg = f"{model.__name__} is not mapped to a table"
                raise TypeError(msg)
            tables_by_metadata[table.metadata].append(table)

        for metadata, tables in tables_by_metadata.items():
            metadata.create_all(self.engine, tables=tables)

        logger.info(
            "Migrated {} model(s): {}",
            len(models),
            ", ".join(model.__name__ for model in models),
        )

    def close(self) -> None:
        """Dispose of the engine and close pooled connections."""
        self.engine.dispose()
        logger.info("Database engine disposed")


def _descriptor_to_dsn(descriptor: object, dialect: Dialect | str) -> str:
    if isinstance(descriptor, DialectConfig):
        # A config only carries postgres-shaped fields
        if dialect != Dialect.POSTGRES:
            raise InvalidConfigForDialectError(dialect)
        return descriptor.to_dsn()

    if isinstance(descriptor, str) and descriptor:
        return descriptor

    raise InvalidConnectionDescriptorError(type(descriptor).__name__)


def connect(
    descriptor: ConnectionDescriptor,
    dialect: Dialect | str,
    *,
    sql_log_level: str | None = None,
) -> Database:
    """Open a database from a config or a DSN string.

    Args:
        descriptor: A DialectConfig (postgres only) or a DSN string.
        dialect: ``postgres``, ``sqlite3`` or ``mysql``.
        sql_log_level: Overrides the ``SQL_LOG_LEVEL`` setting when given.

    Returns:
        Database: An open database whose server has answered a ping.

    Raises:
        InvalidConfigForDialectError: If a config is paired with a
            non-postgres dialect.
        InvalidConnectionDescriptorError: If ``descriptor`` is empty or of
            an unsupported type.
        UnknownDialectError: If ``dialect`` is not supported.
        sqlalchemy.exc.SQLAlchemyError: If the server cannot be reached.
    """
    dsn = _descriptor_to_dsn(descriptor, dialect)
    options = resolve_dialect(dsn, dialect, sql_log_level)

    engine = create_database_engine(options)
    database = Database(engine, options.dialect)
    try:
        database.ping()
    except SQLAlchemyError:
        engine.dispose()
        logger.debug("Connection to {} failed", redact_dsn(dsn))
        raise

    logger.info("Connected to {} database", options.dialect.value)
    return database
