"""Dialect resolution: from a DSN and a dialect tag to engine options.

Each supported database family takes its DSN in its own native form:

- **postgres**: key=value DSN (``host=.. user=.. dbname=..``) or a
  ``postgres://`` URL
- **sqlite3**: a file path, a ``file:`` URI such as
  ``file::memory:?cache=shared``, or a SQLAlchemy URL
- **mysql**: a go-style DSN (``user:pass@tcp(host:3306)/db?charset=utf8mb4``)
  or a SQLAlchemy URL

:func:`resolve_dialect` turns that DSN into a SQLAlchemy :class:`URL` plus
the per-dialect engine settings. It never opens a connection.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final, Self
from urllib.parse import parse_qsl

from loguru import logger
from sqlalchemy.engine import URL, make_url

from sqlrepo.core.config import SqlLogLevel, get_settings, normalize_sql_log_level
from sqlrepo.core.error_context import redact_dsn
from sqlrepo.core.exceptions import UnknownDialectError, ValidationError
from sqlrepo.infrastructure.constants import PREPARE_THRESHOLD_ALWAYS
from sqlrepo.infrastructure.database.dsn import tokenize_dsn

POSTGRES_DRIVER: Final[str] = "postgresql+psycopg"
SQLITE_DRIVER: Final[str] = "sqlite+pysqlite"
MYSQL_DRIVER: Final[str] = "mysql+pymysql"

# Query parameters of a go-style MySQL DSN that PyMySQL understands
MYSQL_PASSTHROUGH_PARAMS: Final[frozenset[str]] = frozenset({"charset"})

_GO_MYSQL_DSN: Final = re.compile(
    r"^(?:(?P<user>[^:@/]*)(?::(?P<password>[^@]*))?@)?"
    r"(?:(?P<net>\w+)(?:\((?P<address>[^)]*)\))?)?"
    r"/(?P<dbname>[^?]*)(?:\?(?P<params>.*))?$"
)


class Dialect(StrEnum):
    """Supported database families."""

    POSTGRES = "postgres"
    SQLITE3 = "sqlite3"
    MYSQL = "mysql"

    @classmethod
    def parse(cls, value: object) -> Self:
        """Return the member for ``value``.

        Raises:
            UnknownDialectError: If ``value`` names no supported dialect.
        """
        try:
            return cls(value)
        except ValueError as e:
            raise UnknownDialectError(value) from e


@dataclass(frozen=True)
class EngineOptions:
    """Everything needed to build an engine for one dialect.

    Attributes:
        url: SQLAlchemy URL with the driver selected.
        dialect: The resolved dialect.
        sql_log_level: Verbosity of SQL statement logging.
        prepared_statements: Whether the driver prepares statements up front.
        connect_args: Extra keyword arguments for the DBAPI ``connect()``.
    """

    url: URL
    dialect: Dialect
    sql_log_level: SqlLogLevel = "silent"
    prepared_statements: bool = False
    connect_args: Mapping[str, Any] = field(default_factory=dict)


def _postgres_url(dsn: str) -> URL:
    """Build a psycopg URL from a key=value DSN or a postgres URL."""
    if "://" in dsn:
        url = make_url(dsn)
        if url.drivername in {"postgres", "postgresql"}:
            url = url.set(drivername=POSTGRES_DRIVER)
        return url

    params = {key.lower(): value for key, value in tokenize_dsn(dsn).items()}

    port: int | None = None
    if raw_port := params.pop("port", None):
        try:
            port = int(raw_port)
        except ValueError as e:
            msg = f"invalid port in DSN: {raw_port}"
            raise ValidationError(msg, context={"port": raw_port}, cause=e) from e

    host = params.pop("host", None)
    user = params.pop("user", None)
    password = params.pop("password", None)
    database = params.pop("dbname", None)

    query = dict(params)
    if timezone := query.pop("timezone", None):
        query["options"] = f"-c TimeZone={timezone}"

    return URL.create(
        POSTGRES_DRIVER,
        username=user,
        password=password,
        host=host,
        port=port,
        database=database,
        query=query,
    )


def _sqlite_url(dsn: str) -> URL:
    """Build a pysqlite URL, opening ``file:`` DSNs in URI mode."""
    if "://" in dsn:
        return make_url(dsn)

    if dsn.startswith("file:"):
        path, _, raw_query = dsn.partition("?")
        query = dict(parse_qsl(raw_query, keep_blank_values=True))
        query["uri"] = "true"
        return URL.create(SQLITE_DRIVER, database=path, query=query)

    return URL.create(SQLITE_DRIVER, database=dsn or None)


def _mysql_url(dsn: str) -> URL:
    """Build a PyMySQL URL from a go-style MySQL DSN or a SQLAlchemy URL."""
    if "://" in dsn:
        url = make_url(dsn)
        if url.drivername == "mysql":
            url = url.set(drivername=MYSQL_DRIVER)
        return url

    match = _GO_MYSQL_DSN.match(dsn)
    if match is None:
        msg = "cannot parse mysql DSN"
        raise ValidationError(msg, context={"dsn": redact_dsn(dsn)})

    host: str | None = None
    port: int | None = None
    query: dict[str, str] = {}

    address = match["address"] or ""
    if match["net"] == "unix":
        query["unix_socket"] = address
    elif address:
        host, _, raw_port = address.partition(":")
        port = int(raw_port) if raw_port.isdigit() else None

    for key, value in parse_qsl(match["params"] or "", keep_blank_values=True):
        if key in MYSQL_PASSTHROUGH_PARAMS:
            query[key] = value
        else:
            logger.debug("Ignoring mysql DSN parameter {}", key)

    return URL.create(
        MYSQL_DRIVER,
        username=match["user"] or None,
        password=match["password"],
        host=host or None,
        port=port,
        database=match["dbname"] or None,
        query=query,
    )


def resolve_dialect(
    dsn: str,
    dialect: Dialect | str,
    sql_log_level: str | None = None,
) -> EngineOptions:
    """Select driver settings for ``dialect`` and build the engine options.

    Args:
        dsn: Connection string in the dialect's native form.
        dialect: ``postgres``, ``sqlite3`` or ``mysql``.
        sql_log_level: ``info``, ``error`` or anything else for silent. Read
            from the settings (``SQL_LOG_LEVEL``) when not given.

    Returns:
        EngineOptions: URL and engine settings for the dialect.

    Raises:
        UnknownDialectError: If ``dialect`` is not supported.
    """
    level = (
        get_settings().sql_log_level
        if sql_log_level is None
        else normalize_sql_log_level(sql_log_level)
    )
    resolved = Dialect.parse(dialect)

    if resolved is Dialect.POSTGRES:
        options = EngineOptions(
            url=_postgres_url(dsn),
            dialect=resolved,
            sql_log_level=level,
            prepared_statements=True,
            connect_args={"prepare_threshold": PREPARE_THRESHOLD_ALWAYS},
        )
    elif resolved is Dialect.SQLITE3:
        options = EngineOptions(
            url=_sqlite_url(dsn), dialect=resolved, sql_log_level=level
        )
    else:
        options = EngineOptions(
            url=_mysql_url(dsn), dialect=resolved, sql_log_level=level
        )

    logger.debug(
        "Resolved {} dialect - url: {}, sql_log_level: {}",
        resolved.value,
        options.url.render_as_string(hide_password=True),
        level,
    )
    return options
