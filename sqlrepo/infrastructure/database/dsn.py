"""Key=value DSN parsing and rendering.

A DSN here is a flat, space-separated list of ``key=value`` tokens, the
format libpq and most postgres drivers accept::

    host=localhost user=app password=secret dbname=app sslmode=disable timezone=UTC

:func:`parse_dsn` turns such a string into a :class:`DialectConfig` and
:meth:`DialectConfig.to_dsn` renders it back.
"""

from pydantic import BaseModel, ConfigDict, Field

from sqlrepo.core.exceptions import EmptyDSNError, MissingFieldError
from sqlrepo.core.types import DSNParams
from sqlrepo.infrastructure.constants import DEFAULT_SSLMODE, DEFAULT_TIMEZONE

# Checked in this order; the first absent key is reported
REQUIRED_DSN_KEYS = ("host", "user", "password", "dbname")

_KEY_VALUE_PARTS = 2


class DialectConfig(BaseModel):
    """Postgres connection parameters.

    Instances are immutable. Build one directly, with :func:`new_config`,
    or from a DSN string with :func:`parse_dsn`.
    """

    model_config = ConfigDict(frozen=True)

    database: str = Field(min_length=1, description="Database name")
    user: str = Field(min_length=1, description="Role to connect as")
    password: str = Field(min_length=1, description="Password for the role")
    host: str = Field(min_length=1, description="Server host name or address")
    sslmode: str = Field(default=DEFAULT_SSLMODE, description="libpq sslmode")
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="Session time zone")

    def to_dsn(self) -> str:
        """Render the canonical key=value DSN for this config."""
        return (
            f"host={self.host} user={self.user} password={self.password} "
            f"dbname={self.database} sslmode={self.sslmode} timezone={self.timezone}"
        )


def tokenize_dsn(dsn: str) -> DSNParams:
    """Split a DSN into its key=value parameters.

    Tokens are separated by single spaces. A token is kept only if it
    splits on ``=`` into exactly two parts, so ``flag`` and ``a=b=c`` are
    dropped. Later duplicates win.

    Args:
        dsn: Space-separated key=value string.

    Returns:
        DSNParams: Mapping of key to value.
    """
    params: DSNParams = {}
    for token in dsn.split(" "):
        parts = token.split("=")
        if len(parts) == _KEY_VALUE_PARTS:
            params[parts[0]] = parts[1]
    return params


def parse_dsn(dsn: str) -> DialectConfig:
    """Parse a key=value DSN into a DialectConfig.

    ``sslmode`` defaults to ``disable`` and ``timezone`` to ``UTC``.

    Args:
        dsn: Space-separated key=value string.

    Returns:
        DialectConfig: The parsed connection parameters.

    Raises:
        EmptyDSNError: If ``dsn`` is empty.
        MissingFieldError: If host, user, password or dbname is absent or empty.
    """
    if not dsn:
        raise EmptyDSNError

    params = tokenize_dsn(dsn)

    for key in REQUIRED_DSN_KEYS:
        if not params.get(key):
            raise MissingFieldError(key)

    return DialectConfig(
        database=params["dbname"],
        user=params["user"],
        password=params["password"],
        host=params["host"],
        sslmode=params.get("sslmode", DEFAULT_SSLMODE),
        timezone=params.get("timezone", DEFAULT_TIMEZONE),
    )


def dsn_from_config(config: DialectConfig) -> str:
    """Render a DialectConfig as its canonical DSN string."""
    return config.to_dsn()


def new_config(
    database: str,
    user: str,
    password: str,
    host: str,
    sslmode: str = DEFAULT_SSLMODE,
    timezone: str = DEFAULT_TIMEZONE,
) -> DialectConfig:
    """Build a DialectConfig from positional connection parameters.

    Raises:
        pydantic.ValidationError: If a required parameter is empty.
    """
    return DialectConfig(
        database=database,
        user=user,
        password=password,
        host=host,
        sslmode=sslmode,
        timezone=timezone,
    )
