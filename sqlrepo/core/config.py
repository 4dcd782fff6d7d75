"""Settings read from the environment with pydantic-settings.

Values come from, highest priority first: process environment variables,
a ``.env`` file in the working directory, then the defaults below.

``SQL_LOG_LEVEL`` picks how much SQL is logged. Nested groups are set with
a double underscore, for example ``DATABASE_CONFIG__POOL_SIZE=20`` or
``LOG_CONFIG__LOG_LEVEL=DEBUG``.
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

type SqlLogLevel = Literal["info", "error", "silent"]
type FormatterType = Literal["console", "json"]

_HOSTED_RUNTIME_VARS = ("K_SERVICE", "AWS_EXECUTION_ENV")

_SQL_LOG_LEVELS: dict[str, SqlLogLevel] = {"info": "info", "error": "error"}


def normalize_sql_log_level(value: object) -> SqlLogLevel:
    """Reduce a raw SQL log level to ``info``, ``error`` or ``silent``.

    Matching ignores case and surrounding whitespace. Anything that is not
    ``info`` or ``error``, including non-strings, means ``silent``.
    """
    if not isinstance(value, str):
        return "silent"
    return _SQL_LOG_LEVELS.get(value.strip().lower(), "silent")


class LogConfig(BaseModel):
    """Options for the Loguru sink and for redaction."""

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = (
        Field(default="INFO", description="Lowest level written by the sink")
    )
    log_formatter_type: FormatterType | None = Field(
        default=None,
        description="console or json; chosen from the runtime when unset",
    )
    slow_query_threshold_ms: int = Field(
        default=100,
        gt=0,
        description="Statements slower than this are logged as slow",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: ["password", "token", "secret", "api_key"],
        description="Key fragments whose values are replaced in logs and errors",
    )


class DatabaseConfig(BaseModel):
    """Connection pool settings applied to every engine sqlrepo creates."""

    pool_size: int = Field(
        default=10, ge=1, le=100, description="Connections kept open in the pool"
    )
    max_overflow: int = Field(
        default=5, ge=0, le=50, description="Extra connections allowed past pool_size"
    )
    pool_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Seconds to wait for a free pooled connection",
    )
    pool_pre_ping: bool = Field(
        default=True, description="Check a pooled connection before handing it out"
    )
    pool_recycle: int = Field(
        default=3600,
        ge=-1,
        description="Seconds after which a pooled connection is replaced",
    )


class Settings(BaseSettings):
    """Everything sqlrepo reads from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(
        default=False, description="Verbose tracebacks in the console sink"
    )
    sql_log_level: SqlLogLevel = Field(
        default="silent", description="SQL statement logging: info, error or silent"
    )
    log_config: LogConfig = Field(default_factory=LogConfig)
    database_config: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @field_validator("sql_log_level", mode="before")
    @classmethod
    def coerce_sql_log_level(cls, v: object) -> SqlLogLevel:
        """Treat unrecognised SQL log levels as silent."""
        _ = cls
        return normalize_sql_log_level(v)

    def model_post_init(self, __context: object) -> None:
        """Fill in the log formatter when none was configured."""
        super().model_post_init(__context)
        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._default_formatter()

    def _default_formatter(self) -> FormatterType:
        # Hosted runtimes collect stdout as structured logs
        if any(os.getenv(name) for name in _HOSTED_RUNTIME_VARS):
            return "json"
        return "console" if self.environment == "development" else "json"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first use."""
    return Settings()
