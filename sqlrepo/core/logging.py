"""Loguru sinks for sqlrepo and the libraries underneath it.

sqlrepo writes every message through the global Loguru ``logger`` and
never installs a sink on import. An application that already configures
Loguru gets sqlrepo's messages with no extra work. Anything else can call
:func:`setup_logging` once at startup.

:func:`setup_logging` installs one sink and sends the standard library
loggers used by SQLAlchemy and the DBAPI drivers into Loguru, so pool and
driver warnings show up next to sqlrepo's own statement log.

Output formats (``LOG_CONFIG__LOG_FORMATTER_TYPE``):
- **console**: one coloured line per message, context fields inline
- **json**: one JSON document per message for log shippers
"""

from __future__ import annotations

import inspect
import json
import logging
import sys
from typing import TYPE_CHECKING, Any, Final, cast

from loguru import logger

from sqlrepo.core.constants import REDACTED
from sqlrepo.core.error_context import is_sensitive_field

if TYPE_CHECKING:
    from sqlrepo.core.config import Settings


class _LoggingState:
    """Remembers whether setup_logging already ran."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()

# Longest context value shown on a console line
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Standard library loggers that repeat every statement at INFO
NOISY_LOGGERS: Final[tuple[str, ...]] = (
    "sqlalchemy.engine.Engine",
    "sqlalchemy.pool",
)

_CONSOLE_PREFIX: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>"
)


def _escape_braces(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


def _render_field(key: str, value: object) -> str:
    """Render one context field as ``key=value`` for the console."""
    if is_sensitive_field(key):
        shown = REDACTED
    else:
        shown = str(value)
        if len(shown) > MAX_FIELD_VALUE_LENGTH:
            shown = shown[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return _escape_braces(f"{key}={shown}")


def _visible_extra(record: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.get("extra", {}).items()
        if not key.startswith("_") and value is not None
    }


def format_console_record(record: dict[str, Any]) -> str:
    """Build the Loguru format string for one console line.

    Context passed as keyword arguments (``duration_ms``, ``parameters``
    and so on) is shown between the location and the message. Sensitive
    keys are redacted and long values shortened.

    Args:
        record: Loguru record being written.

    Returns:
        str: Format string for this record, ending in a newline.
    """
    line = _CONSOLE_PREFIX
    fields = " ".join(
        f"[<dim>{_render_field(key, value)}</dim>]"
        for key, value in _visible_extra(record).items()
    )
    if fields:
        line += f" | {fields}"
    line += " | " + _escape_braces(str(record.get("message", "")))

    if record.get("exception"):
        line += "\n{exception}"
    return line + "\n"


def format_json_record(record: dict[str, Any]) -> str:
    """Serialize one Loguru record as a JSON line.

    Args:
        record: Loguru record being written.

    Returns:
        str: JSON document followed by a newline.
    """
    document: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "module": record["module"],
        "line": record["line"],
    }
    for key, value in _visible_extra(record).items():
        document[key] = REDACTED if is_sensitive_field(key) else value

    exc = record.get("exception")
    if exc:
        document["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(document, default=str) + "\n"


def _json_sink(message: object) -> None:
    record = getattr(message, "record", None)
    if record is not None:
        sys.stdout.write(format_json_record(record))
        sys.stdout.flush()


class InterceptHandler(logging.Handler):
    """Send standard library log records to Loguru.

    The record keeps its level name when Loguru knows it, and is reported
    from the frame that called the standard library logger.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Re-emit ``record`` through Loguru."""
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def setup_logging(settings: Settings) -> None:
    """Install the configured sink and route standard logging into Loguru.

    Only the first call has an effect. Loguru's default stderr sink is
    replaced.

    Args:
        settings: Settings holding ``log_config`` and ``debug``.
    """
    if _state.configured:
        return

    log_config = settings.log_config
    formatter_type = log_config.log_formatter_type or "console"

    logger.remove()
    if formatter_type == "json":
        logger.add(
            _json_sink,
            level=log_config.log_level,
            enqueue=True,
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=cast("Any", format_console_record),
            level=log_config.log_level,
            colorize=True,
            enqueue=True,
            backtrace=settings.debug,
            diagnose=settings.debug,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _state.configured = True
    logger.info(
        "sqlrepo logging ready - formatter: {}, level: {}",
        formatter_type,
        log_config.log_level,
    )
