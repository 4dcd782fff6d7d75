"""Errors raised by sqlrepo itself.

SQLAlchemy and driver errors are not wrapped here. They reach the caller
as raised, so callers can keep catching ``sqlalchemy.exc`` types.

Each error carries an :class:`ErrorCode` to branch on, a :class:`Severity`,
a context mapping and a short fingerprint for grouping repeated failures.
None of them is fatal to the process.
"""

import hashlib
import traceback
from enum import Enum
from pathlib import Path

from sqlrepo.core.types import ErrorContext

# Innermost frames considered when fingerprinting
_FINGERPRINT_FRAMES = 5


class ErrorCode(Enum):
    """Machine-readable identifiers carried by every SqlRepoError."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    INVALID_DSN = "INVALID_DSN"
    """DSN string empty, or a required key missing or blank."""

    UNKNOWN_DIALECT = "UNKNOWN_DIALECT"
    """Dialect tag outside postgres, sqlite3 and mysql."""

    INVALID_CONNECTION = "INVALID_CONNECTION"
    """Connection descriptor of the wrong type or paired with the wrong dialect."""

    NO_WHERE_CLAUSE = "NO_WHERE_CLAUSE"
    """find, update or delete called without a where clause."""


class Severity(Enum):
    """How serious an error is for whoever is watching the logs."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


def _library_frame(frame: traceback.FrameSummary) -> bool:
    parts = Path(frame.filename).parts
    return "sqlrepo" in parts and "site-packages" not in parts


class SqlRepoError(Exception):
    """Root of the sqlrepo error hierarchy.

    Args:
        error_code: An ErrorCode, or a free-form code string
        message: Text shown to humans
        severity: Defaults to MEDIUM
        context: Extra key/value detail about the failure
        cause: Underlying exception, also set as ``__cause__``
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

        # Frames up to the caller of __init__
        self.fingerprint = self._fingerprint(traceback.extract_stack()[:-1])

    def _fingerprint(self, frames: list[traceback.FrameSummary]) -> str:
        """Hash the class, code and sqlrepo call sites into 16 hex chars."""
        parts = [self.__class__.__name__, self.error_code]
        parts.extend(
            f"{frame.filename}:{frame.lineno}:{frame.name}"
            for frame in frames[-_FINGERPRINT_FRAMES:]
            if _library_frame(frame)
        )
        return hashlib.sha256(":".join(parts).encode()).hexdigest()[:16]

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        extra = f", context={self.context}" if self.context else ""
        return (
            f"{type(self).__name__}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{extra})"
        )


class ValidationError(SqlRepoError):
    """Caller input that sqlrepo cannot accept. Always LOW severity."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.VALIDATION_ERROR,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.LOW, context, cause)


class BusinessRuleError(SqlRepoError):
    """An operation refused by a repository rule. Always MEDIUM severity."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.INTERNAL_ERROR,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.MEDIUM, context, cause)


class EmptyDSNError(ValidationError):
    """Raised when an empty DSN string is parsed."""

    def __init__(self) -> None:
        super().__init__("cannot parse DSN: DSN is empty", ErrorCode.INVALID_DSN)


class MissingFieldError(ValidationError):
    """Raised when a required key is absent from a DSN string.

    Args:
        field: Name of the missing DSN key
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(
            f"cannot parse DSN: {field} is empty",
            ErrorCode.INVALID_DSN,
            context={"field": field},
        )


class UnknownDialectError(ValidationError):
    """Raised when a dialect tag is not postgres, sqlite3 or mysql.

    Args:
        dialect: The rejected tag
    """

    def __init__(self, dialect: object) -> None:
        self.dialect = dialect
        super().__init__(
            f"unknown dialect: {dialect}",
            ErrorCode.UNKNOWN_DIALECT,
            context={"dialect": str(dialect)},
        )


class InvalidConfigForDialectError(ValidationError):
    """Raised when a DialectConfig is given with a non-postgres dialect.

    Args:
        dialect: The dialect the config was paired with
    """

    def __init__(self, dialect: object) -> None:
        self.dialect = dialect
        super().__init__(
            "config is only valid when dialect is postgres",
            ErrorCode.INVALID_CONNECTION,
            context={"dialect": str(dialect)},
        )


class InvalidConnectionDescriptorError(ValidationError):
    """Raised when the connection descriptor is neither a config nor a DSN.

    Args:
        descriptor_type: Type name of the rejected descriptor
    """

    def __init__(self, descriptor_type: str) -> None:
        super().__init__(
            "connection is not a valid dsn string or config",
            ErrorCode.INVALID_CONNECTION,
            context={"descriptor_type": descriptor_type},
        )


class NoWhereClauseError(BusinessRuleError):
    """Raised when find, update or delete is called without a where clause.

    Args:
        operation: Name of the repository operation that was refused
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            "where clause is required",
            ErrorCode.NO_WHERE_CLAUSE,
            context={"operation": operation},
        )
