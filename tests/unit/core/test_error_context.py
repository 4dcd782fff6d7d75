"""Unit tests for sensitive data sanitization."""

import pytest

from sqlrepo.core.constants import REDACTED
from sqlrepo.core.error_context import (
    MAX_DEPTH,
    is_sensitive_field,
    redact_dsn,
    sanitize_dict,
    sanitize_sql_params,
    sanitize_value,
)


@pytest.mark.unit
class TestIsSensitiveField:
    """Tests for sensitive field detection."""

    @pytest.mark.parametrize(
        "field_name",
        ["password", "PASSWORD", "db_passwd", "pwd", "api_key", "apiKey", "token"],
    )
    def test_sensitive(self, field_name: str) -> None:
        """Verify common credential names are detected."""
        assert is_sensitive_field(field_name)

    @pytest.mark.parametrize("field_name", ["host", "user", "dbname", "sslmode"])
    def test_not_sensitive(self, field_name: str) -> None:
        """Verify ordinary DSN keys are left alone."""
        assert not is_sensitive_field(field_name)

    def test_configured_fields(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify extra sensitive fields can be configured."""
        monkeypatch.setenv("LOG_CONFIG__SENSITIVE_FIELDS", '["tenant"]')
        assert is_sensitive_field("tenant_id")


@pytest.mark.unit
class TestSanitizeValue:
    """Tests for recursive value sanitization."""

    def test_nested_structures(self) -> None:
        """Verify sensitive keys are redacted at any depth."""
        data = {
            "user": "app",
            "auth": {"password": "secret", "hosts": [{"token": "t", "name": "a"}]},
        }
        assert sanitize_dict(data) == {
            "user": "app",
            "auth": {
                "password": REDACTED,
                "hosts": [{"token": REDACTED, "name": "a"}],
            },
        }

    def test_tuple_preserved(self) -> None:
        """Verify tuples stay tuples."""
        assert sanitize_value(({"secret": 1}, 2)) == ({"secret": REDACTED}, 2)

    def test_depth_limit(self) -> None:
        """Verify deeply nested values are redacted past the depth limit."""
        assert sanitize_value("x", depth=MAX_DEPTH + 1) == REDACTED


@pytest.mark.unit
class TestRedactDsn:
    """Tests for hiding passwords in connection strings."""

    @pytest.mark.parametrize(
        ("dsn", "expected"),
        [
            (
                "host=db user=app password=s3cret dbname=app",
                f"host=db user=app password={REDACTED} dbname=app",
            ),
            (
                "host=db PASSWORD=s3cret",
                f"host=db PASSWORD={REDACTED}",
            ),
            (
                "postgresql://app:s3cret@db:5432/app",
                f"postgresql://app:{REDACTED}@db:5432/app",
            ),
            (
                "app:s3cret@tcp(db:3306)/app?charset=utf8mb4",
                f"app:{REDACTED}@tcp(db:3306)/app?charset=utf8mb4",
            ),
            ("file::memory:?cache=shared", "file::memory:?cache=shared"),
            ("root@tcp(db)/app", "root@tcp(db)/app"),
        ],
    )
    def test_redact(self, dsn: str, expected: str) -> None:
        """Verify every supported DSN form loses its password."""
        assert redact_dsn(dsn) == expected
        assert "s3cret" not in redact_dsn(dsn)


@pytest.mark.unit
class TestSanitizeSqlParams:
    """Tests for SQL parameter sanitization."""

    def test_named_params(self) -> None:
        """Verify named parameters are redacted by key."""
        params = {"where_0": "Hello", "password": "secret"}
        assert sanitize_sql_params(params) == {"where_0": "Hello", "password": REDACTED}

    @pytest.mark.parametrize("params", [("a", 1), ["a", 1], [("a",), ("b",)]])
    def test_positional_params(self, params: object) -> None:
        """Verify positional parameters pass through unchanged."""
        assert sanitize_sql_params(params) == params

    def test_none(self) -> None:
        """Verify missing parameters stay missing."""
        assert sanitize_sql_params(None) is None

    def test_unknown_type(self) -> None:
        """Verify unrecognised parameter containers are redacted."""
        assert sanitize_sql_params(object()) == REDACTED
