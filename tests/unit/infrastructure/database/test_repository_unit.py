"""Unit tests for repository helpers that need no database."""

from typing import Any

import pytest
from pytest_mock import MockType
from sqlalchemy import String
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Mapped, mapped_column

from sqlrepo.core.exceptions import ErrorCode, NoWhereClauseError, ValidationError
from sqlrepo.infrastructure.database.base import BaseModel
from sqlrepo.infrastructure.database.repository import (
    BaseRepository,
    PaginatedResult,
    Repository,
    WhereClause,
    _compile_placeholders,
)


class Widget(BaseModel):
    """Minimal model for repository unit tests."""

    __tablename__ = "unit_widgets"

    name: Mapped[str] = mapped_column(String(50))


@pytest.mark.unit
class TestCompilePlaceholders:
    """Test cases for placeholder rewriting."""

    @pytest.mark.parametrize(
        ("query", "expected", "count"),
        [
            ("id = ?", "id = :where_0", 1),
            ("a = ? AND b > ?", "a = :where_0 AND b > :where_1", 2),
            ("title = '?' AND id = ?", "title = '?' AND id = :where_0", 1),
            ('"col?" = ?', '"col?" = :where_0', 1),
            ("1 = 1", "1 = 1", 0),
            ("title = 'a :b'", r"title = 'a \:b'", 0),
            ("x = ?::int", r"x = :where_0\:\:int", 1),
        ],
    )
    def test_rewrites_unquoted_marks(self, query: str, expected: str, count: int) -> None:
        """Test only question marks outside quotes become binds."""
        assert _compile_placeholders(query) == (expected, count)


@pytest.mark.unit
class TestWhereClause:
    """Test cases for WhereClause."""

    def test_of_collects_args(self) -> None:
        """Test of() packs positional arguments into a tuple."""
        where = WhereClause.of("title = ? AND id > ?", "Hello", 10)
        assert where == WhereClause("title = ? AND id > ?", ("Hello", 10))

    def test_to_sql_binds_values(self) -> None:
        """Test arguments are bound in placeholder order."""
        compiled = WhereClause.of("title = ? AND id > ?", "Hello", 10).to_sql().compile()

        assert str(compiled) == "title = :where_0 AND id > :where_1"
        assert compiled.params == {"where_0": "Hello", "where_1": 10}

    @pytest.mark.parametrize("ids", [[1, 2], (1, 2), {1, 2}, frozenset({1, 2})])
    def test_collection_args_expand(self, ids: Any) -> None:
        """Test collection arguments bind as expanding parameters."""
        compiled = WhereClause.of("id IN ?", ids).to_sql().compile()

        assert compiled.binds["where_0"].expanding is True
        assert sorted(compiled.params["where_0"]) == [1, 2]

    def test_colons_are_not_binds(self) -> None:
        """Test colons in literals and casts survive as plain text."""
        compiled = (
            WhereClause.of("note = 'a :b' AND day > ?::date", "2024-01-01")
            .to_sql()
            .compile()
        )

        assert str(compiled) == "note = 'a :b' AND day > :where_0::date"
        assert compiled.params == {"where_0": "2024-01-01"}

    def test_scalar_args_do_not_expand(self) -> None:
        """Test plain values bind as ordinary parameters."""
        compiled = WhereClause.of("id = ?", 3).to_sql().compile()
        assert compiled.binds["where_0"].expanding is False

    def test_extra_args_rejected(self) -> None:
        """Test more arguments than placeholders fails when building SQL."""
        with pytest.raises(ArgumentError):
            WhereClause.of("id = ?", 1, 2).to_sql()

    def test_clause_is_immutable(self) -> None:
        """Test a clause cannot be changed after construction."""
        where = WhereClause.of("id = ?", 1)
        with pytest.raises(AttributeError):
            where.query = "1 = 1"  # type: ignore[misc]


@pytest.mark.unit
class TestPaginatedResult:
    """Test cases for PaginatedResult navigation."""

    @pytest.mark.parametrize(
        ("page", "total_pages", "has_next", "has_prev"),
        [
            (1, 0, False, False),
            (1, 1, False, False),
            (1, 3, True, False),
            (2, 3, True, True),
            (3, 3, False, True),
            (5, 3, False, True),
        ],
    )
    def test_navigation_flags(
        self, page: int, total_pages: int, has_next: bool, has_prev: bool
    ) -> None:
        """Test next and previous flags follow page and total_pages."""
        result: PaginatedResult[Any] = PaginatedResult(
            total_pages=total_pages, page=page
        )
        assert result.has_next is has_next
        assert result.has_prev is has_prev

    def test_defaults(self) -> None:
        """Test an empty result starts on page one with no pages."""
        result: PaginatedResult[Any] = PaginatedResult()
        assert result.results == []
        assert result.count == 0
        assert result.total_pages == 0
        assert result.page == 1

    def test_to_dict(self) -> None:
        """Test to_dict carries data and navigation flags."""
        result = PaginatedResult(results=["a", "b"], count=5, total_pages=3, page=2)
        assert result.to_dict() == {
            "results": ["a", "b"],
            "count": 5,
            "total_pages": 3,
            "has_next": True,
            "has_prev": True,
            "page": 2,
        }


@pytest.mark.unit
class TestWhereClauseRequired:
    """Test cases for operations that refuse to run unscoped."""

    def test_find_without_where(self, mock_database: MockType) -> None:
        """Test find fails before opening a session."""
        repository = Repository(mock_database)

        with pytest.raises(NoWhereClauseError) as exc_info:
            repository.find(Widget, None)

        assert exc_info.value.operation == "find"
        assert exc_info.value.error_code == ErrorCode.NO_WHERE_CLAUSE.value
        assert exc_info.value.message == "where clause is required"
        mock_database.session.assert_not_called()

    def test_update_without_where(self, mock_database: MockType) -> None:
        """Test update fails before opening a session."""
        repository = Repository(mock_database)

        with pytest.raises(NoWhereClauseError):
            repository.update(Widget, {"name": "x"}, 1, None)

        mock_database.session.assert_not_called()

    def test_delete_without_where(self, mock_database: MockType) -> None:
        """Test delete fails before opening a session."""
        repository = Repository(mock_database)

        with pytest.raises(NoWhereClauseError):
            repository.delete(Widget, None)

        mock_database.session.assert_not_called()

    def test_model_repository_without_where(self, mock_database: MockType) -> None:
        """Test a model-bound repository keeps the same guard."""
        widgets = BaseRepository(Repository(mock_database), Widget)

        with pytest.raises(NoWhereClauseError):
            widgets.find(None)

        mock_database.session.assert_not_called()


@pytest.mark.unit
class TestPaginationArguments:
    """Test cases for pagination argument validation."""

    @pytest.mark.parametrize(("page", "page_size"), [(0, 10), (-1, 10), (1, 0)])
    def test_invalid_window(
        self, mock_database: MockType, page: int, page_size: int
    ) -> None:
        """Test pages and page sizes below one are rejected."""
        repository = Repository(mock_database)

        with pytest.raises(ValidationError):
            repository.find_all_paginated(Widget, page, page_size)

        mock_database.session.assert_not_called()


@pytest.mark.unit
def test_repository_exposes_database(mock_database: MockType) -> None:
    """Test the db property returns the wrapped database."""
    assert Repository(mock_database).db is mock_database


@pytest.mark.unit
def test_migrate_delegates(mock_database: MockType) -> None:
    """Test migrate passes the models to the database."""
    Repository(mock_database).migrate(Widget)
    mock_database.migrate.assert_called_once_with(Widget)
