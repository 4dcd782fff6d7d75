"""Generic repository: CRUD and pagination over any mapped model.

One :class:`Repository` serves every model class. Each method takes the
model class (or instance) it works on, opens its own session from the
:class:`Database`, and commits on success or rolls back on error.

Every read eagerly loads the model's relationships, so returned objects
are fully usable after their session has closed.

``find``, ``update`` and ``delete`` refuse to run without a
:class:`WhereClause`. Only the bulk reads ``find_all`` and
``find_all_paginated`` may run unscoped.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Self

from loguru import logger
from sqlalchemy import ColumnElement, Select, TextClause, bindparam, func, select, text
from sqlalchemy import delete as sql_delete
from sqlalchemy import update as sql_update
from sqlalchemy.orm import selectinload

from sqlrepo.core.exceptions import NoWhereClauseError, ValidationError
from sqlrepo.core.types import UpdateValues
from sqlrepo.infrastructure.database.base import Base
from sqlrepo.infrastructure.database.connection import (
    ConnectionDescriptor,
    Database,
    connect,
)
from sqlrepo.infrastructure.database.dialect import Dialect

BIND_PREFIX = "where_"


def _compile_placeholders(query: str) -> tuple[str, int]:
    """Replace ``?`` placeholders outside quoted literals with named binds.

    Every literal colon is escaped so ``text()`` never reads ``:word`` or a
    ``::type`` cast as a bind parameter.

    Returns:
        tuple[str, int]: The rewritten query and the number of placeholders.
    """
    out: list[str] = []
    quote: str | None = None
    count = 0
    for char in query:
        if quote:
            if char == quote:
                quote = None
        elif char in {"'", '"'}:
            quote = char
        elif char == "?":
            out.append(f":{BIND_PREFIX}{count}")
            count += 1
            continue
        out.append("\\:" if char == ":" else char)
    return "".join(out), count


@dataclass(frozen=True)
class WhereClause:
    """A parameterized predicate scoping a repository operation.

    ``query`` is raw SQL using ``?`` for positional placeholders; ``args``
    holds one value per placeholder. A list, tuple or set argument binds
    as an expanding parameter, so ``"id IN ?"`` takes a sequence of ids.

    Mismatched placeholder and argument counts are reported by SQLAlchemy
    when the statement is built or executed.

    Example:
        WhereClause("title = ? AND id > ?", ("Hello", 10))
    """

    query: str
    args: tuple[Any, ...] = ()

    @classmethod
    def of(cls, query: str, *args: Any) -> Self:
        """Build a clause from a query and its positional arguments."""
        return cls(query, args)

    def to_sql(self) -> TextClause:
        """Return the predicate as a SQLAlchemy text clause with bound values."""
        sql, _ = _compile_placeholders(self.query)
        binds = [
            bindparam(f"{BIND_PREFIX}{i}", value=list(arg), expanding=True)
            if isinstance(arg, (list, tuple, set, frozenset))
            else bindparam(f"{BIND_PREFIX}{i}", value=arg)
            for i, arg in enumerate(self.args)
        ]
        return text(sql).bindparams(*binds)


@dataclass
class PaginatedResult[T]:
    """One page of results plus what is needed to render page navigation.

    Attributes:
        results: Rows in the requested page window.
        count: Total rows matching the filter, regardless of page.
        total_pages: ``ceil(count / page_size)``.
        page: The requested page, starting at 1.
    """

    results: list[T] = field(default_factory=list)
    count: int = 0
    total_pages: int = 0
    page: int = 1

    @property
    def has_next(self) -> bool:
        """Whether a later page exists."""
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        """Whether an earlier page exists."""
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        """Render the page metadata and results as a plain dict."""
        return {
            "results": self.results,
            "count": self.count,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
            "page": self.page,
        }


def _with_relations[T: Base](model: type[T]) -> Select[tuple[T]]:
    return select(model).options(selectinload("*"))


def _primary_key(model: type[Base]) -> Sequence[ColumnElement[Any]]:
    return model.__mapper__.primary_key


def _identity_criteria(instance: Base) -> list[ColumnElement[bool]]:
    mapper = instance.__mapper__
    identity = mapper.primary_key_from_instance(instance)
    return [
        column == value
        for column, value in zip(mapper.primary_key, identity, strict=True)
    ]


class Repository:
    """Generic data access over an open :class:`Database`.

    The repository never closes the database; whoever opened it does.

    Args:
        database: The open database to operate on.

    Example:
        repo = Repository.connect(SQLITE_MEMORY_DSN, Dialect.SQLITE3)
        repo.migrate(Post)
        post = repo.create(Post(title="Hello World"))
        same = repo.find(Post, WhereClause.of("id = ?", post.id))
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        logger.debug("Initialized repository on {} database", database.dialect.value)

    @classmethod
    def connect(
        cls,
        descriptor: ConnectionDescriptor,
        dialect: Dialect | str,
        *,
        sql_log_level: str | None = None,
    ) -> Self:
        """Open a database and wrap it in a repository.

        Raises:
            SqlRepoError: If the descriptor or dialect is invalid.
            sqlalchemy.exc.SQLAlchemyError: If the server cannot be reached.
        """
        return cls(connect(descriptor, dialect, sql_log_level=sql_log_level))

    @property
    def db(self) -> Database:
        """The underlying database handle."""
        return self.database

    def migrate(self, *models: type[Base]) -> None:
        """Create the tables for ``models`` if they do not exist."""
        self.database.migrate(*models)

    def find[T: Base](self, model: type[T], where: WhereClause | None) -> T:
        """Load the first row matching ``where``, ordered by primary key.

        Args:
            model: Mapped class to load.
            where: Predicate the row must satisfy. Required.

        Returns:
            T: The matching instance with its relationships loaded.

        Raises:
            NoWhereClauseError: If ``where`` is None.
            sqlalchemy.exc.NoResultFound: If no row matches.
        """
        if where is None:
            raise NoWhereClauseError("find")

        logger.debug("Finding {} where {}", model.__name__, where.query)

        stmt = (
            _with_relations(model)
            .where(where.to_sql())
            .order_by(*_primary_key(model))
            .limit(1)
        )
        with self.database.session() as session:
            return session.execute(stmt).scalars().one()

    def find_all[T: Base](
        self, model: type[T], where: WhereClause | None = None
    ) -> list[T]:
        """Load every row of ``model``, scoped by ``where`` when given.

        Args:
            model: Mapped class to load.
            where: Optional predicate.

        Returns:
            list[T]: Matching instances ordered by primary key.
        """
        stmt = _with_relations(model)
        if where is not None:
            stmt = stmt.where(where.to_sql())
        stmt = stmt.order_by(*_primary_key(model))

        with self.database.session() as session:
            instances = list(session.execute(stmt).scalars().all())

        logger.debug("Retrieved {} {} instances", len(instances), model.__name__)
        return instances

    def find_all_paginated[T: Base](
        self,
        model: type[T],
        page: int,
        page_size: int,
        where: WhereClause | None = None,
    ) -> PaginatedResult[T]:
        """Load one page of rows along with the total match count.

        The count is taken over every matching row, so ``total_pages``
        does not depend on how many rows the requested page holds.

        Args:
            model: Mapped class to load.
            page: Page number, starting at 1.
            page_size: Rows per page.
            where: Optional predicate applied to both count and page.

        Returns:
            PaginatedResult[T]: The page window and navigation metadata.

        Raises:
            ValidationError: If ``page`` or ``page_size`` is below 1.
        """
        if page < 1:
            msg = "page must be 1 or greater"
            raise ValidationError(msg, context={"page": page})
        if page_size < 1:
            msg = "page_size must be 1 or greater"
            raise ValidationError(msg, context={"page_size": page_size})

        clause = where.to_sql() if where is not None else None

        count_stmt = select(func.count()).select_from(model)
        window_stmt = _with_relations(model)
        if clause is not None:
            count_stmt = count_stmt.where(clause)
            window_stmt = window_stmt.where(clause)

        offset = 0 if page == 1 else (page - 1) * page_size
        window_stmt = (
            window_stmt.order_by(*_primary_key(model)).offset(offset).limit(page_size)
        )

        with self.database.session() as session:
            count = session.execute(count_stmt).scalar_one()
            results = list(session.execute(window_stmt).scalars().all())

        total_pages = math.ceil(count / page_size)

        logger.debug(
            "Paginated {} - page: {}, page_size: {}, count: {}, total_pages: {}",
            model.__name__,
            page,
            page_size,
            count,
            total_pages,
        )

        return PaginatedResult(
            results=results, count=count, total_pages=total_pages, page=page
        )

    def create[T: Base](self, instance: T) -> T:
        """Insert ``instance`` and reload it with generated values.

        The same object is returned, with its primary key, server defaults
        and relationships populated.

        Raises:
            sqlalchemy.orm.exc.UnmappedInstanceError: If ``instance`` is not
                a mapped object.
            sqlalchemy.exc.IntegrityError: On constraint violations.
        """
        model_name = type(instance).__name__
        logger.debug("Creating new {} instance", model_name)

        with self.database.session() as session:
            session.add(instance)
            session.flush()
            session.execute(
                _with_relations(type(instance))
                .where(*_identity_criteria(instance))
                .execution_options(populate_existing=True)
            ).scalars().one()

        logger.info(
            "Created {} instance with identity: {}",
            model_name,
            instance.__mapper__.primary_key_from_instance(instance),
        )
        return instance

    def update[T: Base](
        self,
        model: type[T],
        updates: UpdateValues,
        entity_id: Any,
        where: WhereClause | None,
    ) -> T:
        """Apply ``updates`` to the row with primary key ``entity_id``.

        The update is scoped by both the primary key and ``where``. The row
        is then read back with its relationships.

        Args:
            model: Mapped class to update.
            updates: Attribute name to new value.
            entity_id: Primary key of the row.
            where: Additional predicate the row must satisfy. Required.

        Returns:
            T: A fresh instance holding the updated row.

        Raises:
            NoWhereClauseError: If ``where`` is None.
            sqlalchemy.exc.NoResultFound: If no row has ``entity_id``, or the
                row does not satisfy ``where``.
        """
        if where is None:
            raise NoWhereClauseError("update")

        logger.debug(
            "Updating {} instance ID {} - fields: {}",
            model.__name__,
            entity_id,
            list(updates.keys()),
        )

        clause = where.to_sql()
        with self.database.session() as session:
            entity = session.get_one(model, entity_id)
            identity = _identity_criteria(entity)

            if updates:
                session.execute(
                    sql_update(model)
                    .where(*identity)
                    .where(clause)
                    .values(dict(updates))
                    .execution_options(synchronize_session=False)
                )

            refreshed = (
                session.execute(
                    _with_relations(model)
                    .where(*identity)
                    .where(clause)
                    .execution_options(populate_existing=True)
                )
                .scalars()
                .one()
            )

        logger.info(
            "Updated {} instance ID {} - fields: {}",
            model.__name__,
            entity_id,
            list(updates.keys()),
        )
        return refreshed

    def delete(self, model: type[Base], where: WhereClause | None) -> int:
        """Delete every row of ``model`` matching ``where``.

        Returns:
            int: Number of rows deleted.

        Raises:
            NoWhereClauseError: If ``where`` is None.
        """
        if where is None:
            raise NoWhereClauseError("delete")

        stmt = (
            sql_delete(model)
            .where(where.to_sql())
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            deleted = session.execute(stmt).rowcount

        logger.info(
            "Deleted {} {} instance(s) where {}", deleted, model.__name__, where.query
        )
        return deleted


class BaseRepository[T: Base]:
    """A :class:`Repository` bound to one model class.

    Args:
        repository: The shared generic repository.
        model_class: The mapped class this repository manages.

    Example:
        class PostRepository(BaseRepository[Post]):
            def __init__(self, repository: Repository) -> None:
                super().__init__(repository, Post)
    """

    def __init__(self, repository: Repository, model_class: type[T]) -> None:
        self.repository = repository
        self.model_class = model_class

    def find(self, where: WhereClause | None) -> T:
        """Load the first row matching ``where``."""
        return self.repository.find(self.model_class, where)

    def find_all(self, where: WhereClause | None = None) -> list[T]:
        """Load every row, scoped by ``where`` when given."""
        return self.repository.find_all(self.model_class, where)

    def find_all_paginated(
        self, page: int, page_size: int, where: WhereClause | None = None
    ) -> PaginatedResult[T]:
        """Load one page of rows with navigation metadata."""
        return self.repository.find_all_paginated(
            self.model_class, page, page_size, where
        )

    def create(self, instance: T) -> T:
        """Insert ``instance`` and reload it with generated values."""
        return self.repository.create(instance)

    def update(
        self, updates: UpdateValues, entity_id: Any, where: WhereClause | None
    ) -> T:
        """Apply ``updates`` to the row with primary key ``entity_id``."""
        return self.repository.update(self.model_class, updates, entity_id, where)

    def delete(self, where: WhereClause | None) -> int:
        """Delete every row matching ``where``."""
        return self.repository.delete(self.model_class, where)
