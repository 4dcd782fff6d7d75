"""Declarative base classes for models stored through a Repository.

Models derive from :class:`Base` when they declare their own primary key,
or from :class:`BaseModel` for a generated integer id plus ``created_at``
and ``updated_at`` columns filled in by the database.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sqlrepo.infrastructure.constants import NAMING_CONVENTION

# SQLite only autoincrements an INTEGER PRIMARY KEY
_ID_TYPE = BigInteger().with_variant(Integer(), "sqlite")


def _timestamp_column(*, on_update: bool, doc: str) -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now() if on_update else None,
        doc=doc,
    )


class Base(DeclarativeBase):
    """Declarative base whose constraints are named by NAMING_CONVENTION."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class BaseModel(Base):
    """Abstract model with a generated id and row timestamps."""

    __abstract__ = True

    id: Mapped[int] = mapped_column(
        _ID_TYPE, primary_key=True, autoincrement=True, doc="Generated row id"
    )
    created_at: Mapped[datetime] = _timestamp_column(
        on_update=False, doc="Set by the database on insert"
    )
    updated_at: Mapped[datetime] = _timestamp_column(
        on_update=True, doc="Refreshed on every ORM update"
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id})>"
