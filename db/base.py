"""
db/base.py

Declarative base for the catalog database and the timestamp columns every
catalog table carries.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Base for catalog ORM models. ``main.build_catalog_store`` creates every
    table registered here with ``Base.metadata.create_all``.
    """


class TimestampMixin:
    """
    created_at is set by the database on insert. updated_at moves on every
    UPDATE, including sync runs that only touch a ``*_synced_at`` column.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
