"""
Module: labor_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the UUID primary key convention, the type annotation map for
    consistent column types, and the TrackedBase mixin for audit columns.
Architecture position: Kernel > DB.  Lowest-level import target; every
    model module imports from here.  MUST NOT import from outer packages.

Invariants enforced:
    - UUID primary keys stored as String(36) on every backend.
    - Monetary amounts map Decimal -> Numeric(18, 2); never float.
    - Timestamps are timezone-aware DateTime columns.
    - TrackedBase records who created and last changed each row.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Converts UUID -> str on bind and str -> UUID on load.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - ``id`` defaults to a uuid4 value unless the caller assigns one
          (reporting events assign deterministic ids).
        - Decimal maps to Numeric(18, 2).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set by the server on INSERT.
        - updated_at is refreshed on every UPDATE.
        - created_by_id is required; updated_by_id is set by mutating services.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
