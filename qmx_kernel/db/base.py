"""
Module: qmx_kernel.db.base
Responsibility: Declarative base for the snapshot tables and the column type
    conventions they share.
Architecture position: Kernel > DB.  Lowest-level import target of the
    persistence collaborator.  MUST NOT import from stores/, services/ or
    domain/.

Invariants enforced:
    - Timestamps are stored and returned as timezone-aware UTC datetimes,
      including on SQLite, which drops tzinfo on its own.
    - Integer columns map to BigInteger so ids and amounts never overflow.
"""

from datetime import datetime, timezone
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalized to UTC.

    Guarantees:
        - process_bind_param: aware datetime -> UTC datetime.
        - process_result_value: naive values (SQLite) are read back as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Refusing to store naive datetime {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all snapshot tables."""

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        int: BigInteger,
    }
