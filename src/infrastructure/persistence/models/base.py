"""Column mixins shared by mapped entities.

IntIdMixin      — autoincrement integer primary key `id`
TimestampMixin  — `created_at` / `updated_at` as epoch seconds

Mix them into a Base subclass:

    class Device(IntIdMixin, TimestampMixin, Base):
        __tablename__ = "device"
        name: Mapped[str] = mapped_column(String(64))
"""

from __future__ import annotations

import time

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column


def epoch_seconds() -> int:
    return int(time.time())


class IntIdMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    """Creation and last-update time, maintained on insert and update."""

    created_at: Mapped[int] = mapped_column(BigInteger, default=epoch_seconds, nullable=False)
    updated_at: Mapped[int] = mapped_column(
        BigInteger, default=epoch_seconds, onupdate=epoch_seconds, nullable=False
    )
