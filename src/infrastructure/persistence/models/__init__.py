"""ORM column mixins for mapped entities."""

from .base import IntIdMixin, TimestampMixin, epoch_seconds

__all__ = [
    "IntIdMixin",
    "TimestampMixin",
    "epoch_seconds",
]
