"""Persistence package.

Exports the relational gateway, the predicate composer, the repository
implementations and their factory, and the ORM column mixins.
"""

from src.infrastructure.persistence.gateway import Gateway
from src.infrastructure.persistence.models import IntIdMixin, TimestampMixin
from src.infrastructure.persistence.predicates import Predicate, QueryClause, compose
from src.infrastructure.persistence.repositories import (
    EntityCache,
    KeyBinding,
    SqlRepository,
    get_repository,
)

__all__ = [
    "Gateway",
    "Predicate",
    "QueryClause",
    "compose",
    "IntIdMixin",
    "TimestampMixin",
    "KeyBinding",
    "SqlRepository",
    "EntityCache",
    "get_repository",
]
