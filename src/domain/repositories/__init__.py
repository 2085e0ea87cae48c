"""Domain repository interfaces.

Repository is the CRUD/query surface shared by the uncached facade and the
entity cache; CachedRepository adds the in-memory operations only a cache
can answer.  SQLAlchemy implementations live in
src/infrastructure/persistence/repositories/.
"""

from .base import Query, Repository, Where
from .cache import CachedRepository

__all__ = [
    "Query",
    "Where",
    "Repository",
    "CachedRepository",
]
