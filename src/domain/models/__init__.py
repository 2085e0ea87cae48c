"""Domain model package.

Query descriptors, pagination input, and list results are pure Pydantic
models with no ORM or infrastructure dependencies.  Import from this package
to avoid coupling application code to individual module paths.
"""

from .enums import QueryOperator
from .query import GQ_TAG, GqTag, ListData, ListPage, QueryModel, gq

__all__ = [
    # enums
    "QueryOperator",
    # query descriptors
    "GQ_TAG",
    "GqTag",
    "QueryModel",
    "gq",
    # pagination
    "ListPage",
    "ListData",
]
