"""Query descriptor, pagination, and list-result models.

These are pure domain objects; translation into SQL lives in
src/infrastructure/persistence/predicates.py.

A query descriptor is a QueryModel whose fields carry a gq() marker:

    class ItemQuery(QueryModel):
        name: Annotated[str | None, gq("like")] = None
        min_score: Annotated[int | None, gq("gt=score")] = None

A field whose value is None or "" contributes nothing.  Nested QueryModel
fields are flattened into the same conjunction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .enums import QueryOperator

M = TypeVar("M")

GQ_TAG = "gq"


@dataclass(frozen=True)
class GqTag:
    """Parsed gq marker: an operator and an optional column override.

    operator is None when the tag names an operator that does not exist;
    such fields are ignored.
    """

    operator: QueryOperator | None
    column: str | None = None

    @classmethod
    def parse(cls, tag: str) -> GqTag:
        name, sep, column = tag.partition("=")
        try:
            operator = QueryOperator(name.strip())
        except ValueError:
            operator = None
        column = column.strip() if sep else ""
        return cls(operator=operator, column=column or None)


def gq(tag: str) -> GqTag:
    """Annotation marker for QueryModel fields, e.g. Annotated[int | None, gq("eq")]."""
    return GqTag.parse(tag)


class QueryModel(BaseModel):
    """Base class for query descriptors."""

    model_config = ConfigDict(frozen=True)


class ListPage(BaseModel):
    """Pagination input.

    offset — rows to skip; None or 0 means from the start
    count  — LIMIT; None means unbounded
    order  — free ORDER BY text, "column [desc]"; "" leaves order unspecified
    """

    model_config = ConfigDict(frozen=True)

    offset: int | None = Field(default=None, ge=0)
    count: int | None = Field(default=None, ge=1)
    order: str = ""


class ListData(BaseModel, Generic[M]):
    """One page of results plus the unpaginated match count."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    total: int = 0
    data: list[M] = Field(default_factory=list)
