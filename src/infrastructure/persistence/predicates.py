"""Translate query descriptors and pages into WHERE / LIMIT / ORDER BY.

compose() walks a QueryModel in field declaration order and produces a
conjunction of parameterised clauses, one per non-empty annotated field:

    eq    `C` = ?        neq   `C` != ?       like  `C` LIKE ?  (value %v%)
    gt    `C` < ?        gte   `C` <= ?       lt    `C` > ?       lte  `C` >= ?

C is the column given after "=" in the tag, else the field name.  Fields
holding None or "" are skipped, as are fields without a tag.  Nested
QueryModel values are flattened into the same conjunction.

The tag is read from an Annotated gq() marker or, failing that, from
Field(json_schema_extra={"gq": "..."}).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from sqlalchemy import bindparam, column, text
from sqlalchemy.orm import Mapper
from sqlalchemy.sql.elements import ColumnElement

from src.domain.errors import InvalidQueryError
from src.domain.models.enums import QueryOperator
from src.domain.models.query import GQ_TAG, GqTag, ListPage
from src.domain.repositories.base import Query, Where

from .gateway import is_empty


@dataclass(frozen=True)
class QueryClause:
    column: str
    operator: QueryOperator
    value: Any

    @property
    def sql(self) -> str:
        return f"`{self.column}` {self.operator.sql} ?"

    def to_expression(self) -> ColumnElement[bool]:
        """The clause as a SQL expression for the executing dialect.

        The column is quoted by the dialect and the value gets an anonymous
        bind, so clauses from several predicates can share a statement.
        """
        return column(self.column).op(self.operator.sql, is_comparison=True)(
            bindparam(None, self.value, unique=True)
        )


class Predicate:
    """A Where built from a descriptor; applies its clauses in order."""

    def __init__(self, clauses: Sequence[QueryClause]) -> None:
        self.clauses = list(clauses)

    def __call__(self, stmt: Any) -> Any:
        for clause in self.clauses:
            stmt = stmt.where(clause.to_expression())
        return stmt

    def __repr__(self) -> str:
        return f"Predicate({' AND '.join(c.sql for c in self.clauses)!r})"


def _field_tag(model: type[BaseModel], name: str) -> GqTag | None:
    info = model.model_fields[name]
    for meta in info.metadata:
        if isinstance(meta, GqTag):
            return meta
    extra = info.json_schema_extra
    if isinstance(extra, dict) and isinstance(extra.get(GQ_TAG), str):
        return GqTag.parse(extra[GQ_TAG])
    return None


def _collect(query: BaseModel, clauses: list[QueryClause]) -> None:
    model = type(query)
    for name in model.model_fields:
        value = getattr(query, name)
        if value is None:
            continue
        if isinstance(value, BaseModel):
            _collect(value, clauses)
            continue
        if is_empty(value):
            continue
        tag = _field_tag(model, name)
        if tag is None or tag.operator is None:
            continue
        if tag.operator is QueryOperator.LIKE:
            value = f"%{value}%"
        clauses.append(QueryClause(tag.column or name, tag.operator, value))


def compose(query: Any) -> Predicate:
    """Build the conjunctive predicate for a QueryModel instance."""
    if not isinstance(query, BaseModel):
        raise InvalidQueryError(
            f"query descriptor must be a QueryModel instance, got {type(query).__name__}"
        )
    clauses: list[QueryClause] = []
    _collect(query, clauses)
    return Predicate(clauses)


def as_where(query: Query) -> Where | None:
    """Normalise a descriptor, a Where callable, or None into a Where."""
    if query is None:
        return None
    if isinstance(query, BaseModel):
        return compose(query)
    if callable(query):
        return query
    raise InvalidQueryError(f"unsupported query type {type(query).__name__}")


def paginate(page: ListPage | None) -> Where:
    def _apply(stmt: Any) -> Any:
        if page is None:
            return stmt
        if page.offset:
            stmt = stmt.offset(page.offset)
        if page.count:
            stmt = stmt.limit(page.count)
        if page.order:
            stmt = stmt.order_by(text(page.order))
        return stmt

    return _apply


def chain(*wheres: Where | None) -> Where:
    def _apply(stmt: Any) -> Any:
        for where in wheres:
            if where is not None:
                stmt = where(stmt)
        return stmt

    return _apply


# ---------------------------------------------------------------------- #
# Primary-key predicates                                                   #
# ---------------------------------------------------------------------- #

def _single_pk(mapper: Mapper) -> Any:
    if len(mapper.primary_key) != 1:
        raise ValueError(
            f"{mapper.class_.__name__} has a composite primary key; "
            "pass explicit key predicates"
        )
    return mapper.primary_key[0]


def where_key_for(mapper: Mapper) -> Callable[[Any, Any], Any]:
    """Default single-key predicate builder: pk = k."""
    pk = _single_pk(mapper)

    def where_key(stmt: Any, key: Any) -> Any:
        return stmt.where(pk == key)

    return where_key


def where_keys_for(mapper: Mapper) -> Callable[[Any, Sequence[Any]], Any]:
    """Default key-set predicate builder: pk IN (ks)."""
    pk = _single_pk(mapper)

    def where_keys(stmt: Any, keys: Sequence[Any]) -> Any:
        return stmt.where(pk.in_(list(keys)))

    return where_keys


def key_of_for(mapper: Mapper) -> Callable[[Any], Any]:
    """Default key extractor: the single primary-key attribute."""
    attr = mapper.get_property_by_column(_single_pk(mapper)).key

    def key_of(entity: Any) -> Any:
        return getattr(entity, attr)

    return key_of
