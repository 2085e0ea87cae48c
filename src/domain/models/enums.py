"""Domain enumerations for query descriptors.

String-valued so they compare equal to the raw tag text.
"""

from enum import Enum


class QueryOperator(str, Enum):
    """Operators accepted in a gq tag.

    The ordering operators keep their established SQL rendering, which reads
    inverted against the tag name: gt renders "<", gte "<=", lt ">", lte ">=".
    Existing descriptors depend on it.
    """

    EQ = "eq"
    NEQ = "neq"
    LIKE = "like"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"

    @property
    def sql(self) -> str:
        return {
            QueryOperator.EQ: "=",
            QueryOperator.NEQ: "!=",
            QueryOperator.LIKE: "LIKE",
            QueryOperator.GT: "<",
            QueryOperator.GTE: "<=",
            QueryOperator.LT: ">",
            QueryOperator.LTE: ">=",
        }[self]
