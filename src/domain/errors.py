"""Error types raised by the persistence core.

Store failures are not wrapped: sqlalchemy.exc.SQLAlchemyError reaches the
caller unmodified.  A missing row is never an error; reads return None.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Root of the errors defined here."""


class InvalidQueryError(PersistenceError, TypeError):
    """A query descriptor was not a QueryModel instance."""


class TransactionAborted(PersistenceError):
    """A batch mutation failed and its transaction was rolled back.

    The store error that caused the rollback is chained as __cause__.
    """

    def __init__(self, operation: str, size: int) -> None:
        super().__init__(f"{operation} of {size} rows rolled back")
        self.operation = operation
        self.size = size
