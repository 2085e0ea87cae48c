"""SQL statement trace logging.

install_query_logging() hooks the engine's cursor events so every statement
is logged at DEBUG with its elapsed time, and every driver error at ERROR.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_START_KEY = "query_log_start"


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
    conn.info.setdefault(_START_KEY, []).append(time.perf_counter())


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
    started = conn.info[_START_KEY].pop()
    logger.debug("%s cost %.3fms", statement, (time.perf_counter() - started) * 1000)


def _handle_error(exception_context) -> None:  # type: ignore[no-untyped-def]
    conn = exception_context.connection
    if conn is not None and conn.info.get(_START_KEY):
        conn.info[_START_KEY].pop()
    logger.error(
        "%s failed: %s",
        exception_context.statement,
        exception_context.original_exception,
    )


def install_query_logging(engine: AsyncEngine) -> None:
    sync_engine = engine.sync_engine
    if event.contains(sync_engine, "before_cursor_execute", _before_cursor_execute):
        return
    event.listen(sync_engine, "before_cursor_execute", _before_cursor_execute)
    event.listen(sync_engine, "after_cursor_execute", _after_cursor_execute)
    event.listen(sync_engine, "handle_error", _handle_error)
