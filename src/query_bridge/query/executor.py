"""Query executor for running batches of SQL queries on one session.

Provides:
- Single query execution producing rows or an error outcome
- Batch execution preserving input order
- Per-query metrics and logging

Every failure below the request layer is turned into a QueryError outcome, so
a failing query never stops the rest of its batch.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Protocol

from query_bridge.observability import (
    get_logger,
    get_tracer,
    record_query_duration,
    record_query_rows,
)
from query_bridge.query.columns import describe_columns
from query_bridge.query.models import (
    CellExtractionError,
    QueryError,
    QueryOutcome,
    QueryRows,
    Record,
)
from query_bridge.query.rows import extract_record

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)


class Cursor(Protocol):
    """The part of a DB-API 2.0 cursor the executor relies on."""

    @property
    def description(self) -> Sequence[Sequence[Any]] | None: ...

    def execute(self, operation: str) -> Any: ...

    def fetchone(self) -> Sequence[Any] | None: ...

    def close(self) -> Any: ...


class Session(Protocol):
    """An open database session owned by one request, handing out DB-API 2.0 cursors."""

    def cursor(self) -> Cursor: ...


def _close_cursor(cursor: Cursor) -> None:
    try:
        cursor.close()
    except Exception as e:
        logger.warning("cursor_close_failed", error=str(e))


def _run_statement(cursor: Cursor, sql: str) -> QueryOutcome:
    """Execute, describe and fetch one statement on a prepared cursor."""
    try:
        cursor.execute(sql)
    except Exception as e:
        return QueryError(f"Can't execute query: {e}")

    try:
        description = cursor.description
        if description is None:
            return QueryRows([])
        columns = describe_columns(description)
    except Exception as e:
        return QueryError(f"Can't fetch results: {e}")

    records: list[Record] = []
    while True:
        try:
            row = cursor.fetchone()
        except Exception as e:
            return QueryError(f"Can't fetch results: {e}")
        if row is None:
            break
        try:
            records.append(extract_record(row, columns))
        except CellExtractionError as e:
            return QueryError(f"Can't fetch data: {e}")

    return QueryRows(records)


def execute_query(session: Session, sql: str) -> QueryOutcome:
    """Execute one query and collect its outcome.

    Args:
        session: Open session the query runs on.
        sql: Query text, executed as-is without parameter binding.

    Returns:
        QueryRows with every fetched record (empty when the statement
        produces no result set), or QueryError naming the failed stage.
    """
    try:
        cursor = session.cursor()
    except Exception as e:
        return QueryError(f"Can't prepare statement: {e}")

    try:
        return _run_statement(cursor, sql)
    finally:
        _close_cursor(cursor)


def run_batch(session: Session, queries: Sequence[str]) -> list[QueryOutcome]:
    """Execute queries in order over one session.

    Args:
        session: Open session shared by every query in the batch.
        queries: Query texts in request order.

    Returns:
        One outcome per query, in the same order. Empty if no queries were given.
    """
    if not queries:
        return []

    outcomes: list[QueryOutcome] = []
    with get_tracer().start_as_current_span("run_batch") as span:
        span.set_attribute("batch.size", len(queries))

        for index, sql in enumerate(queries):
            start = time.perf_counter()
            outcome = execute_query(session, sql)
            duration = time.perf_counter() - start

            record_query_duration(duration, outcome.status)
            if isinstance(outcome, QueryRows):
                record_query_rows(len(outcome.records))
                logger.debug(
                    "query_completed",
                    index=index,
                    rows=len(outcome.records),
                    duration_seconds=duration,
                )
            else:
                logger.warning("query_failed", index=index, error=outcome.message)

            outcomes.append(outcome)

        span.set_attribute(
            "batch.failed", sum(1 for o in outcomes if isinstance(o, QueryError))
        )

    return outcomes
