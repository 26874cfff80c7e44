"""Query API route for executing batches of SQL queries.

Provides:
- POST / - decode a JSON array of query strings, run them in order over one
  session, and return one result entry per query
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from query_bridge.models.query import BatchShapeError, QueryErrorEntry, parse_queries
from query_bridge.observability import get_logger
from query_bridge.query.engine import DuckDBEngine, get_engine
from query_bridge.query.executor import run_batch
from query_bridge.query.models import ConnectivityError, QueryError, QueryOutcome

router = APIRouter(tags=["query"])

logger = get_logger(__name__)


def render_outcome(outcome: QueryOutcome) -> list[dict[str, Any]]:
    """Render one outcome as its response entry."""
    if isinstance(outcome, QueryError):
        return [QueryErrorEntry(error=outcome.message).model_dump(by_alias=True)]
    return outcome.records


def _run_in_session(engine: DuckDBEngine, queries: list[str]) -> list[QueryOutcome]:
    """Open a session, run the batch on it, and close it."""
    with engine.session() as session:
        return run_batch(session, queries)


@router.post("/")
async def execute_batch(request: Request) -> Response:
    """Execute a batch of SQL queries.

    The body must be a JSON array of strings. Element i of the response is
    either the rows of query i or ``[{"Error": "<message>"}]``.

    Returns:
        200 with the JSON results; 400 if the body is not JSON; 500 if the
        body is not an array of strings or no session could be opened.
    """
    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError as e:
        return PlainTextResponse(str(e), status_code=400)

    # Shape errors are client errors but keep the 500 status existing clients expect.
    try:
        queries = parse_queries(payload)
    except BatchShapeError as e:
        return PlainTextResponse(str(e), status_code=500)

    if not queries:
        return JSONResponse([])

    engine = get_engine()
    try:
        outcomes = await asyncio.to_thread(_run_in_session, engine, queries)
    except ConnectivityError as e:
        logger.error("session_unavailable", error=str(e))
        return PlainTextResponse(str(e), status_code=500)

    return JSONResponse([render_outcome(outcome) for outcome in outcomes])
