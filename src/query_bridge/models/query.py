"""API models for batch query execution.

Provides Pydantic models for:
- Per-query error entries in the response body
- Plain-text error bodies returned before any query runs
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class QueryErrorEntry(BaseModel):
    """Error entry returned in place of rows for a failed query."""

    model_config = ConfigDict(populate_by_name=True)

    error: str = Field(
        ...,
        alias="Error",
        description="Error message describing why the query failed.",
    )


class BatchShapeError(ValueError):
    """Raised when a decoded request body is not a JSON array of strings."""

    pass


def parse_queries(payload: object) -> list[str]:
    """Extract the query list from a decoded request body.

    Args:
        payload: Decoded JSON value.

    Returns:
        The queries, in request order.

    Raises:
        BatchShapeError: If payload is not a list, or contains a non-string.
    """
    if not isinstance(payload, list):
        raise BatchShapeError("Not a JSON array")
    queries: list[str] = []
    for item in payload:
        if not isinstance(item, str):
            raise BatchShapeError("Not an array of strings")
        queries.append(item)
    return queries
