"""Models package for Query Bridge."""

from query_bridge.models.query import (
    BatchShapeError,
    QueryErrorEntry,
    parse_queries,
)

__all__ = [
    "BatchShapeError",
    "QueryErrorEntry",
    "parse_queries",
]
