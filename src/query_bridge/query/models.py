"""Data models for batch query execution.

Provides:
- Column categories and descriptors
- Per-query outcomes (rows or error)
- Exceptions raised below the request layer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Record = dict[str, Any]


class ColumnCategory(str, Enum):
    """JSON value shapes a result-set column is coerced into."""

    FLOAT = "float"
    INT = "int"
    STRING = "string"


@dataclass(frozen=True)
class ColumnDescriptor:
    """Metadata for one result-set column."""

    name: str
    type_tag: object
    category: ColumnCategory


@dataclass(frozen=True)
class QueryRows:
    """Successful outcome: the records produced by one query."""

    records: list[Record] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "rows"


@dataclass(frozen=True)
class QueryError:
    """Failed outcome: the message describing why one query failed."""

    message: str

    @property
    def status(self) -> str:
        return "error"


QueryOutcome = QueryRows | QueryError


class CellExtractionError(Exception):
    """Raised when a fetched row cannot be converted into a record."""

    pass


class ConnectivityError(Exception):
    """Raised when a database session cannot be opened."""

    pass
