"""Column classification for query result sets.

Maps a driver's native column type tag onto one of the three JSON value
shapes a column is serialized as. The mapping is closed: any tag that is not
listed falls back to STRING.
"""

from __future__ import annotations

from collections.abc import Sequence

from query_bridge.observability import get_logger
from query_bridge.query.models import ColumnCategory, ColumnDescriptor

logger = get_logger(__name__)

UNKNOWN_COLUMN = "unknown"

NATIVE_TYPE_CATEGORIES: dict[str, ColumnCategory] = {
    "DOUBLE": ColumnCategory.FLOAT,
    "DOUBLE PRECISION": ColumnCategory.FLOAT,
    "REAL": ColumnCategory.FLOAT,
    "FLOAT": ColumnCategory.FLOAT,
    "FLOAT4": ColumnCategory.FLOAT,
    "FLOAT8": ColumnCategory.FLOAT,
    "DECIMAL": ColumnCategory.FLOAT,
    "NUMERIC": ColumnCategory.FLOAT,
    "INTEGER": ColumnCategory.INT,
    "INT": ColumnCategory.INT,
    "INT4": ColumnCategory.INT,
    "SMALLINT": ColumnCategory.INT,
    "INT2": ColumnCategory.INT,
}


def _normalize_type_tag(type_tag: object) -> str:
    """Reduce a type tag such as ``decimal(18, 3)`` to ``DECIMAL``."""
    return str(type_tag).split("(", 1)[0].strip().upper()


def classify_type(type_tag: object) -> ColumnCategory:
    """Classify a native column type tag.

    Args:
        type_tag: Type code from a DB-API cursor description. Anything with a
            string form is accepted; DuckDB reports e.g. ``INTEGER`` or
            ``DECIMAL(18,3)``.

    Returns:
        The category used to extract and serialize the column's values.
    """
    if type_tag is None:
        return ColumnCategory.STRING
    return NATIVE_TYPE_CATEGORIES.get(_normalize_type_tag(type_tag), ColumnCategory.STRING)


def describe_column(entry: Sequence[object]) -> ColumnDescriptor:
    """Build the descriptor for one cursor description entry.

    Entries whose name or type cannot be read still produce a descriptor,
    named ``unknown`` and classified as STRING.
    """
    try:
        name = entry[0]
        type_tag = entry[1]
    except (IndexError, TypeError, KeyError) as e:
        logger.debug("column_metadata_unavailable", error=str(e))
        return ColumnDescriptor(UNKNOWN_COLUMN, None, ColumnCategory.STRING)

    if name is None:
        name = UNKNOWN_COLUMN
    return ColumnDescriptor(str(name), type_tag, classify_type(type_tag))


def describe_columns(description: Sequence[Sequence[object]]) -> list[ColumnDescriptor]:
    """Describe every column of a result set.

    A DB-API description holds one entry per column at positions
    ``0..n-1``; each position is described exactly once, so the descriptor
    list lines up with the positional values of every fetched row.

    Args:
        description: ``cursor.description`` of an executed statement.

    Returns:
        Column descriptors in result-set order.
    """
    column_count = len(description)
    return [describe_column(description[index]) for index in range(column_count)]
