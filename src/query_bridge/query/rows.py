"""Row extraction: turn fetched rows into JSON-compatible records."""

from __future__ import annotations

import math
from collections.abc import Sequence

from query_bridge.query.models import (
    CellExtractionError,
    ColumnCategory,
    ColumnDescriptor,
    Record,
)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _to_float(value: object) -> float | None:
    result = float(value)  # type: ignore[arg-type]
    # JSON has no NaN or Infinity.
    if not math.isfinite(result):
        return None
    return result


def _to_int(value: object) -> int:
    result = int(value)  # type: ignore[call-overload]
    if not INT64_MIN <= result <= INT64_MAX:
        raise OverflowError(f"{result} does not fit in a 64-bit signed integer")
    return result


def _to_text(value: object) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex().upper()
    return str(value)


_EXTRACTORS = {
    ColumnCategory.FLOAT: _to_float,
    ColumnCategory.INT: _to_int,
    ColumnCategory.STRING: _to_text,
}


def extract_value(value: object, category: ColumnCategory) -> object:
    """Convert one cell to the JSON value for its column category.

    SQL NULL is returned as None in every category.

    Raises:
        CellExtractionError: If the value cannot be converted.
    """
    if value is None:
        return None
    try:
        return _EXTRACTORS[category](value)
    except (ValueError, TypeError, OverflowError, ArithmeticError) as e:
        raise CellExtractionError(str(e)) from e


def extract_record(row: Sequence[object], columns: Sequence[ColumnDescriptor]) -> Record:
    """Build a record from one fetched row.

    Args:
        row: Positional cell values as returned by ``cursor.fetchone()``.
        columns: Descriptors aligned with the row positions.

    Returns:
        Mapping of column name to JSON value. A later column with a
        duplicate name overwrites an earlier one.

    Raises:
        CellExtractionError: If the row does not match the described columns
            or any cell fails to convert. No partial record is returned.
    """
    try:
        width = len(row)
    except TypeError as e:
        raise CellExtractionError(f"row is not a sequence: {e}") from e
    if width != len(columns):
        raise CellExtractionError(
            f"row has {width} values but {len(columns)} columns were described"
        )

    record: Record = {}
    for index, column in enumerate(columns):
        record[column.name] = extract_value(row[index], column.category)
    return record
