"""DuckDB session engine.

Opens one database session per request:
- Connects using the configured connection string (DSN)
- Applies memory and thread limits from configuration
- Closes the session on every exit path
- Reports writes and DDL as statements without a result set
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import duckdb

from query_bridge.config import get_settings
from query_bridge.observability import get_logger
from query_bridge.query.models import ConnectivityError

if TYPE_CHECKING:
    from collections.abc import Generator

    from query_bridge.config import Settings

logger = get_logger(__name__)

# Statements DuckDB answers with a single status column instead of no result set.
_STATUS_ONLY_STATEMENTS = frozenset(
    {
        "INSERT",
        "UPDATE",
        "DELETE",
        "MERGE_INTO",
        "CREATE",
        "CREATE_FUNC",
        "DROP",
        "ALTER",
        "COPY",
        "ATTACH",
        "DETACH",
        "EXPORT",
        "LOAD",
        "SET",
        "VARIABLE_SET",
        "TRANSACTION",
        "VACUUM",
        "ANALYZE",
    }
)
_STATUS_COLUMNS = frozenset({"Count", "Success"})


def _statement_kind(sql: str) -> str | None:
    """Return the DuckDB statement type name of the last statement in ``sql``."""
    try:
        statements = duckdb.extract_statements(sql)
    except duckdb.Error:
        return None
    if not statements:
        return None
    return statements[-1].type.name


class DuckDBCursor:
    """Cursor over a DuckDB session connection.

    DuckDB reports an affected-row count or a success flag for writes and
    DDL where other drivers report no result set. Such results are exposed
    with a ``None`` description, so a write yields no records while
    ``INSERT ... RETURNING`` still yields its rows.
    """

    def __init__(self, connection: duckdb.DuckDBPyConnection) -> None:
        self._connection = connection
        self._sql: str | None = None

    @property
    def description(self) -> list[tuple[Any, ...]] | None:
        description = self._connection.description
        if description is None or self._sql is None:
            return description
        if len(description) == 1 and description[0][0] in _STATUS_COLUMNS:
            if _statement_kind(self._sql) in _STATUS_ONLY_STATEMENTS:
                return None
        return description

    def execute(self, operation: str) -> DuckDBCursor:
        self._sql = None
        self._connection.execute(operation)
        self._sql = operation
        return self

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._connection.fetchone()

    def close(self) -> None:
        # The connection belongs to the session and outlives the cursor.
        self._sql = None


class DuckDBSession:
    """One request's DuckDB connection.

    Every cursor runs on the same connection, so temporary tables,
    transactions and ``SET`` options carry over between queries of a batch.
    """

    def __init__(self, connection: duckdb.DuckDBPyConnection) -> None:
        self.connection = connection

    def cursor(self) -> DuckDBCursor:
        return DuckDBCursor(self.connection)

    def close(self) -> None:
        self.connection.close()


class DuckDBEngine:
    """Factory for per-request DuckDB sessions.

    Sessions are never pooled or shared: each call to :meth:`session` opens
    a fresh connection that belongs to the caller until the block exits.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the engine.

        Args:
            settings: Application settings. If None, uses cached settings.
        """
        self._settings = settings or get_settings()

    @property
    def dsn(self) -> str | None:
        """Get the configured connection string."""
        return self._settings.database.dsn

    @property
    def is_configured(self) -> bool:
        """Check if a connection string is configured."""
        return bool(self.dsn)

    def connect(self) -> duckdb.DuckDBPyConnection:
        """Open a new DuckDB connection with configured settings.

        Returns:
            Open DuckDB connection.

        Raises:
            ConnectivityError: If no DSN is configured or the connection fails.
        """
        if not self.dsn:
            raise ConnectivityError("Can't connect to database: no connection string configured")

        try:
            conn = duckdb.connect(self.dsn, read_only=self._settings.database.read_only)
        except duckdb.Error as e:
            raise ConnectivityError(f"Can't connect to database: {e}") from e

        duckdb_config = self._settings.duckdb
        try:
            conn.execute(f"SET memory_limit = '{duckdb_config.memory_limit}'")
            conn.execute(f"SET threads = {duckdb_config.threads}")
        except duckdb.Error as e:
            conn.close()
            raise ConnectivityError(f"Can't configure database session: {e}") from e

        return conn

    @contextmanager
    def session(self) -> Generator[DuckDBSession, None, None]:
        """Open a session for the duration of one request.

        Yields:
            Open session, closed when the block exits.

        Raises:
            ConnectivityError: If the session cannot be opened.
        """
        session = DuckDBSession(self.connect())
        logger.debug("session_opened", dsn=self.dsn)
        try:
            yield session
        finally:
            session.close()
            logger.debug("session_closed", dsn=self.dsn)


_engine: DuckDBEngine | None = None


def get_engine() -> DuckDBEngine:
    """Get the global DuckDB engine instance (cached).

    Returns:
        The global DuckDB engine.
    """
    global _engine
    if _engine is None:
        _engine = DuckDBEngine()
    return _engine


def reset_engine() -> None:
    """Reset the global engine (useful for testing)."""
    global _engine
    _engine = None
