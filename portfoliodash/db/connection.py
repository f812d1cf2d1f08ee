"""DuckDB connection management for portfoliodash.

Handles database initialization, schema creation, and connection
lifecycle. The state database lives under the data directory::

    ~/.portfoliodash/
      data/
        state.duckdb

Set ``PORTFOLIODASH_DATA_DIR`` to move the data directory.

"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import duckdb

from portfoliodash.db.schema import ALL_TABLES

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def default_data_dir() -> Path:
    """Return the data directory, honouring ``PORTFOLIODASH_DATA_DIR``."""
    override = os.environ.get("PORTFOLIODASH_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".portfoliodash" / "data"


def get_connection(
    db_path: str | Path | None = None,
) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection.

    Args:
        db_path: Path to the .duckdb file. If None or ``":memory:"``,
            uses an in-memory database.

    Returns:
        Active DuckDB connection.

    """
    if db_path is None or str(db_path) == MEMORY_PATH:
        return duckdb.connect(MEMORY_PATH)

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path))


def init_state_db(
    db_path: str | Path | None = None,
) -> duckdb.DuckDBPyConnection:
    """Initialize the application state database with schema.

    Args:
        db_path: Path to the state.duckdb file.
            Defaults to <data dir>/state.duckdb.

    Returns:
        Initialized DuckDB connection.

    """
    if db_path is None:
        db_path = default_data_dir() / "state.duckdb"

    conn = get_connection(db_path)
    for ddl in ALL_TABLES:
        conn.execute(ddl)
    logger.info("State database initialized at %s", db_path)
    return conn


def init_memory_db() -> duckdb.DuckDBPyConnection:
    """Create an in-memory database with full schema.

    Useful for testing and ephemeral operations.

    Returns:
        In-memory DuckDB connection with all tables created.

    """
    conn = get_connection(None)
    for ddl in ALL_TABLES:
        conn.execute(ddl)
    return conn
