"""DuckDB schema definitions for portfoliodash.

Contains DDL statements for the application state table:
- app_state: one JSON document per key (holdings ledger, settings)

"""

from __future__ import annotations

# ── Application State ──

CREATE_APP_STATE = """
CREATE TABLE IF NOT EXISTS app_state (
    key          VARCHAR PRIMARY KEY,
    value        VARCHAR NOT NULL,
    updated_at   TIMESTAMP DEFAULT current_timestamp
);
"""

# All DDL statements in creation order
ALL_TABLES: list[str] = [
    CREATE_APP_STATE,
]
