"""portfoliodash persistence layer.

Stores the holdings ledger and the refresh settings as JSON documents in a
single DuckDB key/value table. Each document is loaded once at startup and
rewritten in full on every change.
"""
