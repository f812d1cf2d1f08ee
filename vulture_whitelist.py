"""Vulture whitelist: references that appear unused but are called dynamically.

Vulture scans for unreachable code.  Items listed here are known false
positives: entry points invoked by setuptools, pytest fixtures consumed
via dependency injection, dataclass lifecycle hooks, etc.

Usage:
    uv run vulture portfoliodash tests vulture_whitelist.py
"""

# ── Entry points (called by setuptools console_scripts, not imported) ──
from portfoliodash.main import main  # noqa: F401

# ── Pytest fixtures (injected by pytest, never called directly) ──
from tests.conftest import holdings_store  # noqa: F401
from tests.conftest import make_holding  # noqa: F401
from tests.conftest import settings_store  # noqa: F401

# ── Dataclass lifecycle hooks (called by @dataclass, not user code) ──
from portfoliodash.settings import Settings  # noqa: F401

Settings.__post_init__  # noqa: B018
