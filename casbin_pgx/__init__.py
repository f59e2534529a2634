"""
casbin-pgx: PostgreSQL (asyncpg) policy storage for Casbin.

Usage:
    adapter = await PostgresAdapter.from_settings()
    enforcer = casbin.AsyncEnforcer("rbac_model.conf", adapter)
    await enforcer.load_policy()

Row ids are 128-bit BLAKE2b digests of the rule content. They are not
byte-compatible with ids written by the Go adapter, which uses Meow hash;
a deployment sharing a table with it must pass a compatible ``hasher=``
to PostgresAdapter.
"""

from .persistence import PostgresAdapter
from .rules import Filter, Rule
from .shared.config import AdapterSettings, get_settings
from .shared.logging import configure_logging

__version__ = "1.0.0"

__all__ = [
    "AdapterSettings",
    "Filter",
    "PostgresAdapter",
    "Rule",
    "configure_logging",
    "get_settings",
]
