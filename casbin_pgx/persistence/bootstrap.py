"""
Pool creation and table provisioning.
"""

import asyncpg

from ..shared.config import AdapterSettings
from ..shared.logging import get_logger
from .queries import PolicyQueries

logger = get_logger("casbin_pgx.persistence.bootstrap")


async def create_pool(settings: AdapterSettings) -> asyncpg.Pool:
    """Create the asyncpg pool described by ``settings``."""
    pool = await asyncpg.create_pool(
        settings.dsn,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        command_timeout=settings.command_timeout
    )
    logger.info(
        "PostgreSQL pool created",
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size
    )
    return pool


async def ensure_table(pool, queries: PolicyQueries) -> None:
    """Create the policy table if it does not exist."""
    statement = queries.create_table()
    await pool.execute(statement.sql, *statement.args)
    logger.info("Policy table ensured", table=queries.table_name)
