from .postgres import PostgresAdapter
from .queries import PolicyQueries, Statement
from .bootstrap import create_pool, ensure_table

__all__ = ["PolicyQueries", "PostgresAdapter", "Statement", "create_pool", "ensure_table"]
