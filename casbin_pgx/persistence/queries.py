"""
Parameterized SQL statements for the policy table.

The table name is the only text substituted into a statement, and it is
checked against the identifier grammar when the builder is created.
Every value travels as a bound parameter.
"""

from typing import Any, List, NamedTuple, Tuple

from ..rules.filters import Predicate
from ..rules.models import CasbinRule, ROW_COLUMNS
from ..shared.config import is_valid_table_name
from ..shared.errors import ConfigurationError

_COLUMN_LIST = ", ".join(ROW_COLUMNS)
_PLACEHOLDERS = ", ".join(f"${i}" for i in range(1, len(ROW_COLUMNS) + 1))


class Statement(NamedTuple):
    sql: str
    args: Tuple[Any, ...] = ()


class PolicyQueries:
    """Statement builder bound to one policy table."""

    def __init__(self, table_name: str):
        if not is_valid_table_name(table_name):
            raise ConfigurationError(
                f"invalid table name: {table_name!r}",
                details={"table_name": table_name}
            )
        self.table_name = table_name

    def create_table(self) -> Statement:
        return Statement(f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                id TEXT PRIMARY KEY,
                ptype TEXT,
                v0 TEXT,
                v1 TEXT,
                v2 TEXT,
                v3 TEXT,
                v4 TEXT,
                v5 TEXT
            )""")

    def select_all(self) -> Statement:
        return Statement(f"SELECT {_COLUMN_LIST} FROM {self.table_name}")

    def select_matching(self, predicate: Predicate) -> Statement:
        where, args = self._where(predicate)
        return Statement(f"SELECT {_COLUMN_LIST} FROM {self.table_name}{where}", args)

    def insert_ignore(self, row: CasbinRule) -> Statement:
        """Insert a row unless a row with the same content id exists."""
        return Statement(
            f"INSERT INTO {self.table_name} ({_COLUMN_LIST}) "
            f"VALUES ({_PLACEHOLDERS}) ON CONFLICT (id) DO NOTHING",
            row.as_args()
        )

    def delete_all(self) -> Statement:
        return Statement(f"DELETE FROM {self.table_name} WHERE id IS NOT NULL")

    def delete_by_id(self, row_id: str, returning: bool = False) -> Statement:
        sql = f"DELETE FROM {self.table_name} WHERE id = $1"
        if returning:
            sql += " RETURNING id"
        return Statement(sql, (row_id,))

    def delete_matching(self, predicate: Predicate, returning: bool = False) -> Statement:
        where, args = self._where(predicate)
        sql = f"DELETE FROM {self.table_name}{where}"
        if returning:
            sql += f" RETURNING {_COLUMN_LIST}"
        return Statement(sql, args)

    @staticmethod
    def _where(predicate: Predicate) -> Tuple[str, Tuple[Any, ...]]:
        clauses: List[str] = []
        args: List[Any] = []
        if predicate.ptype is not None:
            args.append(predicate.ptype)
            clauses.append(f"ptype = ${len(args)}")
        for column, value in predicate.conditions:
            args.append(value)
            clauses.append(f"{column} = ${len(args)}")
        if not clauses:
            return "", ()
        return " WHERE " + " AND ".join(clauses), tuple(args)
