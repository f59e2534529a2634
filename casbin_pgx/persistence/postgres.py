"""
PostgreSQL policy adapter for Casbin.

Every multi-statement operation runs inside one transaction, so a failed
batch leaves the table exactly as it was. The adapter adds no locking,
retries or timeouts of its own; concurrent writers are isolated by
PostgreSQL, and of two concurrent ``save_policy`` calls the last to
commit wins.
"""

from typing import Any, Callable, Iterable, List, Optional, Sequence

from casbin import persist
from casbin.persist.adapters.asyncio import AsyncAdapter

from ..rules import codec
from ..rules.filters import Predicate, build_predicate
from ..rules.identity import Hasher, blake2b_128
from ..rules.models import CasbinRule, Filter, Rule, SECTIONS
from ..shared.config import AdapterSettings, DEFAULT_TABLE_NAME
from ..shared.errors import InvalidFilterError, RuleValidationError
from ..shared.logging import configure_logging, get_logger
from ..shared.metrics import observe_operation
from .bootstrap import create_pool, ensure_table
from .queries import PolicyQueries, Statement

# Feeds one policy line into the model, e.g. casbin.persist.load_policy_line
LineLoader = Callable[[str, Any], None]


class PostgresAdapter(AsyncAdapter):
    """Casbin adapter storing policy rules in one PostgreSQL table.

    Args:
        pool: asyncpg pool (or anything exposing ``acquire()``,
            ``execute()`` and ``fetch()`` the same way).
        table_name: policy table, created by :func:`ensure_table`.
        line_loader: callback that adds a policy line to the model.
        hasher: content hash used to compute row ids.
        fetch_batch_size: rows prefetched per round trip while scanning.
    """

    def __init__(
        self,
        pool,
        table_name: str = DEFAULT_TABLE_NAME,
        line_loader: Optional[LineLoader] = None,
        hasher: Hasher = blake2b_128,
        fetch_batch_size: int = 500,
    ):
        self.queries = PolicyQueries(table_name)
        self.table_name = table_name
        self.logger = get_logger("casbin_pgx.persistence.postgres")
        self._pool = pool
        self._owns_pool = False
        self._line_loader = line_loader or persist.load_policy_line
        self._hasher = hasher
        self._fetch_batch_size = fetch_batch_size
        self._filtered = False

    @classmethod
    async def from_settings(cls, settings: Optional[AdapterSettings] = None, **kwargs) -> "PostgresAdapter":
        """Create a pool from settings and return an adapter that owns it."""
        settings = settings or AdapterSettings()
        configure_logging(settings.log_level, settings.log_format)
        pool = await create_pool(settings)
        adapter = cls(
            pool,
            table_name=settings.table_name,
            fetch_batch_size=settings.fetch_batch_size,
            **kwargs
        )
        adapter._owns_pool = True
        if not settings.skip_table_create:
            try:
                await ensure_table(pool, adapter.queries)
            except Exception:
                await pool.close()
                raise
        return adapter

    async def close(self):
        """Close the pool if this adapter created it."""
        if self._owns_pool and self._pool is not None:
            await self._pool.close()
            self._pool = None
            self.logger.info("PostgreSQL pool closed", table=self.table_name)

    def _row(self, ptype: str, values: Sequence[str]) -> CasbinRule:
        return codec.encode(Rule.of(ptype, values), self._hasher)

    # Loading

    @observe_operation("load_policy")
    async def load_policy(self, model):
        """Load every stored rule into the model."""
        await self._load_all(model)

    @observe_operation("load_filtered_policy")
    async def load_filtered_policy(self, model, filter=None):
        """Load only the rules matching ``filter``; ``None`` loads everything."""
        if filter is None:
            return await self._load_all(model)
        filter_ = Filter.coerce(filter)
        if filter_ is None:
            raise InvalidFilterError(
                "filter must be a Filter or have P and G attributes",
                details={"type": type(filter).__name__}
            )

        statements = [
            self.queries.select_matching(build_predicate(values).for_ptype(section))
            for section, values in filter_.sections()
        ]
        count = await self._load(model, statements)
        self._filtered = True
        self.logger.info("Filtered policy loaded", table=self.table_name, rows=count)

    def is_filtered(self) -> bool:
        return self._filtered

    async def _load_all(self, model):
        count = await self._load(model, [self.queries.select_all()])
        self._filtered = False
        self.logger.info("Policy loaded", table=self.table_name, rows=count)

    async def _load(self, model, statements: Iterable[Statement]) -> int:
        # One read transaction gives every scan the same snapshot
        count = 0
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for statement in statements:
                    cursor = conn.cursor(
                        statement.sql, *statement.args, prefetch=self._fetch_batch_size
                    )
                    async for record in cursor:
                        self._line_loader(codec.to_line(codec.from_record(record)), model)
                        count += 1
        return count

    # Saving

    @observe_operation("save_policy")
    async def save_policy(self, model) -> bool:
        """Replace the table contents with the rules held by the model."""
        rows = [
            self._row(ptype, rule)
            for sec in SECTIONS
            if sec in model.model
            for ptype, assertion in model.model[sec].items()
            for rule in assertion.policy
        ]

        async with self._pool.acquire() as conn:
            async with conn.transaction():
                statement = self.queries.delete_all()
                await conn.execute(statement.sql, *statement.args)
                for row in rows:
                    statement = self.queries.insert_ignore(row)
                    await conn.execute(statement.sql, *statement.args)

        self.logger.info("Policy saved", table=self.table_name, rules=len(rows))
        return True

    @observe_operation("add_policy")
    async def add_policy(self, sec: str, ptype: str, rule: List[str]) -> bool:
        """Add one rule; adding a rule that is already stored is a no-op."""
        statement = self.queries.insert_ignore(self._row(ptype, rule))
        await self._pool.execute(statement.sql, *statement.args)
        return True

    @observe_operation("add_policies")
    async def add_policies(self, sec: str, ptype: str, rules: List[List[str]]) -> bool:
        rows = [self._row(ptype, rule) for rule in rules]
        await self._execute_batch([self.queries.insert_ignore(row) for row in rows])
        self.logger.info("Policies added", table=self.table_name, ptype=ptype, rules=len(rows))
        return True

    # Removal

    @observe_operation("remove_policy")
    async def remove_policy(self, sec: str, ptype: str, rule: List[str]) -> bool:
        """Remove one rule; removing a rule that is not stored succeeds."""
        statement = self.queries.delete_by_id(self._row(ptype, rule).id)
        await self._pool.execute(statement.sql, *statement.args)
        return True

    @observe_operation("remove_policies")
    async def remove_policies(self, sec: str, ptype: str, rules: List[List[str]]) -> bool:
        rows = [self._row(ptype, rule) for rule in rules]
        await self._execute_batch([self.queries.delete_by_id(row.id) for row in rows])
        self.logger.info("Policies removed", table=self.table_name, ptype=ptype, rules=len(rows))
        return True

    @observe_operation("remove_filtered_policy")
    async def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> bool:
        """Remove the ``ptype`` rules whose values match ``field_values`` from ``field_index`` on."""
        predicate = build_predicate(list(field_values), field_index).for_ptype(ptype)
        statement = self.queries.delete_matching(predicate)
        status = await self._pool.execute(statement.sql, *statement.args)
        self.logger.info(
            "Filtered policies removed",
            table=self.table_name,
            ptype=ptype,
            field_index=field_index,
            status=status
        )
        return True

    # Updates

    @observe_operation("update_policy")
    async def update_policy(self, sec: str, ptype: str, old_rule: List[str], new_rule: List[str]) -> bool:
        return await self._update_policies(ptype, [old_rule], [new_rule])

    @observe_operation("update_policies")
    async def update_policies(
        self, sec: str, ptype: str, old_rules: List[List[str]], new_rules: List[List[str]]
    ) -> bool:
        """Rewrite the row of each old rule with the paired new rule.

        Only a row whose id equals the old rule's content id is changed.
        Its id is recomputed from the new content, and if that content is
        already stored the rewritten row merges into the existing one.
        """
        return await self._update_policies(ptype, old_rules, new_rules)

    async def _update_policies(
        self, ptype: str, old_rules: List[List[str]], new_rules: List[List[str]]
    ) -> bool:
        if len(old_rules) != len(new_rules):
            raise RuleValidationError(
                "old and new rule batches differ in length",
                details={"old": len(old_rules), "new": len(new_rules)}
            )
        pairs = [
            (self._row(ptype, old), self._row(ptype, new))
            for old, new in zip(old_rules, new_rules)
        ]

        updated = 0
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for old_row, new_row in pairs:
                    statement = self.queries.delete_by_id(old_row.id, returning=True)
                    if not await conn.fetch(statement.sql, *statement.args):
                        continue
                    statement = self.queries.insert_ignore(new_row)
                    await conn.execute(statement.sql, *statement.args)
                    updated += 1

        self.logger.info("Policies updated", table=self.table_name, ptype=ptype, rules=updated)
        return True

    @observe_operation("update_filtered_policies")
    async def update_filtered_policies(
        self, sec: str, ptype: str, new_rules: List[List[str]], field_index: int, *field_values: str
    ) -> List[List[str]]:
        """Replace the rules matching the filter with ``new_rules``.

        Returns:
            The values of the rules that were replaced.
        """
        predicate = build_predicate(list(field_values), field_index).for_ptype(ptype)
        new_rows = [self._row(ptype, rule) for rule in new_rules]
        if not new_rows:
            return []

        async with self._pool.acquire() as conn:
            async with conn.transaction():
                old_rows = await self._delete_returning(conn, predicate)
                for row in new_rows:
                    statement = self.queries.insert_ignore(row)
                    await conn.execute(statement.sql, *statement.args)

        self.logger.info(
            "Filtered policies updated",
            table=self.table_name,
            ptype=ptype,
            replaced=len(old_rows),
            rules=len(new_rows)
        )
        return [list(codec.to_rule(row).values) for row in old_rows]

    async def _delete_returning(self, conn, predicate: Predicate) -> List[CasbinRule]:
        statement = self.queries.delete_matching(predicate, returning=True)
        records = await conn.fetch(statement.sql, *statement.args)
        return [codec.from_record(record) for record in records]

    async def _execute_batch(self, statements: List[Statement]):
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for statement in statements:
                    await conn.execute(statement.sql, *statement.args)
