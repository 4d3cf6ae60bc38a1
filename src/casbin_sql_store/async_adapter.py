"""
Asynchronous Casbin adapter backed by a SQLAlchemy ``AsyncEngine``.

Mirrors :class:`casbin_sql_store.adapter.Adapter` for ``casbin.AsyncEnforcer``.
Cancelling the awaiting task cancels the database call and rolls back any
open transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

from casbin.persist.adapters.asyncio import AsyncAdapter as BaseAsyncAdapter
from loguru import logger

from casbin_sql_store.config import Settings, settings as default_settings
from casbin_sql_store.database.session import create_async_engine_from_url
from casbin_sql_store.exceptions import ConfigurationError, LengthMismatchError
from casbin_sql_store.rules import (
    build_rule_row,
    build_rule_rows,
    chunked,
    coerce_filter,
    iter_model_rules,
    validate_field_index,
)
from casbin_sql_store.store import RuleTable

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


class AsyncAdapter(BaseAsyncAdapter):
    """Async Casbin storage adapter.

    The constructor performs no I/O. Use :meth:`create` to also make sure the
    table exists, or call :meth:`create_table` yourself.
    """

    def __init__(
        self,
        engine: Optional[AsyncEngine] = None,
        database_url: Optional[str] = None,
        table_name: Optional[str] = None,
        *,
        table_prefix: Optional[str] = None,
        batch_size: Optional[int] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or default_settings
        self._rules = RuleTable(
            table_name,
            table_prefix=table_prefix,
            batch_size=batch_size,
            settings=settings,
        )
        self._owns_engine = engine is None
        if engine is None:
            url = database_url or settings.database_url
            if not url:
                raise ConfigurationError("an engine or a database URL is required")
            engine = create_async_engine_from_url(url, settings)
        self._engine = engine
        self._filtered = False

    @classmethod
    async def create(
        cls,
        engine: Optional[AsyncEngine] = None,
        database_url: Optional[str] = None,
        table_name: Optional[str] = None,
        **kwargs,
    ) -> "AsyncAdapter":
        """Build an adapter and ensure its table exists."""
        adapter = cls(engine, database_url, table_name, **kwargs)
        await adapter.create_table()
        return adapter

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def table_name(self) -> str:
        return self._rules.name

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()

    async def create_table(self) -> None:
        with self._rules.storage_errors("create_table"):
            async with self._engine.begin() as conn:
                await conn.execute(self._rules.create_ddl())
        logger.info(f"Policy table {self.table_name} is ready")

    async def drop_table(self) -> None:
        with self._rules.storage_errors("drop_table"):
            async with self._engine.begin() as conn:
                await conn.execute(self._rules.drop_ddl())
        logger.info(f"Policy table {self.table_name} dropped")

    async def load_policy(self, model) -> None:
        with self._rules.storage_errors("load_policy"):
            async with self._engine.connect() as conn:
                result = await conn.execute(self._rules.select_all())
                rows = result.mappings().all()
        loaded = self._rules.load_rows(model, rows)
        self._filtered = False
        logger.debug(f"Loaded {loaded} rules from {self.table_name}")

    async def load_filtered_policy(self, model, filter) -> None:
        policy_filter = coerce_filter(filter)
        with self._rules.storage_errors("load_filtered_policy"):
            async with self._engine.connect() as conn:
                result = await conn.execute(self._rules.select_filtered(policy_filter))
                rows = result.mappings().all()
        loaded = self._rules.load_rows(model, rows)
        self._filtered = True
        logger.debug(f"Loaded {loaded} filtered rules from {self.table_name}")

    def is_filtered(self) -> bool:
        return self._filtered

    async def _insert_rows(self, conn: AsyncConnection, rows) -> None:
        for batch in chunked(rows, self._rules.batch_size):
            await conn.execute(self._rules.insert(), list(batch))

    async def save_policy(self, model) -> bool:
        rows = [build_rule_row(ptype, rule) for ptype, rule in iter_model_rules(model)]
        with self._rules.storage_errors("save_policy"):
            async with self._engine.begin() as conn:
                await conn.execute(self._rules.truncate())
                await self._insert_rows(conn, rows)
        logger.info(f"Saved {len(rows)} rules to {self.table_name}")
        return True

    async def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        with self._rules.storage_errors("add_policy"):
            async with self._engine.begin() as conn:
                await conn.execute(self._rules.insert(), [build_rule_row(ptype, rule)])
        logger.debug(f"Added {ptype} rule {list(rule)}")
        return True

    async def add_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]) -> bool:
        if not rules:
            return True
        with self._rules.storage_errors("add_policies"):
            async with self._engine.begin() as conn:
                await self._insert_rows(conn, build_rule_rows(ptype, rules))
        logger.debug(f"Added {len(rules)} {ptype} rules")
        return True

    async def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        with self._rules.storage_errors("remove_policy"):
            async with self._engine.begin() as conn:
                result = await conn.execute(self._rules.delete_rule(ptype, rule))
        logger.debug(f"Removed {result.rowcount} {ptype} rows for {list(rule)}")
        return True

    async def remove_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]) -> bool:
        if not rules:
            return True
        with self._rules.storage_errors("remove_policies"):
            async with self._engine.begin() as conn:
                result = await conn.execute(self._rules.delete_any(ptype, rules))
        logger.debug(f"Removed {result.rowcount} {ptype} rows for {len(rules)} rules")
        return True

    async def remove_filtered_policy(
        self, sec: str, ptype: str, field_index: int, *field_values: str
    ) -> bool:
        validate_field_index(field_index)
        with self._rules.storage_errors("remove_filtered_policy"):
            async with self._engine.begin() as conn:
                result = await conn.execute(
                    self._rules.delete_window(ptype, field_index, field_values)
                )
        logger.debug(f"Removed {result.rowcount} {ptype} rows from field {field_index}")
        return True

    async def _replace(
        self,
        conn: AsyncConnection,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> int:
        # ids are collected for every old rule before the first write
        ids = set()
        new_rows = []
        for old_rule, new_rule in zip(old_rules, new_rules):
            result = await conn.execute(self._rules.select_rule_ids(ptype, old_rule))
            matched = result.scalars().all()
            if matched:
                ids.update(matched)
                new_rows.append(build_rule_row(ptype, new_rule))
        for batch in chunked(sorted(ids), self._rules.batch_size):
            await conn.execute(self._rules.delete_ids(list(batch)))
        await self._insert_rows(conn, new_rows)
        return len(ids)

    async def update_policy(
        self, sec: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]
    ) -> bool:
        with self._rules.storage_errors("update_policy"):
            async with self._engine.begin() as conn:
                replaced = await self._replace(conn, ptype, [old_rule], [new_rule])
        if not replaced:
            logger.debug(f"No {ptype} rows matched {list(old_rule)}, nothing updated")
        return True

    async def update_policies(
        self,
        sec: str,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> bool:
        if len(old_rules) != len(new_rules):
            raise LengthMismatchError(len(old_rules), len(new_rules))
        if not old_rules:
            return True
        with self._rules.storage_errors("update_policies"):
            async with self._engine.begin() as conn:
                replaced = await self._replace(conn, ptype, old_rules, new_rules)
        logger.debug(f"Updated {len(old_rules)} {ptype} rules, {replaced} rows replaced")
        return True

    async def update_filtered_policies(
        self,
        sec: str,
        ptype: str,
        new_rules: Sequence[Sequence[str]],
        field_index: int,
        *field_values: str,
    ) -> List[List[str]]:
        validate_field_index(field_index)
        new_rows = build_rule_rows(ptype, new_rules)
        with self._rules.storage_errors("update_filtered_policies"):
            async with self._engine.begin() as conn:
                result = await conn.execute(
                    self._rules.select_window(ptype, field_index, field_values)
                )
                old_rows = result.mappings().all()
                ids = [row["id"] for row in old_rows]
                for batch in chunked(ids, self._rules.batch_size):
                    await conn.execute(self._rules.delete_ids(list(batch)))
                await self._insert_rows(conn, new_rows)
        logger.debug(f"Replaced {len(old_rows)} {ptype} rules with {len(new_rows)}")
        return self._rules.old_rules(old_rows)


__all__ = ["AsyncAdapter"]
