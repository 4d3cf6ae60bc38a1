"""
Synchronous Casbin adapter backed by a SQLAlchemy engine.

Every rule lives in one table (``casbin_rule`` unless configured otherwise).
Multi-statement operations run inside a single ``engine.begin()``
transaction so a failure leaves the table as it was.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from casbin import persist
from loguru import logger
from sqlalchemy.engine import Engine

from casbin_sql_store.config import Settings, settings as default_settings
from casbin_sql_store.database.session import create_sync_engine
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


class Adapter(persist.Adapter, persist.adapters.UpdateAdapter):
    """Casbin storage adapter for any database SQLAlchemy can reach."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        database_url: Optional[str] = None,
        table_name: Optional[str] = None,
        *,
        table_prefix: Optional[str] = None,
        batch_size: Optional[int] = None,
        create_table: bool = True,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Args:
            engine: existing engine; when given, ``database_url`` is ignored.
            database_url: SQLAlchemy URL, falls back to ``settings.database_url``.
            table_name: policy table name, ``casbin_rule`` when empty.
            table_prefix: prepended to the table name.
            batch_size: rows per INSERT batch for bulk writes.
            create_table: create the table if it does not exist yet.
            settings: configuration source for anything not passed explicitly.
        """
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
            engine = create_sync_engine(url, settings)
        self._engine = engine
        self._filtered = False

        if create_table:
            self.create_table()

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def table_name(self) -> str:
        return self._rules.name

    def close(self) -> None:
        """Dispose the engine if this adapter created it."""
        if self._owns_engine:
            self._engine.dispose()

    # ------------------------------------------------------------------
    # table lifecycle
    # ------------------------------------------------------------------

    def create_table(self) -> None:
        with self._rules.storage_errors("create_table"):
            with self._engine.begin() as conn:
                conn.execute(self._rules.create_ddl())
        logger.info(f"Policy table {self.table_name} is ready")

    def drop_table(self) -> None:
        with self._rules.storage_errors("drop_table"):
            with self._engine.begin() as conn:
                conn.execute(self._rules.drop_ddl())
        logger.info(f"Policy table {self.table_name} dropped")

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------

    def load_policy(self, model) -> None:
        """loads all policy rules from the storage."""
        with self._rules.storage_errors("load_policy"):
            with self._engine.connect() as conn:
                rows = conn.execute(self._rules.select_all()).mappings().all()
        loaded = self._rules.load_rows(model, rows)
        self._filtered = False
        logger.debug(f"Loaded {loaded} rules from {self.table_name}")

    def load_filtered_policy(self, model, filter) -> None:
        """loads only the policy rules that match the filter."""
        policy_filter = coerce_filter(filter)
        with self._rules.storage_errors("load_filtered_policy"):
            with self._engine.connect() as conn:
                rows = conn.execute(self._rules.select_filtered(policy_filter)).mappings().all()
        loaded = self._rules.load_rows(model, rows)
        self._filtered = True
        logger.debug(f"Loaded {loaded} filtered rules from {self.table_name}")

    def is_filtered(self) -> bool:
        return self._filtered

    # ------------------------------------------------------------------
    # writing
    # ------------------------------------------------------------------

    def save_policy(self, model) -> bool:
        """replaces every stored rule with the rules held by the model."""
        rows = [build_rule_row(ptype, rule) for ptype, rule in iter_model_rules(model)]
        with self._rules.storage_errors("save_policy"):
            with self._engine.begin() as conn:
                conn.execute(self._rules.truncate())
                for batch in chunked(rows, self._rules.batch_size):
                    conn.execute(self._rules.insert(), list(batch))
        logger.info(f"Saved {len(rows)} rules to {self.table_name}")
        return True

    def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        with self._rules.storage_errors("add_policy"):
            with self._engine.begin() as conn:
                conn.execute(self._rules.insert(), [build_rule_row(ptype, rule)])
        logger.debug(f"Added {ptype} rule {list(rule)}")
        return True

    def add_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]) -> bool:
        if not rules:
            return True
        rows = build_rule_rows(ptype, rules)
        with self._rules.storage_errors("add_policies"):
            with self._engine.begin() as conn:
                for batch in chunked(rows, self._rules.batch_size):
                    conn.execute(self._rules.insert(), list(batch))
        logger.debug(f"Added {len(rows)} {ptype} rules")
        return True

    def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        """removes matching rows; matching nothing is not an error."""
        with self._rules.storage_errors("remove_policy"):
            with self._engine.begin() as conn:
                result = conn.execute(self._rules.delete_rule(ptype, rule))
        logger.debug(f"Removed {result.rowcount} {ptype} rows for {list(rule)}")
        return True

    def remove_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]) -> bool:
        if not rules:
            return True
        with self._rules.storage_errors("remove_policies"):
            with self._engine.begin() as conn:
                result = conn.execute(self._rules.delete_any(ptype, rules))
        logger.debug(f"Removed {result.rowcount} {ptype} rows for {len(rules)} rules")
        return True

    def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> bool:
        validate_field_index(field_index)
        with self._rules.storage_errors("remove_filtered_policy"):
            with self._engine.begin() as conn:
                result = conn.execute(self._rules.delete_window(ptype, field_index, field_values))
        logger.debug(f"Removed {result.rowcount} {ptype} rows from field {field_index}")
        return True

    # ------------------------------------------------------------------
    # updating
    # ------------------------------------------------------------------

    def _replace(
        self,
        conn,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> int:
        """Swap each matched old rule for its new rule.

        Every old rule is resolved to row ids before anything is written, so a
        new rule that equals a later old rule is never deleted again. A new
        rule is only inserted when its old rule matched at least one row.
        """
        ids = set()
        new_rows = []
        for old_rule, new_rule in zip(old_rules, new_rules):
            matched = conn.execute(self._rules.select_rule_ids(ptype, old_rule)).scalars().all()
            if matched:
                ids.update(matched)
                new_rows.append(build_rule_row(ptype, new_rule))
        for batch in chunked(sorted(ids), self._rules.batch_size):
            conn.execute(self._rules.delete_ids(list(batch)))
        for batch in chunked(new_rows, self._rules.batch_size):
            conn.execute(self._rules.insert(), list(batch))
        return len(ids)

    def update_policy(self, sec: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]) -> bool:
        """replaces the rows matching old_rule with new_rule."""
        with self._rules.storage_errors("update_policy"):
            with self._engine.begin() as conn:
                replaced = self._replace(conn, ptype, [old_rule], [new_rule])
        if not replaced:
            logger.debug(f"No {ptype} rows matched {list(old_rule)}, nothing updated")
        return True

    def update_policies(
        self,
        sec: str,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> bool:
        """replaces each old rule with its counterpart, all in one transaction."""
        if len(old_rules) != len(new_rules):
            raise LengthMismatchError(len(old_rules), len(new_rules))
        if not old_rules:
            return True
        with self._rules.storage_errors("update_policies"):
            with self._engine.begin() as conn:
                replaced = self._replace(conn, ptype, old_rules, new_rules)
        logger.debug(f"Updated {len(old_rules)} {ptype} rules, {replaced} rows replaced")
        return True

    def update_filtered_policies(
        self,
        sec: str,
        ptype: str,
        new_rules: Sequence[Sequence[str]],
        field_index: int,
        *field_values: str,
    ) -> List[List[str]]:
        """swaps the rules matching the field window for new_rules and returns the old ones."""
        validate_field_index(field_index)
        new_rows = build_rule_rows(ptype, new_rules)
        with self._rules.storage_errors("update_filtered_policies"):
            with self._engine.begin() as conn:
                old_rows = (
                    conn.execute(self._rules.select_window(ptype, field_index, field_values))
                    .mappings()
                    .all()
                )
                ids = [row["id"] for row in old_rows]
                for batch in chunked(ids, self._rules.batch_size):
                    conn.execute(self._rules.delete_ids(list(batch)))
                for batch in chunked(new_rows, self._rules.batch_size):
                    conn.execute(self._rules.insert(), list(batch))
        logger.debug(f"Replaced {len(old_rows)} {ptype} rules with {len(new_rows)}")
        return self._rules.old_rules(old_rows)


__all__ = ["Adapter"]
