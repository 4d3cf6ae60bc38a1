"""Statement builders shared by the sync and async adapters."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence

from loguru import logger
from sqlalchemy import Select, Table, and_, delete, insert, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.dml import Delete, Insert

from casbin_sql_store.config import Settings, settings as default_settings
from casbin_sql_store.database.schema import (
    build_rule_table,
    create_table_ddl,
    drop_table_ddl,
    resolve_table_name,
    truncate_statement,
)
from casbin_sql_store.exceptions import ConfigurationError, StorageError
from casbin_sql_store.rules import (
    Filter,
    append_rule,
    filter_conditions,
    rule_conditions,
    rule_values,
)


class RuleTable:
    """The policy table plus every statement the adapters issue against it."""

    def __init__(
        self,
        table_name: Optional[str] = None,
        *,
        table_prefix: Optional[str] = None,
        batch_size: Optional[int] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or default_settings
        self.name = resolve_table_name(
            table_name if table_name is not None else settings.table_name,
            table_prefix if table_prefix is not None else settings.table_prefix,
        )
        self.batch_size = batch_size if batch_size is not None else settings.batch_size
        if self.batch_size <= 0:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")
        self.table: Table = build_rule_table(self.name)

    @contextmanager
    def storage_errors(self, operation: str) -> Iterator[None]:
        """Re-raise database failures as StorageError tagged with the operation."""
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error(f"{operation} on table {self.name} failed: {exc}")
            raise StorageError(operation, self.name, str(exc)) from exc

    # DDL

    def create_ddl(self):
        return create_table_ddl(self.table)

    def drop_ddl(self):
        return drop_table_ddl(self.table)

    def truncate(self) -> Delete:
        return truncate_statement(self.table)

    # Reads

    def select_all(self) -> Select:
        return select(self.table).order_by(self.table.c.id.asc())

    def select_filtered(self, policy_filter: Filter) -> Select:
        return (
            select(self.table)
            .where(*filter_conditions(self.table, policy_filter))
            .order_by(self.table.c.id.asc())
        )

    def select_window(self, ptype: str, field_index: int, values: Sequence[str]) -> Select:
        return (
            select(self.table)
            .where(*rule_conditions(self.table, ptype, values, field_index))
            .order_by(self.table.c.id.asc())
        )

    def select_rule_ids(self, ptype: str, rule: Sequence[str]) -> Select:
        return select(self.table.c.id).where(*rule_conditions(self.table, ptype, rule))

    # Writes

    def insert(self) -> Insert:
        return insert(self.table)

    def delete_rule(self, ptype: str, rule: Sequence[str]) -> Delete:
        return delete(self.table).where(*rule_conditions(self.table, ptype, rule))

    def delete_any(self, ptype: str, rules: Iterable[Sequence[str]]) -> Delete:
        """Delete rows matching any of the rules."""
        clauses = [and_(*rule_conditions(self.table, ptype, rule)) for rule in rules]
        return delete(self.table).where(or_(*clauses))

    def delete_window(self, ptype: str, field_index: int, values: Sequence[str]) -> Delete:
        return delete(self.table).where(*rule_conditions(self.table, ptype, values, field_index))

    def delete_ids(self, ids: Sequence[Any]) -> Delete:
        return delete(self.table).where(self.table.c.id.in_(ids))

    # Model population

    def load_rows(self, model, rows: Iterable[Mapping[str, Any]]) -> int:
        loaded = 0
        for row in rows:
            if append_rule(model, row["p_type"] or "", rule_values(row)):
                loaded += 1
        return loaded

    @staticmethod
    def old_rules(rows: Iterable[Mapping[str, Any]]) -> List[List[str]]:
        return [rule_values(row) for row in rows]


__all__ = ["RuleTable"]
