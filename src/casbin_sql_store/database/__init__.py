"""Policy table schema and engine helpers."""

from .schema import (
    MAX_RULE_FIELDS,
    VALUE_COLUMNS,
    build_rule_table,
    create_table_ddl,
    drop_table_ddl,
    resolve_table_name,
    truncate_statement,
)
from .session import create_async_engine_from_url, create_sync_engine

__all__ = [
    "MAX_RULE_FIELDS",
    "VALUE_COLUMNS",
    "build_rule_table",
    "create_table_ddl",
    "drop_table_ddl",
    "resolve_table_name",
    "truncate_statement",
    "create_sync_engine",
    "create_async_engine_from_url",
]
