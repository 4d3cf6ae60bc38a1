"""Policy rule table definition and DDL helpers."""

from __future__ import annotations

import re
from typing import Optional

from sqlalchemy import BigInteger, Column, DateTime, Integer, MetaData, String, Table, delete, func
from sqlalchemy.schema import CreateTable, DropTable
from sqlalchemy.sql.dml import Delete

from casbin_sql_store.config import DEFAULT_TABLE_NAME
from casbin_sql_store.exceptions import ConfigurationError

# p_type plus v0..v5
MAX_RULE_FIELDS = 6
VALUE_COLUMNS = tuple(f"v{index}" for index in range(MAX_RULE_FIELDS))

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def resolve_table_name(table_name: Optional[str] = None, prefix: Optional[str] = None) -> str:
    """Apply the default name and optional prefix, rejecting non-identifiers."""
    name = (table_name or "").strip() or DEFAULT_TABLE_NAME
    full_name = f"{(prefix or '').strip()}{name}"
    if not _IDENTIFIER.match(full_name):
        raise ConfigurationError(f"invalid policy table name: {full_name!r}")
    return full_name


def build_rule_table(name: str, metadata: Optional[MetaData] = None) -> Table:
    """Describe the policy rule table as a SQLAlchemy Core table."""
    metadata = metadata if metadata is not None else MetaData()
    return Table(
        name,
        metadata,
        # SQLite only auto-increments INTEGER PRIMARY KEY columns
        Column(
            "id",
            BigInteger().with_variant(Integer, "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        Column("p_type", String(10), nullable=True),
        *(Column(column, String(256), nullable=True) for column in VALUE_COLUMNS),
        Column("created_at", DateTime(), server_default=func.now(), nullable=True),
    )


def create_table_ddl(table: Table) -> CreateTable:
    return CreateTable(table, if_not_exists=True)


def drop_table_ddl(table: Table) -> DropTable:
    return DropTable(table, if_exists=True)


def truncate_statement(table: Table) -> Delete:
    """Remove every row without leaving the surrounding transaction.

    TRUNCATE commits implicitly on several backends, so an unqualified
    DELETE is used instead.
    """
    return delete(table)


__all__ = [
    "MAX_RULE_FIELDS",
    "VALUE_COLUMNS",
    "build_rule_table",
    "create_table_ddl",
    "drop_table_ddl",
    "resolve_table_name",
    "truncate_statement",
]
