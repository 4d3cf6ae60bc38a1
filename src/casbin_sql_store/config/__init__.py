"""
Configuration module for casbin-sql-store.
"""

from casbin_sql_store.config.settings import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TABLE_NAME,
    Settings,
    settings,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_TABLE_NAME",
    "Settings",
    "settings",
]
