"""
casbin-sql-store - SQLAlchemy storage adapter for Casbin.

Stores Casbin policy and grouping rules in a single relational table and
implements the filtered, batch and update adapter contracts.
"""

from casbin_sql_store.__version__ import __version__, get_version
from casbin_sql_store.adapter import Adapter
from casbin_sql_store.async_adapter import AsyncAdapter
from casbin_sql_store.exceptions import (
    AdapterError,
    ConfigurationError,
    ContractError,
    InvalidFilterError,
    LengthMismatchError,
    StorageError,
)
from casbin_sql_store.rules import Filter

__all__ = [
    "__version__",
    "get_version",
    "Adapter",
    "AsyncAdapter",
    "Filter",
    "AdapterError",
    "ConfigurationError",
    "ContractError",
    "InvalidFilterError",
    "LengthMismatchError",
    "StorageError",
]
