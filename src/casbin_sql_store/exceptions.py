"""
Adapter exceptions for casbin-sql-store.
"""

from __future__ import annotations

from typing import Optional


class AdapterError(Exception):
    """Base exception for the policy store adapter"""

    pass


class ConfigurationError(AdapterError):
    """Raised when an adapter cannot be constructed from the given inputs"""

    pass


class StorageError(AdapterError):
    """Raised when the database layer fails during an adapter operation"""

    def __init__(self, operation: str, table: Optional[str], message: str) -> None:
        self.operation = operation
        self.table = table
        super().__init__(f"{operation} on table '{table}' failed: {message}")


class ContractError(AdapterError):
    """Raised when the caller breaks the storage contract"""

    pass


class InvalidFilterError(ContractError):
    """Raised when a policy filter or field window cannot be interpreted"""

    pass


class LengthMismatchError(ContractError):
    """Raised when paired rule batches differ in length"""

    def __init__(self, old_count: int, new_count: int) -> None:
        self.old_count = old_count
        self.new_count = new_count
        super().__init__(
            f"old rules and new rules must have the same length ({old_count} != {new_count})"
        )
