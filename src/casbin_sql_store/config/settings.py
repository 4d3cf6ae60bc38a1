"""
Configuration settings for casbin-sql-store.

Settings can be configured via environment variables or a .env file.
Explicit adapter arguments always win over these values.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_TABLE_NAME = "casbin_rule"
DEFAULT_BATCH_SIZE = 1000


class Settings(BaseSettings):
    # Using a plain dict for model_config to avoid ConfigDict typing/overload issues
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    debug: bool = Field(default=False, description="Enable debug logging", alias="DEBUG")

    # Database Settings
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy database URL used when no engine is supplied",
        alias="CASBIN_DATABASE_URL",
    )
    db_echo: bool = Field(
        default=False, description="Enable SQLAlchemy echo logging", alias="CASBIN_DB_ECHO"
    )
    sqlite_busy_timeout_seconds: int = Field(
        default=30,
        description="SQLite busy timeout (seconds) when the database is locked",
        alias="SQLITE_BUSY_TIMEOUT_SECONDS",
    )

    # Policy table Settings
    table_name: str = Field(
        default=DEFAULT_TABLE_NAME,
        description="Policy rule table name",
        alias="CASBIN_TABLE_NAME",
    )
    table_prefix: str = Field(
        default="", description="Prefix prepended to the table name", alias="CASBIN_TABLE_PREFIX"
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        description="Rows per INSERT batch for bulk writes",
        alias="CASBIN_BATCH_SIZE",
    )

    # logging
    log_file: Optional[str] = Field(default=None, description="Log file path", alias="LOG_FILE")
    log_level: str = Field(default="INFO", description="Log level", alias="LOG_LEVEL")

    @field_validator("table_name", mode="before")
    @classmethod
    def validate_table_name(cls, value):
        """Allow empty strings to fall back to the default table name."""
        if value is None:
            return DEFAULT_TABLE_NAME
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return DEFAULT_TABLE_NAME
        return value

    @field_validator("table_prefix", mode="before")
    @classmethod
    def strip_table_prefix(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("batch_size must be a positive integer")
        return value


settings = Settings()
