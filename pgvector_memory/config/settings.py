"""pgvector_memory.config.settings
================================
Runtime configuration for the **pgvector memory** storage backend.

This module provides a single `PostgresConfig` object powered by
`pydantic‑settings` (v2) that merges configuration from **environment
variables** and an optional **.env** file. The loading order (highest →
lowest priority):

1. Values passed via `PostgresConfig(...)` kwargs
2. Environment variables (``PGMEM_`` prefix)
3. ``.env`` file in the working directory (if present)
4. File‑secrets directory (Kubernetes‑style)

Structured values (``columns``, ``create_table_sql``) are read from the
environment as JSON, e.g.::

    PGMEM_COLUMNS='{"id": "pk", "embedding": "vec", "tags": "labels",
                    "content": "body", "payload": "meta"}'

The module also exposes helpers:

* `get_settings()` – cached accessor for the CLI and tests.
* `configure_logging()` – ``basicConfig`` plus `log_level_per_module`
  overrides for fine‑grained control.

Nothing here touches the network: `PostgresConfig.validate_config()` is
pure and is expected to run before the first connection is opened.

Usage
-----
```python
from pgvector_memory.config.settings import get_settings, configure_logging

config = get_settings().validate_config()
configure_logging(config)
```
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, PositiveFloat, PositiveInt, SecretStr, constr
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgvector_memory.core.schema import (
    COLUMN_CONTENT,
    COLUMN_EMBEDDING,
    COLUMN_ID,
    COLUMN_LAST_UPDATE,
    COLUMN_PAYLOAD,
    COLUMN_TAGS,
    REQUIRED_COLUMNS,
    SQL_PLACEHOLDER_TABLE_NAME,
    SQL_PLACEHOLDER_VECTOR_SIZE,
    validate_field_name,
    validate_schema_name,
    validate_table_comment,
    validate_table_name_prefix,
)
from pgvector_memory.utils.exceptions import ConfigurationError

__all__ = [
    "PostgresConfig",
    "get_settings",
    "configure_logging",
]

DEFAULT_SCHEMA = "public"
DEFAULT_TABLE_NAME_PREFIX = "km_"
DEFAULT_TABLE_COMMENT = "pgvector_memory_index"


def _default_columns() -> Dict[str, str]:
    return {
        COLUMN_ID: "id",
        COLUMN_EMBEDDING: "embedding",
        COLUMN_TAGS: "tags",
        COLUMN_CONTENT: "content",
        COLUMN_PAYLOAD: "payload",
        COLUMN_LAST_UPDATE: "last_update",
    }


# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------

_log_level_type = constr(pattern=r"^(CRITICAL|ERROR|WARNING|INFO|DEBUG|NOTSET)$", strip_whitespace=True)


class PostgresConfig(BaseSettings):
    """Postgres storage settings (validated & type‑safe)."""

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    connection_string: SecretStr = Field(
        SecretStr(""), description="libpq connection string or URL")
    pool_min_size: int = Field(1, ge=0, description="Connections kept open by the pool")
    pool_max_size: PositiveInt = Field(10, description="Upper bound of pooled connections")
    pool_timeout: PositiveFloat = Field(
        30.0, description="Seconds to wait for a free pooled connection")
    create_vector_extension: bool = Field(
        False, description="Run CREATE EXTENSION IF NOT EXISTS vector when the pool opens")

    # ------------------------------------------------------------------
    # Physical layout
    # ------------------------------------------------------------------
    schema_name: str = Field(DEFAULT_SCHEMA, description="Schema holding the index tables")
    table_name_prefix: str = Field(
        DEFAULT_TABLE_NAME_PREFIX,
        description="Mandatory prefix distinguishing index tables from others in the schema",
    )
    columns: Dict[str, str] = Field(
        default_factory=_default_columns,
        description="Logical column key → physical column name",
    )
    create_table_sql: Optional[List[str]] = Field(
        default=None,
        description=(
            "Custom CREATE TABLE statement, one line per item. Must contain "
            f"{SQL_PLACEHOLDER_TABLE_NAME} and {SQL_PLACEHOLDER_VECTOR_SIZE}."
        ),
    )

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------
    use_table_comment_filter: bool = Field(
        False, description="List only tables carrying `table_comment` instead of matching the prefix only")
    table_comment: str = Field(
        DEFAULT_TABLE_COMMENT, description="Marker comment written on tables created with the default DDL")

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: _log_level_type = Field(
        "INFO", description="Root log level")
    log_level_per_module: Dict[str, _log_level_type] | None = Field(
        default=None,
        description="Per‑module log levels, e.g. '{\"psycopg.pool\": \"WARNING\"}'.",
    )

    # ------------------------------------------------------------------
    # Pydantic settings config
    # ------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_prefix="PGMEM_",  # All env vars start with "PGMEM_"
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_config(self) -> "PostgresConfig":
        """Verify that the current state is valid; return ``self``.

        Raises :class:`ConfigurationError` for missing values and
        :class:`InvalidIdentifierError` for names that cannot be safely
        interpolated into SQL. No connection is attempted.
        """
        self.connection_string = SecretStr(self.connection_string.get_secret_value().strip())
        self.table_name_prefix = (self.table_name_prefix or "").strip()
        self.schema_name = (self.schema_name or "").strip()

        if not self.connection_string.get_secret_value():
            raise ConfigurationError("The connection string is empty.")

        if not self.table_name_prefix:
            raise ConfigurationError("The table name prefix is empty.")

        for key in REQUIRED_COLUMNS:
            if not (self.columns.get(key) or "").strip():
                raise ConfigurationError(
                    f"The column name for '{key}' is empty or missing.",
                    context={"column": key},
                )
        self.columns = {key: name.strip() for key, name in self.columns.items()}
        self.columns.setdefault(COLUMN_LAST_UPDATE, COLUMN_LAST_UPDATE)

        if self.create_table_sql:
            sql = self.custom_table_sql
            for placeholder in (SQL_PLACEHOLDER_TABLE_NAME, SQL_PLACEHOLDER_VECTOR_SIZE):
                if placeholder not in sql:
                    raise ConfigurationError(
                        f"The custom SQL to create tables is missing the {placeholder} placeholder.",
                        context={"placeholder": placeholder},
                    )

        validate_schema_name(self.schema_name)
        validate_table_name_prefix(self.table_name_prefix)
        validate_table_comment(self.table_comment)
        for name in self.columns.values():
            validate_field_name(name)

        return self

    @property
    def custom_table_sql(self) -> str:
        """Custom DDL template joined into a single script (empty if unset)."""
        if not self.create_table_sql:
            return ""
        return "\n".join(self.create_table_sql).strip()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> PostgresConfig:  # pragma: no cover
    """Return a cached `PostgresConfig` instance (singleton‑like)."""
    return PostgresConfig()


def configure_logging(settings: PostgresConfig | None = None) -> None:
    """Configure root logging and apply per‑module overrides.

    Call this once at process startup (the CLI does it for you).
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    # fine‑grained overrides
    if settings.log_level_per_module:
        for mod, lvl in settings.log_level_per_module.items():
            logging.getLogger(mod).setLevel(lvl)
