# tables.py — index table lifecycle
#
# Version: 0.1
"""Existence check, creation, enumeration and deletion of index tables.

Identifier validation happens before a connection is borrowed, so a bad
index name never costs a round-trip.  Database failures propagate as
:class:`~pgvector_memory.utils.exceptions.DatabaseError`.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional

from pgvector_memory.core.schema import PostgresSchema

if TYPE_CHECKING:  # pragma: no cover
    from pgvector_memory.utils.db import ConnectionProvider

__all__ = ["TableManager"]

log = logging.getLogger(__name__)

_SQL_TABLE_EXISTS = """
    SELECT table_name
    FROM information_schema.tables
        WHERE table_schema = %(schema)s
            AND table_name = %(table)s
            AND table_type = 'BASE TABLE'
    LIMIT 1
"""

_SQL_LIST_TABLES = """
    SELECT table_name
    FROM information_schema.tables
        WHERE table_schema = %(schema)s
            AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

_SQL_LIST_TABLES_WITH_COMMENT = """
    SELECT c.relname AS table_name
    FROM pg_catalog.pg_class c
        JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = %(schema)s
            AND c.relkind IN ('r', 'p')
            AND obj_description(c.oid, 'pg_class') = %(comment)s
    ORDER BY c.relname
"""


class TableManager:
    """Creates, lists and drops the physical tables behind indexes."""

    def __init__(
        self,
        schema: PostgresSchema,
        provider: "ConnectionProvider",
        *,
        use_table_comment_filter: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._schema = schema
        self._provider = provider
        self._use_comment = use_table_comment_filter
        self._log = logger or log

    async def exists(self, index: str) -> bool:
        table_name = self._schema.table_name(index)
        async with self._provider.cursor() as cur:
            await cur.execute(
                _SQL_TABLE_EXISTS, {"schema": self._schema.schema.name, "table": table_name}
            )
            row = await cur.fetchone()
        return row is not None and row["table_name"] == table_name

    async def create_index(self, index: str, vector_size: int) -> None:
        """Create the table of *index* unless it already exists."""
        statements = self._schema.create_table_statements(index, vector_size)
        table = self._schema.table(index)

        if await self.exists(index):
            self._log.debug("Table %s already exists", table)
            return

        custom = bool(self._schema.custom_table_sql)
        # the custom template is run verbatim, it may manage its own transaction
        async with self._provider.cursor(transaction=not custom) as cur:
            for sql in statements:
                self._log.debug("Executing DDL on %s", table)
                await cur.execute(sql)
        self._log.info("Created table %s (vector size %d)", table, vector_size)

    async def list_indexes(self) -> AsyncIterator[str]:
        """Yield the logical names of the index tables in the schema.

        Tables without the configured prefix are skipped; with the comment
        filter enabled, tables lacking the marker comment are skipped too.
        """
        params: Dict[str, Any] = {"schema": self._schema.schema.name}
        if self._use_comment:
            sql = _SQL_LIST_TABLES_WITH_COMMENT
            params["comment"] = self._schema.table_comment
        else:
            sql = _SQL_LIST_TABLES

        async with self._provider.cursor() as cur:
            await cur.execute(sql, params)
            async for row in cur:
                index = self._schema.index_from_table_name(row["table_name"])
                if index is not None:
                    yield index

    async def delete_index(self, index: str) -> None:
        """Drop the table of *index*; a missing table is not an error."""
        table = self._schema.table(index)
        async with self._provider.cursor() as cur:
            await cur.execute(f"DROP TABLE IF EXISTS {table}")
        self._log.info("Dropped table %s", table)
