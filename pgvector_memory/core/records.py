# records.py — single-row writes
#
# Version: 0.1
"""Insert-or-update and delete of one record row.

Both statements are single, parameterised and therefore atomic at the row
level; the pool runs in autocommit mode so nothing is left pending.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from psycopg.errors import UndefinedTable
from psycopg.types.json import Jsonb

from pgvector_memory.core.models import (
    MemoryRecord,
    get_content,
    get_payload,
    get_tags,
    json_dumps,
    to_vector,
)
from pgvector_memory.core.schema import PostgresSchema

if TYPE_CHECKING:  # pragma: no cover
    from pgvector_memory.utils.db import ConnectionProvider

__all__ = ["RecordStore"]

log = logging.getLogger(__name__)


class RecordStore:
    """Writes records into index tables."""

    def __init__(
        self,
        schema: PostgresSchema,
        provider: "ConnectionProvider",
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._schema = schema
        self._provider = provider
        self._log = logger or log

    def _upsert_sql(self, index: str) -> str:
        s = self._schema
        return f"""
            INSERT INTO {s.table(index)}
                ({s.id}, {s.embedding}, {s.tags}, {s.content}, {s.payload}, {s.last_update})
                VALUES
                (%(id)s, %(embedding)s, %(tags)s::text[], %(content)s, %(payload)s, %(last_update)s)
            ON CONFLICT ({s.id})
            DO UPDATE SET
                {s.embedding}   = EXCLUDED.{s.embedding},
                {s.tags}        = EXCLUDED.{s.tags},
                {s.content}     = EXCLUDED.{s.content},
                {s.payload}     = EXCLUDED.{s.payload},
                {s.last_update} = EXCLUDED.{s.last_update}
        """

    async def upsert(
        self,
        index: str,
        record: MemoryRecord,
        *,
        last_update: Optional[datetime] = None,
    ) -> str:
        """Insert *record* or overwrite the row with the same id; return the id."""
        sql = self._upsert_sql(index)
        params = {
            "id": record.id,
            "embedding": to_vector(record.vector),
            "tags": get_tags(record),
            "content": get_content(record),
            "payload": Jsonb(get_payload(record), dumps=json_dumps),
            "last_update": last_update or record.last_update or datetime.now(timezone.utc),
        }
        async with self._provider.cursor() as cur:
            await cur.execute(sql, params)
        self._log.debug("Upserted record %s into index %s", record.id, index)
        return record.id

    async def delete(self, index: str, record_id: str) -> None:
        """Delete one row; deleting from a table that was never created is a no-op."""
        table = self._schema.table(index)
        async with self._provider.cursor() as cur:
            try:
                await cur.execute(f"DELETE FROM {table} WHERE {self._schema.id} = %(id)s", {"id": record_id})
            except UndefinedTable:
                self._log.debug("Table %s does not exist, nothing to delete", table)
                return
        self._log.debug("Deleted record %s from index %s", record_id, index)
