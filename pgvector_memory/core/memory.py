# memory.py — PostgresMemory facade
#
# Version: 0.1
"""High-level entry point of the storage backend.

:class:`PostgresMemory` wires the connection provider, the schema model
and the three storage components together behind the surface a vector-db
connector exposes: index lifecycle, upsert, delete and (filtered)
similarity search.

Usage
-----
```python
from pgvector_memory import PostgresMemory, MemoryRecord

async with PostgresMemory.from_connection_string(dsn) as memory:
    await memory.create_index("notes", vector_size=384)
    await memory.upsert("notes", MemoryRecord(id="n1", vector=emb, payload={"text": "hi"}))
    async for record, score in memory.get_similar_list("notes", emb, limit=5):
        ...
```
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union

from pgvector_memory.config.settings import PostgresConfig
from pgvector_memory.core.filters import MemoryFilter
from pgvector_memory.core.models import MemoryRecord
from pgvector_memory.core.records import RecordStore
from pgvector_memory.core.schema import PostgresSchema
from pgvector_memory.core.search import SimilaritySearch
from pgvector_memory.core.tables import TableManager
from pgvector_memory.utils.db import ConnectionProvider
from pgvector_memory.utils.exceptions import InvalidIdentifierError

__all__ = ["PostgresMemory", "normalize_index_name", "DEFAULT_INDEX_NAME"]

log = logging.getLogger(__name__)

DEFAULT_INDEX_NAME = "default"

Filters = Optional[Union[MemoryFilter, Sequence[MemoryFilter]]]


def normalize_index_name(index: Optional[str]) -> str:
    """Trim and lowercase *index*; a blank name maps to ``"default"``.

    No characters are rewritten, so two distinct valid names can never
    collapse onto the same table.
    """
    if index is None:
        return DEFAULT_INDEX_NAME
    if not isinstance(index, str):
        raise InvalidIdentifierError("index", repr(index))
    index = index.strip().lower()
    return index or DEFAULT_INDEX_NAME


class PostgresMemory:
    """Vector record storage over PostgreSQL + pgvector."""

    def __init__(
        self,
        config: PostgresConfig,
        *,
        logger: Optional[logging.Logger] = None,
        provider: Optional[ConnectionProvider] = None,
    ) -> None:
        self._log = logger or log
        self._config = config.validate_config()
        self._schema = PostgresSchema(self._config)
        self._provider = provider or ConnectionProvider(self._config, logger=self._log)
        self._tables = TableManager(
            self._schema,
            self._provider,
            use_table_comment_filter=self._config.use_table_comment_filter,
            logger=self._log,
        )
        self._records = RecordStore(self._schema, self._provider, logger=self._log)
        self._search = SimilaritySearch(self._schema, self._provider, logger=self._log)

    @classmethod
    def from_connection_string(cls, connection_string: str, **kwargs: Any) -> "PostgresMemory":
        """Build an instance with default settings except for the DSN.

        Extra keyword arguments are forwarded to :class:`PostgresConfig`.
        """
        logger = kwargs.pop("logger", None)
        config = PostgresConfig(connection_string=connection_string, **kwargs)
        return cls(config, logger=logger)

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> PostgresConfig:
        return self._config

    @property
    def schema(self) -> PostgresSchema:
        return self._schema

    async def open(self) -> None:
        await self._provider.open()

    async def close(self) -> None:
        await self._provider.close()

    async def __aenter__(self) -> "PostgresMemory":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def health_check(self) -> Dict[str, Any]:
        return await self._provider.health_check()

    # ------------------------------------------------------------------ #
    # Indexes                                                            #
    # ------------------------------------------------------------------ #

    async def create_index(self, index: str, vector_size: int) -> None:
        await self._tables.create_index(normalize_index_name(index), vector_size)

    async def get_indexes(self) -> List[str]:
        return [name async for name in self._tables.list_indexes()]

    async def delete_index(self, index: str) -> None:
        await self._tables.delete_index(normalize_index_name(index))

    # ------------------------------------------------------------------ #
    # Records                                                            #
    # ------------------------------------------------------------------ #

    async def upsert(self, index: str, record: MemoryRecord) -> str:
        return await self._records.upsert(normalize_index_name(index), record)

    async def upsert_batch(self, index: str, records: Sequence[MemoryRecord]) -> List[str]:
        """Upsert *records* one by one; not atomic across records."""
        index = normalize_index_name(index)
        return [await self._records.upsert(index, record) for record in records]

    async def delete(self, index: str, record: Union[MemoryRecord, str]) -> None:
        record_id = record.id if isinstance(record, MemoryRecord) else record
        await self._records.delete(normalize_index_name(index), record_id)

    # ------------------------------------------------------------------ #
    # Reads                                                              #
    # ------------------------------------------------------------------ #

    async def get_similar_list(
        self,
        index: str,
        embedding: Any,
        *,
        filters: Filters = None,
        min_relevance: float = 0.0,
        limit: int = 1,
        offset: int = 0,
        with_embeddings: bool = False,
    ) -> AsyncIterator[Tuple[MemoryRecord, float]]:
        """Records most similar to *embedding*, best first, with their score."""
        async for item in self._search.search_similar(
            normalize_index_name(index),
            embedding,
            filters=filters,
            min_score=min_relevance,
            limit=limit,
            offset=offset,
            with_embeddings=with_embeddings,
        ):
            yield item

    async def get_list(
        self,
        index: str,
        *,
        filters: Filters = None,
        order_by: Optional[Sequence[Tuple[str, str]]] = None,
        limit: int = 1,
        offset: int = 0,
        with_embeddings: bool = False,
    ) -> AsyncIterator[MemoryRecord]:
        async for record in self._search.list_records(
            normalize_index_name(index),
            filters=filters,
            order_by=order_by,
            limit=limit,
            offset=offset,
            with_embeddings=with_embeddings,
        ):
            yield record
