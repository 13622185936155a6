"""End-to-end checks against a real PostgreSQL with pgvector.

Skipped unless ``PGMEM_TEST_CONNECTION_STRING`` points at a database where
the ``vector`` extension is available.
"""
from __future__ import annotations

import os
import uuid

import pytest

from pgvector_memory.config.settings import PostgresConfig
from pgvector_memory.core.filters import MemoryFilter
from pgvector_memory.core.memory import PostgresMemory
from pgvector_memory.core.models import MemoryRecord

DSN = os.environ.get("PGMEM_TEST_CONNECTION_STRING")

pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(not DSN, reason="PGMEM_TEST_CONNECTION_STRING not set"),
]


def _memory(**overrides) -> PostgresMemory:
    # unique prefix so concurrent runs never see each other's tables
    prefix = f"t{uuid.uuid4().hex[:8]}_"
    overrides.setdefault("table_name_prefix", prefix)
    config = PostgresConfig(connection_string=DSN, create_vector_extension=True, **overrides)
    return PostgresMemory(config)


async def _drop_all(memory: PostgresMemory) -> None:
    for name in await memory.get_indexes():
        await memory.delete_index(name)


async def test_example_scenario():
    async with _memory() as memory:
        try:
            await memory.create_index("docs", 3)
            await memory.upsert(
                "docs", MemoryRecord("a", [1, 0, 0], tags=["lang=en"], content="hello")
            )
            hits = [(r.id, s) async for r, s in memory.get_similar_list("docs", [1, 0, 0], min_relevance=0.99)]
            assert len(hits) == 1
            assert hits[0][0] == "a"
            assert hits[0][1] == pytest.approx(1.0)

            await memory.delete_index("docs")
            assert "docs" not in await memory.get_indexes()
        finally:
            await _drop_all(memory)


async def test_round_trip_and_idempotence():
    async with _memory() as memory:
        try:
            await memory.create_index("notes", 2)
            record = MemoryRecord(
                "r1", [0.6, 0.8], tags={"user": ["alice"], "pinned": [None]},
                payload={"text": "remember this", "source": "chat"},
            )
            await memory.upsert("notes", record)
            await memory.create_index("notes", 2)

            [stored] = [r async for r in memory.get_list("notes", limit=10, with_embeddings=True)]
            assert stored.id == "r1"
            assert stored.tags == {"user": ["alice"], "pinned": [None]}
            assert stored.content == record.content == "remember this"
            assert stored.payload == record.payload == {"source": "chat"}
            assert stored.vector.tolist() == pytest.approx([0.6, 0.8])
            assert stored.last_update is not None

            [plain] = [r async for r in memory.get_list("notes")]
            assert plain.vector.size == 0

            explicit = MemoryRecord("r2", [1, 0], payload={"text": "payload text", "k": 1}, content="explicit")
            await memory.upsert("notes", explicit)
            [again] = [r async for r in memory.get_list("notes", limit=0) if r.id == "r2"]
            assert again.content == "explicit"
            assert again.payload == {"text": "payload text", "k": 1}
        finally:
            await _drop_all(memory)


async def test_ordering_threshold_and_filters():
    async with _memory() as memory:
        try:
            await memory.create_index("vecs", 2)
            await memory.upsert("vecs", MemoryRecord("near", [1, 0.1], tags=["k=a"]))
            await memory.upsert("vecs", MemoryRecord("mid", [1, 1], tags=["k=b"]))
            await memory.upsert("vecs", MemoryRecord("far", [0, 1], tags=["k=a"]))

            top = [(r.id, s) async for r, s in memory.get_similar_list("vecs", [1, 0], limit=2)]
            assert [i for i, _ in top] == ["near", "mid"]
            assert top[0][1] > top[1][1]

            strict = [s async for _, s in memory.get_similar_list("vecs", [1, 0], min_relevance=0.9, limit=0)]
            assert strict and all(s >= 0.9 for s in strict)

            tagged = [
                r.id async for r, _ in memory.get_similar_list(
                    "vecs", [1, 0], filters=MemoryFilter.by_tag("k", "a"), limit=0
                )
            ]
            assert tagged == ["near", "far"]
        finally:
            await _drop_all(memory)


async def test_missing_things_are_tolerated():
    async with _memory() as memory:
        await memory.delete_index("never_created")
        await memory.delete("never_created", "x")


async def test_listing_is_prefix_scoped():
    async with _memory() as first, _memory() as second:
        try:
            await first.create_index("mine", 2)
            assert "mine" in await first.get_indexes()
            assert "mine" not in await second.get_indexes()
        finally:
            await _drop_all(first)
