# pgvector_memory/core/__init__.py
"""Storage engine: naming, DDL, writes and similarity search."""

from __future__ import annotations

__all__ = [
    "PostgresMemory",
    "PostgresSchema",
    "QuotedIdentifier",
    "TableManager",
    "RecordStore",
    "SimilaritySearch",
    "MemoryRecord",
    "TagCollection",
    "MemoryFilter",
    "TagEquals",
    "TagIn",
    "RawPredicate",
]


def __getattr__(name: str):
    if name == "PostgresMemory":
        from pgvector_memory.core.memory import PostgresMemory
        return PostgresMemory
    elif name in ("PostgresSchema", "QuotedIdentifier"):
        from pgvector_memory.core.schema import PostgresSchema, QuotedIdentifier
        return locals()[name]
    elif name == "TableManager":
        from pgvector_memory.core.tables import TableManager
        return TableManager
    elif name == "RecordStore":
        from pgvector_memory.core.records import RecordStore
        return RecordStore
    elif name == "SimilaritySearch":
        from pgvector_memory.core.search import SimilaritySearch
        return SimilaritySearch
    elif name in ("MemoryRecord", "TagCollection"):
        from pgvector_memory.core.models import MemoryRecord, TagCollection
        return locals()[name]
    elif name in ("MemoryFilter", "TagEquals", "TagIn", "RawPredicate"):
        from pgvector_memory.core.filters import MemoryFilter, RawPredicate, TagEquals, TagIn
        return locals()[name]
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
