"""pgvector memory v0.1

Vector record storage for AI memory workloads on PostgreSQL + pgvector.

This package provides:
- Index (table) lifecycle with validated, prefix-scoped table names
- Upsert / delete of records carrying embeddings, tags, content and payload
- Exact cosine similarity search with tag filters and score thresholds
- Async connection pooling (psycopg 3), Prometheus metrics and a Typer CLI
"""

from __future__ import annotations

import logging
from typing import Any, Dict

__version__ = "0.1.0"
__author__ = "pgvector memory team"
__description__ = "Vector record storage backend on PostgreSQL + pgvector"

# Configure default logging
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API exports
__all__ = [
    "__version__",
    "PostgresConfig",
    "PostgresMemory",
    "MemoryRecord",
    "MemoryFilter",
    "TagCollection",
    "get_settings",
]


# Lazy imports keep `import pgvector_memory` free of the database driver
def __getattr__(name: str) -> Any:
    if name in ("PostgresConfig", "get_settings"):
        from pgvector_memory.config.settings import PostgresConfig, get_settings
        return locals()[name]
    elif name == "PostgresMemory":
        from pgvector_memory.core.memory import PostgresMemory
        return PostgresMemory
    elif name in ("MemoryRecord", "TagCollection"):
        from pgvector_memory.core.models import MemoryRecord, TagCollection
        return locals()[name]
    elif name == "MemoryFilter":
        from pgvector_memory.core.filters import MemoryFilter
        return MemoryFilter
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def get_version_info() -> Dict[str, Any]:
    """Get detailed version information."""
    return {
        "version": __version__,
        "author": __author__,
        "description": __description__,
    }
