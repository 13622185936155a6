# pgvector_memory/utils/__init__.py
"""Connection pooling, errors and metrics."""

from __future__ import annotations

__all__ = [
    "ConnectionProvider",
    "MemoryStorageError",
    "ValidationError",
    "InvalidIdentifierError",
    "ConfigurationError",
    "StorageError",
    "DatabaseError",
    "get_prometheus_metrics",
]


def __getattr__(name: str):
    if name == "ConnectionProvider":
        from pgvector_memory.utils.db import ConnectionProvider
        return ConnectionProvider
    elif name in (
        "MemoryStorageError",
        "ValidationError",
        "InvalidIdentifierError",
        "ConfigurationError",
        "StorageError",
        "DatabaseError",
    ):
        from pgvector_memory.utils.exceptions import (
            ConfigurationError,
            DatabaseError,
            InvalidIdentifierError,
            MemoryStorageError,
            StorageError,
            ValidationError,
        )
        return locals()[name]
    elif name == "get_prometheus_metrics":
        from pgvector_memory.utils.metrics import get_prometheus_metrics
        return get_prometheus_metrics
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
