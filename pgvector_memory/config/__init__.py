"""Configuration module for pgvector memory."""

from __future__ import annotations

__all__ = [
    "PostgresConfig",
    "get_settings",
    "configure_logging",
]


def __getattr__(name: str):
    if name in ("PostgresConfig", "get_settings", "configure_logging"):
        from pgvector_memory.config.settings import PostgresConfig, configure_logging, get_settings
        return locals()[name]
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
