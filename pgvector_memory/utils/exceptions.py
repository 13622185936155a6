# pgvector_memory/utils/exceptions.py
"""Exception hierarchy for the pgvector memory storage backend.

The hierarchy is small on purpose and mirrors the three ways an operation
can fail:

- *Configuration* problems, detected eagerly before any connection exists.
- *Validation* problems with caller input (identifiers, tags, filters),
  detected before a query string is built.
- *Storage* problems raised by PostgreSQL or the connection pool, surfaced
  at the point of the failing operation.

Every exception serialises to JSON so it can be logged in a structured way
and keeps the original driver exception as ``__cause__``.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Any, Dict, Optional

__all__ = [
    # Base exception
    "MemoryStorageError",

    # Validation and configuration errors
    "ValidationError",
    "InvalidIdentifierError",
    "ConfigurationError",

    # Storage and database errors
    "StorageError",
    "DatabaseError",

    # Helper functions
    "log_exception",
]

log = logging.getLogger(__name__)


# =============================================================================
# Base Exception Class
# =============================================================================

class MemoryStorageError(RuntimeError):
    """Base exception class for all pgvector memory errors.

    Attributes:
        message: Human-readable error description
        context: Additional context information as key-value pairs
        code: Error code for programmatic handling
        ts_utc: UTC timestamp when the error occurred

    Example:
        try:
            await cursor.execute(sql, params)
        except psycopg.Error as e:
            raise DatabaseError(
                "Statement failed",
                context={"sqlstate": e.sqlstate},
                cause=e,
            )
    """

    default_code: str = "memory_storage_error"

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.code = self.default_code
        self.ts_utc = dt.datetime.now(dt.timezone.utc)

        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception to a JSON-serializable dictionary.

        Returns:
            Dictionary with the error code, message, ISO timestamp, the
            context (if any) and a short description of the cause (if any).
        """
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
            "timestamp": self.ts_utc.isoformat(),
        }

        if self.context:
            payload["context"] = self.context

        if self.__cause__ is not None:
            payload["cause"] = {
                "type": type(self.__cause__).__name__,
                "message": str(self.__cause__),
            }

        return payload

    def __str__(self) -> str:
        """Return compact JSON representation of the exception."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"), default=str)


# =============================================================================
# Validation and Configuration Errors
# =============================================================================

class ValidationError(MemoryStorageError):
    """Exception raised when caller input fails validation.

    Used for a non-positive vector size, a tag key containing ``=``, or a
    raw filter predicate whose parameter names collide with the ones the
    query builder reserves for itself.
    """

    default_code = "validation_error"


class InvalidIdentifierError(ValidationError):
    """Raised when a schema, prefix, table, field or index name is unsafe.

    Identifiers are interpolated into SQL text, so anything outside
    ``[A-Za-z0-9_]`` is refused before a query is built.  The ``role``
    attribute names which kind of identifier was rejected.
    """

    default_code = "invalid_identifier"

    def __init__(self, role: str, value: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"The {role} name '{value}' contains invalid chars",
            context={"role": role, "value": value},
        )
        self.role = role
        self.value = value


class ConfigurationError(MemoryStorageError):
    """Exception raised when the storage configuration is invalid or missing.

    Raised by :meth:`PostgresConfig.validate_config` for an empty
    connection string or prefix, an incomplete column mapping, or a custom
    table template missing one of its placeholders.
    """

    default_code = "configuration_error"


# =============================================================================
# Storage and Database Errors
# =============================================================================

class StorageError(MemoryStorageError):
    """Exception raised for general storage layer failures."""

    default_code = "storage_error"


class DatabaseError(StorageError):
    """Exception raised for PostgreSQL or connection-pool failures.

    The driver exception is always kept as ``__cause__`` and its SQLSTATE
    (when the server reported one) is stored in ``context["sqlstate"]``.
    """

    default_code = "database_error"

    @property
    def sqlstate(self) -> Optional[str]:
        return self.context.get("sqlstate")


# =============================================================================
# Helper Functions
# =============================================================================

def log_exception(
    exception: MemoryStorageError,
    *,
    level: int = logging.ERROR,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log a MemoryStorageError with structured JSON payload.

    Example:
        try:
            await memory.delete_index("docs")
        except DatabaseError as e:
            log_exception(e, level=logging.WARNING)
    """
    if logger is None:
        logger = log

    logger.log(level, "%s", json.dumps(exception.to_dict(), ensure_ascii=False, default=str))
