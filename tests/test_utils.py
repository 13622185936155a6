"""Errors, metrics and driver error translation."""
from __future__ import annotations

import json
import logging

import pytest
from psycopg.errors import UndefinedTable

from conftest import make_config
from pgvector_memory.utils.db import ConnectionProvider
from pgvector_memory.utils.exceptions import (
    DatabaseError,
    InvalidIdentifierError,
    MemoryStorageError,
    ValidationError,
    log_exception,
)
from pgvector_memory.utils.metrics import get_metrics_content_type, get_prometheus_metrics


def test_error_serialisation():
    cause = KeyError("x")
    err = ValidationError("bad input", context={"field": "tags"}, cause=cause)
    data = json.loads(str(err))
    assert data["error"] == "validation_error"
    assert data["message"] == "bad input"
    assert data["context"] == {"field": "tags"}
    assert data["cause"]["type"] == "KeyError"
    assert err.__cause__ is cause


def test_invalid_identifier_error():
    err = InvalidIdentifierError("prefix", "km-")
    assert isinstance(err, ValidationError)
    assert isinstance(err, MemoryStorageError)
    assert err.message == "The prefix name 'km-' contains invalid chars"
    assert err.to_dict()["context"] == {"role": "prefix", "value": "km-"}


def test_log_exception(caplog):
    with caplog.at_level(logging.WARNING):
        log_exception(DatabaseError("boom", context={"sqlstate": "XX000"}), level=logging.WARNING)
    assert '"sqlstate": "XX000"' in caplog.text


def test_driver_error_translation():
    provider = ConnectionProvider(make_config())
    err = provider._translate(UndefinedTable("relation does not exist"), "Database error")
    assert isinstance(err, DatabaseError)
    assert err.sqlstate == "42P01"
    assert err.to_dict()["cause"]["type"] == "UndefinedTable"
    assert "pgmem_errors_total" in get_prometheus_metrics()


def test_provider_stats_before_open():
    assert ConnectionProvider(make_config()).get_stats() == {}


def test_metrics_content_type():
    assert get_metrics_content_type().startswith("text/plain")


@pytest.mark.asyncio
async def test_health_check_reports_failure(mocker):
    provider = ConnectionProvider(make_config())
    mocker.patch.object(provider, "_ensure_open", side_effect=DatabaseError("connection refused"))
    status = await provider.health_check()
    assert status == {"healthy": False, "message": "connection refused", "pool_stats": {}}
