"""Index table lifecycle against a scripted provider."""
from __future__ import annotations

import pytest

from conftest import make_config
from pgvector_memory.core.schema import PostgresSchema
from pgvector_memory.core.tables import TableManager
from pgvector_memory.utils.exceptions import InvalidIdentifierError, ValidationError


@pytest.mark.asyncio
async def test_create_when_missing(schema, provider):
    tables = TableManager(schema, provider)
    await tables.create_index("notes", 3)

    exists_sql, exists_params = provider.executed[0]
    assert "information_schema.tables" in exists_sql
    assert exists_params == {"schema": "public", "table": "km_notes"}

    ddl = provider.statements[1:]
    assert len(ddl) == 3
    assert "CREATE TABLE IF NOT EXISTS" in ddl[0]
    assert "USING GIN" in ddl[1]
    assert ddl[2].startswith("COMMENT ON TABLE")
    # existence check, then one transaction for the DDL batch
    assert provider.transactions == [False, True]


@pytest.mark.asyncio
async def test_create_is_idempotent(schema, provider):
    provider.script([{"table_name": "km_notes"}])
    await TableManager(schema, provider).create_index("notes", 3)
    assert len(provider.executed) == 1


@pytest.mark.asyncio
async def test_custom_ddl_runs_outside_transaction(provider):
    schema = PostgresSchema(
        make_config(create_table_sql=["CREATE TABLE %%table_name%% (e vector(%%vector_size%%))"])
    )
    await TableManager(schema, provider).create_index("notes", 8)
    assert provider.statements[1] == 'CREATE TABLE "public"."km_notes" (e vector(8))'
    assert provider.transactions == [False, False]


@pytest.mark.asyncio
@pytest.mark.parametrize("index, size, error", [("bad-name", 3, InvalidIdentifierError), ("notes", 0, ValidationError)])
async def test_create_validates_before_io(schema, provider, index, size, error):
    with pytest.raises(error):
        await TableManager(schema, provider).create_index(index, size)
    assert provider.executed == []


@pytest.mark.asyncio
async def test_exists(schema, provider):
    provider.script([{"table_name": "km_notes"}], [])
    tables = TableManager(schema, provider)
    assert await tables.exists("notes") is True
    assert await tables.exists("other") is False


@pytest.mark.asyncio
async def test_list_only_prefixed_tables(schema, provider):
    provider.script([
        {"table_name": "km_alpha"},
        {"table_name": "users"},
        {"table_name": "km_"},
        {"table_name": "km_beta"},
    ])
    names = [name async for name in TableManager(schema, provider).list_indexes()]
    assert names == ["alpha", "beta"]
    sql, params = provider.executed[0]
    assert "information_schema.tables" in sql
    assert params == {"schema": "public"}


@pytest.mark.asyncio
async def test_list_with_comment_filter(schema, provider):
    provider.script([{"table_name": "km_alpha"}, {"table_name": "unrelated"}])
    tables = TableManager(schema, provider, use_table_comment_filter=True)
    names = [name async for name in tables.list_indexes()]
    assert names == ["alpha"]
    sql, params = provider.executed[0]
    assert "obj_description" in sql
    assert params == {"schema": "public", "comment": "pgvector_memory_index"}


@pytest.mark.asyncio
async def test_delete_index(schema, provider):
    await TableManager(schema, provider).delete_index("notes")
    assert provider.statements == ['DROP TABLE IF EXISTS "public"."km_notes"']
