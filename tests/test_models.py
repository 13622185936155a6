"""Records, tags and row mapping."""
from __future__ import annotations

from datetime import datetime, timezone

import numpy as np
import pytest

from conftest import row
from pgvector_memory.core.models import (
    MemoryRecord,
    TagCollection,
    get_content,
    get_payload,
    get_tags,
    record_from_row,
    to_vector,
)
from pgvector_memory.utils.exceptions import ValidationError

COLUMNS = {
    "id": "id",
    "embedding": "embedding",
    "tags": "tags",
    "content": "content",
    "payload": "payload",
    "last_update": "last_update",
}


def test_tag_collection_strings():
    tags = TagCollection().add("lang", "en").add("lang", "fr").add("pinned")
    assert tags.to_strings() == ["lang=en", "lang=fr", "pinned"]
    assert TagCollection.from_strings(["lang=en", "lang=fr", "pinned"]) == tags


def test_tag_values_may_contain_equals():
    tags = TagCollection.from_strings(["expr=a=b"])
    assert tags["expr"] == ["a=b"]


def test_duplicate_tag_values_collapse():
    tags = TagCollection().add("k", "v").add("k", "v")
    assert tags.to_strings() == ["k=v"]


@pytest.mark.parametrize("key", ["", "a=b"])
def test_invalid_tag_keys(key):
    with pytest.raises(ValidationError):
        TagCollection().add(key, "v")


def test_record_accepts_mapping_or_strings():
    assert MemoryRecord("a", [1, 0], tags={"user": ["x", "y"]}).tags.to_strings() == ["user=x", "user=y"]
    assert MemoryRecord("a", [1, 0], tags=["user=x"]).tags == {"user": ["x"]}


def test_vector_coercion():
    vec = to_vector([1, 2, 3])
    assert vec.dtype == np.float32
    with pytest.raises(ValidationError):
        to_vector([[1, 2], [3, 4]])


def test_content_falls_back_to_text_payload():
    record = MemoryRecord("a", [1.0], payload={"text": "from payload", "source": "chat"})
    assert get_content(record) == "from payload"
    assert get_payload(record) == {"source": "chat"}

    record.content = "explicit"
    assert get_content(record) == "explicit"


def test_projections_of_missing_record():
    assert get_tags(None) == []
    assert get_content(None) == ""
    assert get_payload(None) == {}


def test_from_dict():
    record = MemoryRecord.from_dict(
        {
            "id": 7,
            "embedding": [0.5, 0.5],
            "tags": ["lang=en"],
            "content": "hi",
            "payload": {"source": "cli"},
            "last_update": "2024-05-01T10:00:00+00:00",
        }
    )
    assert record.id == "7"
    assert record.vector.tolist() == [0.5, 0.5]
    assert record.last_update == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert record.to_dict()["tags"] == ["lang=en"]
    assert "vector" not in record.to_dict()
    assert record.to_dict(with_embedding=True)["vector"] == [0.5, 0.5]

    with pytest.raises(ValidationError):
        MemoryRecord.from_dict({"content": "no id"})


def test_record_from_row():
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    data = row("a", tags=["lang=en", "pinned"], content="hello", payload={"k": 1}, last_update=ts,
               embedding=np.array([1, 0, 0], dtype=np.float32))

    record = record_from_row(data, COLUMNS, with_embeddings=False)
    assert record.id == "a"
    assert record.tags == {"lang": ["en"], "pinned": [None]}
    assert record.content == "hello"
    assert record.payload == {"k": 1}
    assert record.last_update == ts
    assert record.vector.size == 0

    assert record_from_row(data, COLUMNS, with_embeddings=True).vector.tolist() == [1, 0, 0]


def test_record_from_row_decodes_json_text():
    record = record_from_row(row("a", payload='{"k": [1, 2]}'), COLUMNS, with_embeddings=False)
    assert record.payload == {"k": [1, 2]}


def test_payload_text_becomes_content():
    record = MemoryRecord("a", [1.0], payload={"text": "hello", "k": 1})
    assert record.content == "hello"
    assert record.payload == {"k": 1}


def test_payload_text_kept_when_content_differs():
    payload = {"text": "from payload", "k": 1}
    record = MemoryRecord("a", [1.0], payload=payload, content="explicit")
    assert get_content(record) == "explicit"
    assert get_payload(record) == {"text": "from payload", "k": 1}
    # the caller's dict is not mutated
    assert MemoryRecord("b", [1.0], payload=payload).payload == {"k": 1}
    assert payload == {"text": "from payload", "k": 1}
