# models.py — record & tag domain objects
#
# Version: 0.1
"""Domain objects stored in an index table.

A :class:`MemoryRecord` is one row: id, embedding, tags, content, payload
and last-update timestamp.  Tags are a multi-map (``key → [values]``)
persisted as a ``TEXT[]`` of ``"key=value"`` strings so that membership
tests can use the GIN index on the column.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import orjson

from pgvector_memory.utils.exceptions import ValidationError

__all__ = [
    "RESERVED_EQUALS_CHAR",
    "RESERVED_TEXT_FIELD",
    "TagCollection",
    "MemoryRecord",
    "get_tags",
    "get_content",
    "get_payload",
    "to_vector",
]

RESERVED_EQUALS_CHAR = "="
# Payload key accepted as an alternate source of the record content.
RESERVED_TEXT_FIELD = "text"


###############################################################################
# Tags                                                                        #
###############################################################################

class TagCollection(Dict[str, List[Optional[str]]]):
    """Multi-valued tag map.  A ``None`` value is a key-only tag."""

    def add(self, key: str, value: Optional[str] = None) -> "TagCollection":
        if not key or RESERVED_EQUALS_CHAR in key:
            raise ValidationError(
                f"Tag keys cannot be empty or contain '{RESERVED_EQUALS_CHAR}'", context={"key": key}
            )
        values = self.setdefault(key, [])
        if value not in values:
            values.append(value)
        return self

    def pairs(self) -> Iterator[Tuple[str, Optional[str]]]:
        for key, values in self.items():
            for value in values:
                yield key, value

    def to_strings(self) -> List[str]:
        return [tag_to_string(k, v) for k, v in self.pairs()]

    @classmethod
    def from_strings(cls, tags: Iterable[str]) -> "TagCollection":
        out = cls()
        for tag in tags or ():
            key, sep, value = tag.partition(RESERVED_EQUALS_CHAR)
            out.add(key, value if sep else None)
        return out

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TagCollection":
        """Accept ``{"k": "v"}`` as well as ``{"k": ["v1", "v2"]}``."""
        out = cls()
        for key, values in data.items():
            if values is None or isinstance(values, str):
                values = [values]
            for value in values:
                out.add(key, value)
        return out


def tag_to_string(key: str, value: Optional[str]) -> str:
    return key if value is None else f"{key}{RESERVED_EQUALS_CHAR}{value}"


###############################################################################
# Records                                                                     #
###############################################################################

def to_vector(values: Any) -> np.ndarray:
    """Coerce any sequence of numbers to a 1-D float32 array."""
    vec = np.asarray(values, dtype=np.float32)
    if vec.ndim != 1:
        raise ValidationError("Embedding must be a 1-D vector", context={"shape": list(vec.shape)})
    return vec


@dataclass(slots=True)
class MemoryRecord:
    """Single row of an index table.

    A non-empty ``payload["text"]`` given without ``content`` (or equal to
    it) is moved into ``content`` on construction, so the record matches
    the one read back after an upsert.  When both are set and differ,
    ``"text"`` stays in the payload and is stored with it.
    """

    id: str
    vector: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    tags: TagCollection = field(default_factory=TagCollection)
    payload: Dict[str, Any] = field(default_factory=dict)
    content: str = ""
    last_update: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.vector = to_vector(self.vector)
        self.payload = dict(self.payload or {})
        # a payload "text" standing in for (or repeating) the content becomes the content
        text = self.payload.get(RESERVED_TEXT_FIELD)
        if isinstance(text, str) and text and (not self.content or text == self.content):
            self.content = self.payload.pop(RESERVED_TEXT_FIELD)
        if not isinstance(self.tags, TagCollection):
            if isinstance(self.tags, Mapping):
                self.tags = TagCollection.from_mapping(self.tags)
            else:
                self.tags = TagCollection.from_strings(self.tags)

    # ------------------------------------------------------------------ #
    # (de)serialisation helpers used by the CLI                          #
    # ------------------------------------------------------------------ #

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryRecord":
        """Build a record from a JSON object.

        ``tags`` may be a list of ``"key=value"`` strings or a mapping;
        ``embedding`` is accepted as an alias of ``vector``.
        """
        if "id" not in data:
            raise ValidationError("Record is missing the 'id' field")
        last_update = data.get("last_update")
        if isinstance(last_update, str):
            last_update = datetime.fromisoformat(last_update)
        return cls(
            id=str(data["id"]),
            vector=data.get("vector", data.get("embedding", [])),
            tags=data.get("tags") or TagCollection(),
            payload=dict(data.get("payload") or {}),
            content=data.get("content") or "",
            last_update=last_update,
        )

    def to_dict(self, *, with_embedding: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "tags": self.tags.to_strings(),
            "content": self.content,
            "payload": self.payload,
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }
        if with_embedding:
            out["vector"] = self.vector.tolist()
        return out


###############################################################################
# Storage projections                                                         #
###############################################################################

def get_tags(record: Optional[MemoryRecord]) -> List[str]:
    if record is None:
        return []
    return record.tags.to_strings()


def get_content(record: Optional[MemoryRecord]) -> str:
    """Text stored in the content column.

    The explicit ``content`` attribute wins; otherwise the reserved
    ``"text"`` payload field is used.
    """
    if record is None:
        return ""
    if record.content:
        return record.content
    text = record.payload.get(RESERVED_TEXT_FIELD)
    return text if isinstance(text, str) else ""


def get_payload(record: Optional[MemoryRecord]) -> Dict[str, Any]:
    """Payload without the content, which is stored separately.

    ``"text"`` is dropped only when it duplicates the stored content; any
    other value is kept so nothing is lost on write.
    """
    if record is None:
        return {}
    payload = dict(record.payload)
    text = payload.get(RESERVED_TEXT_FIELD)
    if isinstance(text, str) and text and text == get_content(record):
        del payload[RESERVED_TEXT_FIELD]
    return payload


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def record_from_row(row: Mapping[str, Any], columns: Mapping[str, str], with_embeddings: bool) -> MemoryRecord:
    """Rebuild a record from a ``dict_row`` keyed by physical column names.

    *columns* maps the logical keys (``id``, ``tags``...) to those names.
    """
    payload = row[columns["payload"]]
    if isinstance(payload, (str, bytes)):
        payload = orjson.loads(payload)

    vector: Sequence[float] = ()
    if with_embeddings and row.get(columns["embedding"]) is not None:
        vector = row[columns["embedding"]]

    return MemoryRecord(
        id=row[columns["id"]],
        vector=vector,
        tags=TagCollection.from_strings(row[columns["tags"]] or []),
        payload=payload or {},
        content=row[columns["content"]] or "",
        last_update=row.get(columns["last_update"]),
    )
