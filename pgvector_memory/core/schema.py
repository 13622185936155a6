# schema.py — identifier validation & logical→physical naming
#
# Version: 0.1
"""Everything that turns caller-controlled names into SQL text lives here.

PostgreSQL cannot bind identifiers as parameters, so table, schema and
column names are interpolated into the statement text.  The only way to
obtain an interpolable name is :class:`QuotedIdentifier`, which refuses any
value outside ``[A-Za-z0-9_]`` (and longer than PostgreSQL's 63 byte
identifier limit).  Values - ids, vectors, tags, payloads, filter
arguments - always travel as bound parameters.

:class:`PostgresSchema` maps a logical index name onto
``"<schema>"."<prefix><index>"``, resolves the configurable column names
and renders the table DDL (default or caller-supplied template).
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

from pgvector_memory.utils.exceptions import ConfigurationError, InvalidIdentifierError, ValidationError

if TYPE_CHECKING:  # pragma: no cover
    from pgvector_memory.config.settings import PostgresConfig

__all__ = [
    "COLUMN_ID",
    "COLUMN_EMBEDDING",
    "COLUMN_TAGS",
    "COLUMN_CONTENT",
    "COLUMN_PAYLOAD",
    "COLUMN_LAST_UPDATE",
    "REQUIRED_COLUMNS",
    "SQL_PLACEHOLDER_TABLE_NAME",
    "SQL_PLACEHOLDER_VECTOR_SIZE",
    "PLACEHOLDER_TAGS",
    "MAX_IDENTIFIER_LENGTH",
    "QuotedIdentifier",
    "QualifiedTable",
    "PostgresSchema",
    "validate_schema_name",
    "validate_table_name_prefix",
    "validate_table_name",
    "validate_field_name",
    "validate_table_comment",
]

###############################################################################
# Constants                                                                   #
###############################################################################

COLUMN_ID = "id"
COLUMN_EMBEDDING = "embedding"
COLUMN_TAGS = "tags"
COLUMN_CONTENT = "content"
COLUMN_PAYLOAD = "payload"
COLUMN_LAST_UPDATE = "last_update"

REQUIRED_COLUMNS = (COLUMN_ID, COLUMN_EMBEDDING, COLUMN_TAGS, COLUMN_CONTENT, COLUMN_PAYLOAD)

# Tokens replaced in a custom CREATE TABLE template.
SQL_PLACEHOLDER_TABLE_NAME = "%%table_name%%"
SQL_PLACEHOLDER_VECTOR_SIZE = "%%vector_size%%"

# Token a raw filter predicate may use in place of the tags column.
PLACEHOLDER_TAGS = "{{$tags}}"

# NAMEDATALEN - 1; longer names are silently truncated by the server.
MAX_IDENTIFIER_LENGTH = 63

_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_]+")


###############################################################################
# Identifier validator                                                        #
###############################################################################

def _check(role: str, name: str) -> None:
    if not isinstance(name, str) or not _IDENTIFIER_RE.fullmatch(name):
        raise InvalidIdentifierError(role, str(name))
    if len(name.encode("utf-8")) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            role, name, f"The {role} name '{name}' is longer than {MAX_IDENTIFIER_LENGTH} chars"
        )


def validate_schema_name(name: str) -> None:
    _check("schema", name)


def validate_table_name_prefix(name: str) -> None:
    _check("prefix", name)


def validate_table_name(name: str) -> None:
    _check("table", name)


def validate_field_name(name: str) -> None:
    _check("field", name)


def validate_table_comment(text: str) -> None:
    # interpolated as a string literal in COMMENT ON TABLE
    if not isinstance(text, str) or not _IDENTIFIER_RE.fullmatch(text):
        raise ConfigurationError(
            f"The table comment '{text}' contains invalid chars", context={"table_comment": text}
        )


@dataclass(frozen=True, slots=True)
class QuotedIdentifier:
    """A validated SQL identifier, rendered double-quoted.

    Construction re-runs the character check, so an instance can never
    hold an unsafe name.
    """

    name: str
    role: str = "field"

    def __post_init__(self) -> None:
        _check(self.role, self.name)

    def __str__(self) -> str:
        return f'"{self.name}"'


@dataclass(frozen=True, slots=True)
class QualifiedTable:
    """``"schema"."table"`` reference of an index table."""

    schema: QuotedIdentifier
    table: QuotedIdentifier

    @property
    def name(self) -> str:
        """Bare (unquoted) physical table name, as stored in the catalog."""
        return self.table.name

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}"


###############################################################################
# Schema model                                                                #
###############################################################################

class PostgresSchema:
    """Logical-to-physical naming scheme for one configuration.

    Built from an already validated :class:`PostgresConfig`; every name it
    hands out is a :class:`QuotedIdentifier` or a :class:`QualifiedTable`.
    """

    def __init__(self, config: "PostgresConfig") -> None:
        self.schema = QuotedIdentifier(config.schema_name, "schema")
        validate_table_name_prefix(config.table_name_prefix)
        self.prefix = config.table_name_prefix
        self.columns: Dict[str, QuotedIdentifier] = {
            key: QuotedIdentifier(name, "field") for key, name in config.columns.items()
        }
        self.columns.setdefault(COLUMN_LAST_UPDATE, QuotedIdentifier(COLUMN_LAST_UPDATE, "field"))
        validate_table_comment(config.table_comment)
        self.table_comment = config.table_comment
        self.custom_table_sql = config.custom_table_sql

    # ------------------------------------------------------------------ #
    # Columns                                                            #
    # ------------------------------------------------------------------ #

    def column(self, key: str) -> QuotedIdentifier:
        try:
            return self.columns[key]
        except KeyError:
            raise ValidationError(f"Unknown column '{key}'", context={"column": key}) from None

    @property
    def id(self) -> QuotedIdentifier:
        return self.columns[COLUMN_ID]

    @property
    def embedding(self) -> QuotedIdentifier:
        return self.columns[COLUMN_EMBEDDING]

    @property
    def tags(self) -> QuotedIdentifier:
        return self.columns[COLUMN_TAGS]

    @property
    def content(self) -> QuotedIdentifier:
        return self.columns[COLUMN_CONTENT]

    @property
    def payload(self) -> QuotedIdentifier:
        return self.columns[COLUMN_PAYLOAD]

    @property
    def last_update(self) -> QuotedIdentifier:
        return self.columns[COLUMN_LAST_UPDATE]

    @property
    def column_names(self) -> Dict[str, str]:
        """Logical key → bare physical name (the keys of a ``dict_row``)."""
        return {key: col.name for key, col in self.columns.items()}

    def select_list(self, with_embeddings: bool) -> str:
        """Projection used by reads; the vector is left out unless asked for."""
        cols = [self.id, self.tags, self.content, self.payload, self.last_update]
        if with_embeddings:
            cols.append(self.embedding)
        return ", ".join(str(c) for c in cols)

    # ------------------------------------------------------------------ #
    # Tables                                                             #
    # ------------------------------------------------------------------ #

    def table_name(self, index: str) -> str:
        """Physical (unquoted) table name of *index*; validated."""
        name = f"{self.prefix}{index}"
        validate_table_name(name)
        return name

    def table(self, index: str) -> QualifiedTable:
        return QualifiedTable(self.schema, QuotedIdentifier(self.table_name(index), "table"))

    def index_from_table_name(self, table_name: str) -> Optional[str]:
        """Reverse mapping used when enumerating tables.

        Returns ``None`` for tables that do not carry the prefix
        (case-insensitive match) or that consist of the prefix only.
        """
        if not table_name.lower().startswith(self.prefix.lower()):
            return None
        index = table_name[len(self.prefix):]
        return index or None

    def tags_index_name(self, table_name: str) -> QuotedIdentifier:
        name = f"{table_name}_tags_idx"
        if len(name) > MAX_IDENTIFIER_LENGTH:
            digest = hashlib.sha1(table_name.encode("utf-8")).hexdigest()[:8]
            name = f"{table_name[:MAX_IDENTIFIER_LENGTH - 18]}_{digest}_tags_idx"
        return QuotedIdentifier(name, "table")

    def create_table_statements(self, index: str, vector_size: int) -> List[str]:
        """DDL creating the table of *index*.

        With a custom template the placeholders are substituted and the
        script is returned as a single item; the default layout is split
        into statements meant to run inside one transaction.
        """
        if isinstance(vector_size, bool) or not isinstance(vector_size, int) or vector_size <= 0:
            raise ValidationError(
                "The vector size must be a positive integer", context={"vector_size": vector_size}
            )

        table = self.table(index)

        if self.custom_table_sql:
            return [
                self.custom_table_sql
                .replace(SQL_PLACEHOLDER_TABLE_NAME, str(table))
                .replace(SQL_PLACEHOLDER_VECTOR_SIZE, str(vector_size))
            ]

        return [
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                {self.id}          TEXT NOT NULL PRIMARY KEY,
                {self.embedding}   vector({vector_size}),
                {self.tags}        TEXT[] DEFAULT '{{}}'::TEXT[] NOT NULL,
                {self.content}     TEXT DEFAULT '' NOT NULL,
                {self.payload}     JSONB DEFAULT '{{}}'::JSONB NOT NULL,
                {self.last_update} TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP NOT NULL
            )
            """,
            f"CREATE INDEX IF NOT EXISTS {self.tags_index_name(table.name)} ON {table} USING GIN({self.tags})",
            f"COMMENT ON TABLE {table} IS '{self.table_comment}'",
        ]
