# filters.py — tag filters compiled to parameterised SQL predicates
#
# Version: 0.1
"""Filters restricting reads to records carrying given tags.

A filter is a conjunction of clauses; each clause is one member of a small
tagged union discriminated by its ``kind`` attribute:

``tag_equals``   the record carries ``key=value``
``tag_in``       the record carries ``key=v`` for at least one of the values
``raw``          a caller-written predicate; ``{{$tags}}`` stands for the
                 tags column, values are bound through named
                 ``%(name)s`` placeholders and a literal ``%`` is
                 written ``%%`` (e.g. ``LIKE 'a%%'``)

Several filters passed together are OR-ed: a record matches if it matches
any of them.  No filter at all compiles to ``TRUE``.  Tag values never
reach the SQL text; they are always bound parameters.
"""
from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from pgvector_memory.core.models import RESERVED_EQUALS_CHAR, tag_to_string
from pgvector_memory.core.schema import PLACEHOLDER_TAGS, QuotedIdentifier
from pgvector_memory.utils.exceptions import ValidationError

__all__ = [
    "RESERVED_PARAM_PREFIX",
    "TagEquals",
    "TagIn",
    "RawPredicate",
    "FilterClause",
    "MemoryFilter",
    "compile_filters",
]

# Parameter names starting with this prefix belong to the query builder.
RESERVED_PARAM_PREFIX = "pgmem_"

# Any "%" that does not open a named placeholder once "%%" escapes are removed.
_STRAY_PERCENT_RE = re.compile(r"%(?!\()")


###############################################################################
# Clause kinds                                                                #
###############################################################################

def _check_key(key: str) -> None:
    if not key or RESERVED_EQUALS_CHAR in key:
        raise ValidationError(
            f"Tag keys cannot be empty or contain '{RESERVED_EQUALS_CHAR}'", context={"key": key}
        )


@dataclass(frozen=True, slots=True)
class TagEquals:
    key: str
    value: Optional[str] = None
    kind: str = field(default="tag_equals", init=False)

    def __post_init__(self) -> None:
        _check_key(self.key)


@dataclass(frozen=True, slots=True)
class TagIn:
    key: str
    values: Tuple[Optional[str], ...] = ()
    kind: str = field(default="tag_in", init=False)

    def __post_init__(self) -> None:
        _check_key(self.key)
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True, slots=True)
class RawPredicate:
    sql: str
    params: Mapping[str, Any] = field(default_factory=dict)
    kind: str = field(default="raw", init=False)

    def __post_init__(self) -> None:
        clashes = [name for name in self.params if name.startswith(RESERVED_PARAM_PREFIX)]
        if clashes:
            raise ValidationError(
                f"Parameter names starting with '{RESERVED_PARAM_PREFIX}' are reserved",
                context={"params": clashes},
            )
        if _STRAY_PERCENT_RE.search(self.sql.replace("%%", "")):
            raise ValidationError(
                "Raw predicates take named %(name)s placeholders only; write a literal '%' as '%%'",
                context={"sql": self.sql},
            )


FilterClause = Union[TagEquals, TagIn, RawPredicate]


@dataclass(frozen=True, slots=True)
class MemoryFilter:
    """Conjunction of clauses; an empty filter matches every record."""

    clauses: Tuple[FilterClause, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "clauses", tuple(self.clauses))

    def __iter__(self) -> Iterator[FilterClause]:
        return iter(self.clauses)

    def __len__(self) -> int:
        return len(self.clauses)

    def and_(self, *clauses: FilterClause) -> "MemoryFilter":
        return MemoryFilter(self.clauses + tuple(clauses))

    @classmethod
    def by_tag(cls, key: str, value: Optional[str] = None) -> "MemoryFilter":
        return cls((TagEquals(key, value),))

    @classmethod
    def by_tags(cls, tags: Mapping[str, Any] | None = None, **kwargs: Any) -> "MemoryFilter":
        """``MemoryFilter.by_tags(lang="en", user=["a", "b"])``.

        A scalar becomes :class:`TagEquals`, a list becomes :class:`TagIn`.
        """
        items = dict(tags or {}, **kwargs)
        clauses: List[FilterClause] = []
        for key, value in items.items():
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(TagIn(key, tuple(value)))
            else:
                clauses.append(TagEquals(key, value))
        return cls(tuple(clauses))


###############################################################################
# Compilation                                                                 #
###############################################################################

class _Binder:
    """Hands out unique parameter names and collects their values."""

    def __init__(self) -> None:
        self.params: Dict[str, Any] = {}
        self._counter = itertools.count()

    def bind(self, value: Any) -> str:
        name = f"{RESERVED_PARAM_PREFIX}f{next(self._counter)}"
        self.params[name] = value
        return f"%({name})s"

    def merge(self, params: Mapping[str, Any]) -> None:
        for name, value in params.items():
            if name in self.params and self.params[name] != value:
                raise ValidationError(
                    f"Filter parameter '{name}' is bound to different values", context={"param": name}
                )
            self.params[name] = value


def _tag_equals(clause: TagEquals, tags: QuotedIdentifier, binder: _Binder) -> str:
    return f"{tags} @> ARRAY[{binder.bind(tag_to_string(clause.key, clause.value))}]::text[]"


def _tag_in(clause: TagIn, tags: QuotedIdentifier, binder: _Binder) -> str:
    if not clause.values:
        return "FALSE"
    values = [tag_to_string(clause.key, v) for v in clause.values]
    return f"{tags} && {binder.bind(values)}::text[]"


def _raw(clause: RawPredicate, tags: QuotedIdentifier, binder: _Binder) -> str:
    sql = clause.sql.strip().replace(PLACEHOLDER_TAGS, str(tags))
    if not sql:
        return "TRUE"
    binder.merge(clause.params)
    return f"({sql})"


_COMPILERS: Dict[str, Callable[[Any, QuotedIdentifier, _Binder], str]] = {
    "tag_equals": _tag_equals,
    "tag_in": _tag_in,
    "raw": _raw,
}


def _compile_clause(clause: FilterClause, tags: QuotedIdentifier, binder: _Binder) -> str:
    try:
        compiler = _COMPILERS[clause.kind]
    except (AttributeError, KeyError):
        raise ValidationError(
            "Unsupported filter clause", context={"clause": repr(clause)}
        ) from None
    return compiler(clause, tags, binder)


def compile_filters(
    filters: Optional[Union[MemoryFilter, Sequence[MemoryFilter]]],
    tags_column: QuotedIdentifier,
) -> Tuple[str, Dict[str, Any]]:
    """Translate *filters* into a ``WHERE`` predicate and its parameters."""
    if filters is None:
        return "TRUE", {}
    if isinstance(filters, MemoryFilter):
        filters = [filters]

    binder = _Binder()
    parts: List[str] = []
    for flt in _non_null(filters):
        clauses = [_compile_clause(c, tags_column, binder) for c in flt]
        if not clauses:
            # an empty filter matches everything, so the whole OR does too
            return "TRUE", {}
        parts.append(" AND ".join(clauses))

    if not parts:
        return "TRUE", {}
    if len(parts) == 1:
        return parts[0], binder.params
    return " OR ".join(f"({p})" for p in parts), binder.params


def _non_null(filters: Iterable[Optional[MemoryFilter]]) -> Iterator[MemoryFilter]:
    for flt in filters:
        if flt is not None:
            yield flt
