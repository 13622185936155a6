# search.py — filtered similarity search & listing
#
# Version: 0.1
"""Read side of the storage engine.

``search_similar`` computes ``1 - cosine_distance`` between the query
vector and every (filtered) row, exactly; there is no ANN index involved.
Rows come back best-first, and the minimum-score threshold is enforced
here in Python rather than pushed into SQL: the first row below the
threshold ends the stream, since every following row scores lower.

Both operations are async generators: lazy, finite and single-use.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional, Sequence, Tuple, Union

from pgvector_memory.core.filters import RESERVED_PARAM_PREFIX, MemoryFilter, compile_filters
from pgvector_memory.core.models import MemoryRecord, record_from_row, to_vector
from pgvector_memory.core.schema import PostgresSchema
from pgvector_memory.utils.exceptions import ValidationError
from pgvector_memory.utils.metrics import LAT_SEARCH

if TYPE_CHECKING:  # pragma: no cover
    from pgvector_memory.utils.db import ConnectionProvider

__all__ = ["SimilaritySearch", "SCORE_COLUMN"]

log = logging.getLogger(__name__)

SCORE_COLUMN = f"{RESERVED_PARAM_PREFIX}score"

_P_EMBEDDING = f"{RESERVED_PARAM_PREFIX}embedding"
_P_LIMIT = f"{RESERVED_PARAM_PREFIX}limit"
_P_OFFSET = f"{RESERVED_PARAM_PREFIX}offset"

Filters = Optional[Union[MemoryFilter, Sequence[MemoryFilter]]]
OrderBy = Optional[Sequence[Tuple[str, str]]]


def _paging(limit: int, offset: int) -> Dict[str, Any]:
    # LIMIT NULL means "no limit"
    return {
        _P_LIMIT: limit if limit and limit > 0 else None,
        _P_OFFSET: max(0, offset or 0),
    }


class SimilaritySearch:
    """Builds and runs the read queries of one configuration."""

    def __init__(
        self,
        schema: PostgresSchema,
        provider: "ConnectionProvider",
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._schema = schema
        self._provider = provider
        self._log = logger or log

    # ------------------------------------------------------------------ #
    # Query builders                                                     #
    # ------------------------------------------------------------------ #

    def build_similar_query(
        self,
        index: str,
        query_vector: Any,
        *,
        filters: Filters = None,
        limit: int = 1,
        offset: int = 0,
        with_embeddings: bool = False,
    ) -> Tuple[str, Dict[str, Any]]:
        s = self._schema
        table = s.table(index)
        where, params = compile_filters(filters, s.tags)

        sql = f"""
            SELECT {s.select_list(with_embeddings)},
                   1 - ({s.embedding} <=> %({_P_EMBEDDING})s) AS {SCORE_COLUMN}
            FROM {table}
            WHERE {where}
            ORDER BY {s.embedding} <=> %({_P_EMBEDDING})s
            LIMIT %({_P_LIMIT})s
            OFFSET %({_P_OFFSET})s
        """
        params[_P_EMBEDDING] = to_vector(query_vector)
        params.update(_paging(limit, offset))
        return sql, params

    def build_list_query(
        self,
        index: str,
        *,
        filters: Filters = None,
        order_by: OrderBy = None,
        limit: int = 1,
        offset: int = 0,
        with_embeddings: bool = False,
    ) -> Tuple[str, Dict[str, Any]]:
        s = self._schema
        table = s.table(index)
        where, params = compile_filters(filters, s.tags)

        sql = f"""
            SELECT {s.select_list(with_embeddings)} FROM {table}
            WHERE {where}
            ORDER BY {self._order_by(order_by)}
            LIMIT %({_P_LIMIT})s
            OFFSET %({_P_OFFSET})s
        """
        params.update(_paging(limit, offset))
        return sql, params

    def _order_by(self, order_by: OrderBy) -> str:
        if not order_by:
            return f"{self._schema.id} ASC"
        parts = []
        for key, direction in order_by:
            direction = (direction or "ASC").strip().upper()
            if direction not in ("ASC", "DESC"):
                raise ValidationError(
                    f"Invalid sort direction '{direction}'", context={"column": key}
                )
            parts.append(f"{self._schema.column(key)} {direction}")
        return ", ".join(parts)

    # ------------------------------------------------------------------ #
    # Operations                                                         #
    # ------------------------------------------------------------------ #

    async def search_similar(
        self,
        index: str,
        query_vector: Any,
        *,
        filters: Filters = None,
        min_score: float = 0.0,
        limit: int = 1,
        offset: int = 0,
        with_embeddings: bool = False,
    ) -> AsyncIterator[Tuple[MemoryRecord, float]]:
        """Yield ``(record, score)`` pairs, best first, with ``score >= min_score``."""
        sql, params = self.build_similar_query(
            index,
            query_vector,
            filters=filters,
            limit=limit,
            offset=offset,
            with_embeddings=with_embeddings,
        )
        columns = self._schema.column_names

        async with self._provider.cursor() as cur:
            with LAT_SEARCH.time():
                await cur.execute(sql, params)
            async for row in cur:
                score = row[SCORE_COLUMN]
                # rows are sorted by score, nothing after this one can qualify;
                # NaN (zero vectors) compares false and ends the stream too
                if score is None or not float(score) >= min_score:
                    self._log.debug("Score below %.4f, stopping search on %s", min_score, index)
                    break
                yield record_from_row(row, columns, with_embeddings), float(score)

    async def list_records(
        self,
        index: str,
        *,
        filters: Filters = None,
        order_by: OrderBy = None,
        limit: int = 1,
        offset: int = 0,
        with_embeddings: bool = False,
    ) -> AsyncIterator[MemoryRecord]:
        """Yield records matching *filters*, by id unless *order_by* says otherwise."""
        sql, params = self.build_list_query(
            index,
            filters=filters,
            order_by=order_by,
            limit=limit,
            offset=offset,
            with_embeddings=with_embeddings,
        )
        columns = self._schema.column_names

        async with self._provider.cursor() as cur:
            await cur.execute(sql, params)
            async for row in cur:
                yield record_from_row(row, columns, with_embeddings)

