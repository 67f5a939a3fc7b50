"""
PostgreSQL adapter for the document store.

Documents live in a single table with one jsonb body per row:

    CREATE TABLE documents (
        collection text NOT NULL,
        id         text NOT NULL,
        data       jsonb NOT NULL,
        PRIMARY KEY (collection, id)
    );

`compile_plan` turns a QueryPlan into one parameterized statement. Field names
travel as parameters, never as SQL text, so the only identifier spliced into
the query is the (validated) table name. Streaming reads use an asyncpg
cursor inside a transaction and fetch in batches.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, List, Optional, Tuple

import asyncpg

from recordplan.config import get_settings
from recordplan.domain.kinds import get_kind
from recordplan.domain.models import Record
from recordplan.errors import QueryRejectedError, StoreUnavailableError
from recordplan.infrastructure.db_factory import create_async_pool
from recordplan.planning.plan import (
    EqualsClause,
    InClause,
    PrefixRangeClause,
    QueryPlan,
    RangeClause,
)
from recordplan.utils.logging import get_logger

log = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# Errors after which the same statement may succeed on a later call.
TRANSIENT_QUERY_ERRORS = (
    OSError,
    ConnectionError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.QueryCanceledError,
    asyncpg.exceptions.InterfaceError,
)


# A field only takes part in a range comparison when its stored value reads as
# the bound's type; anything else is excluded, never cast.
_NUMBER_TEXT = r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?\s*$"
_TIMESTAMP_TEXT = r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?(Z|[+-]\d{2}(:?\d{2})?)?$"


class _Params:
    """Collects positional parameters and hands out $n placeholders."""

    def __init__(self) -> None:
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def _normalize_bound(value: Any) -> Tuple[Any, str]:
    """Parameter value and the SQL cast a text field must take to compare with it."""
    if isinstance(value, bool):
        return value, "boolean"
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value)), "numeric"
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value, "timestamptz"
    return str(value), "text"


def _typed_value(field: str, cast: str) -> str:
    """Expression yielding the field as `cast`, or NULL when it does not read as one."""
    text = f"(data ->> {field})"
    if cast == "numeric":
        return f"CASE WHEN {text} ~ '{_NUMBER_TEXT}' THEN {text}::numeric END"
    if cast == "timestamptz":
        return f"CASE WHEN {text} ~ '{_TIMESTAMP_TEXT}' THEN {text}::timestamptz END"
    json_type = "boolean" if cast == "boolean" else "string"
    return f"CASE WHEN jsonb_typeof(data -> {field}) = '{json_type}' THEN {text}::{cast} END"


def compile_plan(plan: QueryPlan, table: str = "documents") -> Tuple[str, List[Any]]:
    """
    Compile a plan into ``(sql, params)`` for asyncpg.

    Parameters
    ----------
    plan : QueryPlan
        Plan to compile; its clause order is kept.
    table : str
        Documents table, optionally schema-qualified.

    Returns
    -------
    tuple[str, list]
        Statement with $n placeholders and its parameter values.
    """
    if not _IDENTIFIER.match(table):
        raise ValueError(f"invalid table name {table!r}")

    params = _Params()
    where = [f"collection = {params.add(get_kind(plan.kind).collection)}"]

    for clause in plan.filter_clauses:
        if isinstance(clause, EqualsClause):
            where.append(f"data @> {params.add({clause.field: clause.value})}::jsonb")
        elif isinstance(clause, InClause):
            field = params.add(clause.field) + "::text"
            where.append(f"data -> {field} = ANY({params.add(list(clause.values))}::jsonb[])")
        elif isinstance(clause, PrefixRangeClause):
            field = params.add(clause.field) + "::text"
            text = f'({_typed_value(field, "text")}) COLLATE "C"'
            where.append(f"{text} >= {params.add(clause.lower)}")
            where.append(f"{text} <= {params.add(clause.upper)}")
        elif isinstance(clause, RangeClause):
            value, cast = _normalize_bound(clause.value)
            field = params.add(clause.field) + "::text"
            where.append(f"({_typed_value(field, cast)}) {clause.comparator} {params.add(value)}")
        else:  # pragma: no cover - QueryPlan only admits the clause types above
            raise QueryRejectedError(f"unsupported clause {clause.op!r}")

    sql = f"SELECT id, data FROM {table} WHERE " + " AND ".join(where)

    order_by = plan.order_by
    if order_by is not None:
        field = params.add(order_by.field)
        # JSON null sorts with missing values
        sql += (
            f" ORDER BY NULLIF(data -> {field}::text, 'null'::jsonb)"
            f" {order_by.direction.value.upper()} NULLS LAST"
        )
    if plan.limit is not None:
        sql += f" LIMIT {params.add(plan.limit)}"
    return sql, params.values


class PostgresStore:
    """
    Store backed by a jsonb documents table.

    The pool is created lazily on first use and reused afterwards; call
    `close` when done. Connection errors surface as StoreUnavailableError,
    statements the server refuses as QueryRejectedError.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        table: Optional[str] = None,
        batch_size: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
        min_size: int = 1,
        max_size: int = 10,
    ) -> None:
        settings = get_settings()
        self.dsn = dsn
        self.table = table or settings.documents_table
        self.batch_size = batch_size or settings.stream_batch_size
        self.statement_timeout_ms = (
            statement_timeout_ms
            if statement_timeout_ms is not None
            else settings.db_statement_timeout_ms
        )
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            try:
                self._pool = await create_async_pool(
                    self.dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    statement_timeout_ms=self.statement_timeout_ms,
                )
            except TRANSIENT_QUERY_ERRORS as exc:
                raise StoreUnavailableError(f"cannot reach database: {exc}") from exc
        return self._pool

    @staticmethod
    def _to_record(kind: str, row: Any) -> Record:
        return Record.from_document(kind, row["id"], row["data"] or {})

    async def execute(self, plan: QueryPlan) -> List[Record]:
        sql, params = compile_plan(plan, self.table)
        pool = await self._get_pool()
        log.debug("Executing plan", extra={"kind": plan.kind, "index": plan.index_name, "sql": sql})
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(sql, *params)
        except TRANSIENT_QUERY_ERRORS as exc:
            raise StoreUnavailableError(str(exc)) from exc
        except asyncpg.PostgresError as exc:
            raise QueryRejectedError(str(exc)) from exc
        return [self._to_record(plan.kind, row) for row in rows]

    async def stream(self, plan: QueryPlan) -> AsyncIterator[Record]:
        sql, params = compile_plan(plan, self.table)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    cursor = await conn.cursor(sql, *params)
                    while True:
                        batch = await cursor.fetch(self.batch_size)
                        if not batch:
                            break
                        for row in batch:
                            yield self._to_record(plan.kind, row)
        except TRANSIENT_QUERY_ERRORS as exc:
            raise StoreUnavailableError(str(exc)) from exc
        except asyncpg.PostgresError as exc:
            raise QueryRejectedError(str(exc)) from exc

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


__all__ = ["TRANSIENT_QUERY_ERRORS", "compile_plan", "PostgresStore"]
