"""
In-process document store.

Holds collections as plain dicts and executes QueryPlans clause by clause. It
backs the CLI's fixture mode and the test suite. With `strict=True` it also
enforces the hosted store's restrictions and rejects plans that apply range
clauses to more than one field, or order by a field other than the range
field, the same way the hosted store refuses them.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Tuple

from recordplan.domain.kinds import RecordKind, SortDirection, available_kinds, get_kind
from recordplan.domain.models import Record
from recordplan.errors import QueryRejectedError
from recordplan.planning.plan import (
    EqualsClause,
    InClause,
    OrderByClause,
    PrefixRangeClause,
    QueryPlan,
    RangeClause,
)
from recordplan.utils.logging import get_logger

log = get_logger(__name__)

_MISSING = object()


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def _comparable(value: Any, bound: Any) -> Tuple[Any, Any]:
    """Coerce a stored value and a clause bound to a common type, or raise TypeError."""
    if isinstance(bound, datetime):
        stored = _as_datetime(value)
        if stored is None:
            raise TypeError(f"{value!r} is not a timestamp")
        return stored, _as_datetime(bound)
    if isinstance(bound, (int, float, Decimal)) and not isinstance(bound, bool):
        stored = _as_decimal(value)
        if stored is None:
            raise TypeError(f"{value!r} is not a number")
        return stored, Decimal(str(bound))
    if isinstance(value, type(bound)):
        return value, bound
    raise TypeError(f"cannot compare {type(value).__name__} with {type(bound).__name__}")


def _sort_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return _as_datetime(value)
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return Decimal(str(value))
    return value


class InMemoryStore:
    """
    Dict-backed store implementing `execute` and `stream`.

    Parameters
    ----------
    documents : Mapping[str, Iterable[Mapping]], optional
        Initial documents keyed by collection name (``orcamentos``,
        ``notasFiscais``) or kind name. Each document needs an ``id``.
    strict : bool
        Reject plans that break the hosted store's range/orderBy restrictions.
    delay : float
        Seconds to sleep before answering; lets tests interleave calls.
    batch_size : int
        Records yielded between event-loop checkpoints when streaming.
    """

    def __init__(
        self,
        documents: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None,
        *,
        strict: bool = False,
        delay: float = 0.0,
        batch_size: int = 500,
    ) -> None:
        self.strict = strict
        self.delay = delay
        self.batch_size = batch_size
        self.executed: List[QueryPlan] = []
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            get_kind(name).collection: {} for name in available_kinds()
        }
        for collection, docs in (documents or {}).items():
            for doc in docs:
                self.add(collection, doc)

    @classmethod
    def from_json(cls, path: "str | Path", **kwargs: Any) -> "InMemoryStore":
        """Load a fixture file shaped like ``{"orcamentos": [...], "notasFiscais": [...]}``."""
        with Path(path).open(encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, dict):
            raise ValueError(f"fixture {path} must hold an object keyed by collection")
        store = cls(payload, **kwargs)
        log.info(
            "Loaded fixture documents",
            extra={"path": str(path), "counts": store.counts()},
        )
        return store

    def _resolve_collection(self, name: str) -> str:
        if name in self._collections:
            return name
        return self._kind(name).collection

    @staticmethod
    def _kind(name: str) -> RecordKind:
        return get_kind(name)

    def add(self, collection: str, document: Mapping[str, Any]) -> None:
        data = dict(document)
        doc_id = data.pop("id", None)
        if doc_id is None:
            raise ValueError(f"document in {collection} has no 'id'")
        self._collections[self._resolve_collection(collection)][str(doc_id)] = data

    def counts(self) -> Dict[str, int]:
        return {name: len(docs) for name, docs in self._collections.items()}

    # ------------------------------------------------------------------ #
    # Plan execution
    # ------------------------------------------------------------------ #
    async def execute(self, plan: QueryPlan) -> List[Record]:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.executed.append(plan)
        return self._run(plan)

    async def stream(self, plan: QueryPlan) -> AsyncIterator[Record]:
        records = await self.execute(plan)
        for position, record in enumerate(records, start=1):
            yield record
            if position % self.batch_size == 0:
                await asyncio.sleep(0)

    def _run(self, plan: QueryPlan) -> List[Record]:
        if self.strict:
            problems = plan.violations()
            if problems:
                raise QueryRejectedError("; ".join(problems))

        kind = self._kind(plan.kind)
        rows = list(self._collections[kind.collection].items())
        for clause in plan.filter_clauses:
            rows = [(doc_id, data) for doc_id, data in rows if self._matches(clause, data)]

        order_by = plan.order_by
        if order_by is not None:
            rows = self._ordered(rows, order_by)
        if plan.limit is not None:
            rows = rows[: plan.limit]
        return [Record.from_document(kind.name, doc_id, data) for doc_id, data in rows]

    @staticmethod
    def _matches(clause: Any, data: Mapping[str, Any]) -> bool:
        value = data.get(clause.field, _MISSING)
        if value is _MISSING:
            return False
        if isinstance(clause, EqualsClause):
            return value == clause.value
        if isinstance(clause, InClause):
            return value in clause.values
        if isinstance(clause, PrefixRangeClause):
            return isinstance(value, str) and clause.lower <= value <= clause.upper
        if isinstance(clause, RangeClause):
            try:
                stored, bound = _comparable(value, clause.value)
            except TypeError:
                return False
            return stored >= bound if clause.comparator == ">=" else stored <= bound
        raise QueryRejectedError(f"unsupported clause {clause.op!r}")

    @staticmethod
    def _ordered(
        rows: List[Tuple[str, Dict[str, Any]]], order_by: OrderByClause
    ) -> List[Tuple[str, Dict[str, Any]]]:
        # Documents without the field come last in either direction.
        present = [row for row in rows if row[1].get(order_by.field) is not None]
        missing = [row for row in rows if row[1].get(order_by.field) is None]
        try:
            present.sort(
                key=lambda row: _sort_value(row[1][order_by.field]),
                reverse=order_by.direction == SortDirection.DESC,
            )
        except TypeError as exc:
            raise QueryRejectedError(
                f"orderBy({order_by.field}) over values of mixed types"
            ) from exc
        return present + missing


__all__ = ["InMemoryStore"]
