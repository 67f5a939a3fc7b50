"""
Index selection for FilterSpecs.

The planner replaces per-collection chains of "if this filter and not that
filter" branches with one ranking over the IndexCatalog. It is a pure
function of (spec, catalog): no clock, no randomness, no I/O, and it never
fails. When nothing in the catalog can serve a spec, the result is the
fallback plan, which applies every predicate as an independent clause.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

from recordplan.domain.filters import Equals, FilterSpec, Membership, PrefixRange, Range
from recordplan.domain.kinds import RecordKind, SortDirection
from recordplan.planning.catalog import IndexCatalog, IndexDescriptor, get_catalog
from recordplan.planning.plan import (
    EqualsClause,
    InClause,
    LimitClause,
    OrderByClause,
    PrefixRangeClause,
    QueryPlan,
    RangeClause,
)
from recordplan.utils.logging import get_logger

log = get_logger(__name__)


def _equality_clause(predicate: "Equals | Membership") -> Any:
    if isinstance(predicate, Membership):
        return InClause(field=predicate.field, values=predicate.values)
    return EqualsClause(field=predicate.field, value=predicate.value)


def _range_clauses(predicate: "Range | PrefixRange") -> List[Any]:
    if isinstance(predicate, PrefixRange):
        return [PrefixRangeClause.for_prefix(predicate.field, predicate.prefix)]
    clauses: List[Any] = []
    if predicate.lower is not None:
        clauses.append(RangeClause(field=predicate.field, comparator=">=", value=predicate.lower))
    if predicate.upper is not None:
        clauses.append(RangeClause(field=predicate.field, comparator="<=", value=predicate.upper))
    return clauses


class QueryPlanner:
    """
    Resolve FilterSpecs against one record kind's IndexCatalog.

    Example
    -------
        planner = QueryPlanner.for_kind("quotes")
        plan = planner.plan(FilterSpec.from_filters("quotes", {"status": "Aprovado"}))
        plan.index_name   # "status+dataCriacao"
    """

    def __init__(self, catalog: IndexCatalog) -> None:
        self.catalog = catalog

    @classmethod
    def for_kind(cls, kind: "str | RecordKind") -> "QueryPlanner":
        return cls(get_catalog(kind))

    def plan(self, spec: FilterSpec) -> QueryPlan:
        """
        Turn a spec into exactly one QueryPlan.

        Ranking prefers the candidate with the most equality fields, then one
        whose range field matches the spec's range predicate, then one whose
        declared direction matches the request, then the earlier catalog entry.
        """
        sort_field, direction = self._resolve_sort(spec)
        descriptor = self.select_index(spec, sort_field, direction)

        if descriptor is None:
            plan = self._fallback_plan(spec, sort_field, direction)
            log.warning(
                "No composite index serves this query; using fallback plan",
                extra={
                    "kind": self.catalog.kind,
                    "equality_fields": sorted(spec.equality_fields),
                    "range_fields": [p.field for p in spec.range_predicates],
                    "sort_field": sort_field,
                },
            )
        else:
            plan = self._index_plan(spec, descriptor, sort_field, direction)
            log.debug(
                "Resolved query to composite index",
                extra={"kind": self.catalog.kind, "index": descriptor.name},
            )
        return plan

    def select_index(
        self,
        spec: FilterSpec,
        sort_field: Optional[str] = None,
        direction: Optional[SortDirection] = None,
    ) -> Optional[IndexDescriptor]:
        """Best index for the spec, or None when only the fallback plan fits."""
        if sort_field is None or direction is None:
            sort_field, direction = self._resolve_sort(spec)

        ranges = spec.range_predicates
        if len(ranges) > 1:
            return None
        range_field = spec.range_field

        candidates = [
            d
            for d in self.catalog.lookup(spec.equality_fields, range_field, sort_field)
            if range_field is None or range_field == d.sort_field
        ]
        if not candidates:
            return None

        def rank(d: IndexDescriptor) -> Tuple[int, int, int, int]:
            return (
                len(d.equality_fields),
                int(range_field is not None and d.range_field == range_field),
                int(d.direction == direction),
                -self.catalog.position(d),
            )

        return max(candidates, key=rank)

    def _resolve_sort(self, spec: FilterSpec) -> Tuple[str, SortDirection]:
        if spec.sort_field is None:
            return self.catalog.default_sort_field, self.catalog.default_direction
        return spec.sort_field, spec.sort_direction

    def _index_plan(
        self,
        spec: FilterSpec,
        descriptor: IndexDescriptor,
        sort_field: str,
        direction: SortDirection,
    ) -> QueryPlan:
        clauses: List[Any] = []
        for field in descriptor.equality_fields:
            clauses.append(_equality_clause(spec.predicate_for(field)))
        for predicate in spec.equality_predicates:
            if predicate.field not in descriptor.equality_fields:
                clauses.append(_equality_clause(predicate))
        for predicate in spec.range_predicates:
            clauses.extend(_range_clauses(predicate))
        clauses.extend(self._tail(spec, sort_field, direction))
        return QueryPlan(
            kind=self.catalog.kind,
            clauses=tuple(clauses),
            index=descriptor,
            used_fallback=False,
        )

    def _fallback_plan(
        self, spec: FilterSpec, sort_field: str, direction: SortDirection
    ) -> QueryPlan:
        clauses: List[Any] = [_equality_clause(p) for p in spec.equality_predicates]
        prefixes = [p for p in spec.range_predicates if isinstance(p, PrefixRange)]
        ranges = [p for p in spec.range_predicates if isinstance(p, Range)]
        for predicate in prefixes + ranges:
            clauses.extend(_range_clauses(predicate))
        clauses.extend(self._tail(spec, sort_field, direction))
        return QueryPlan(kind=self.catalog.kind, clauses=tuple(clauses), used_fallback=True)

    @staticmethod
    def _tail(spec: FilterSpec, sort_field: str, direction: SortDirection) -> List[Any]:
        tail: List[Any] = [OrderByClause(field=sort_field, direction=direction)]
        if spec.limit is not None:
            tail.append(LimitClause(n=spec.limit))
        return tail


def full_scan_plan(kind: "str | RecordKind") -> QueryPlan:
    """
    Unfiltered, unordered read of a whole collection.

    Summaries are computed over every record, including documents that lack
    the default sort field, so no orderBy is attached.
    """
    return QueryPlan(kind=get_catalog(kind).kind, clauses=())


__all__ = ["QueryPlanner", "full_scan_plan"]
