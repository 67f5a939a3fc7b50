"""
Resolved execution recipes.

A QueryPlan is the ordered list of clauses the store receives: filter clauses
first, then at most one orderBy and at most one limit. Clauses are plain
frozen models so plans compare structurally, which is what makes planner
output testable and lets the store serve identical queries from one index.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from recordplan.domain.kinds import SortDirection
from recordplan.planning.catalog import IndexDescriptor

# Largest code point in the BMP private-use block; appended to a prefix it
# bounds every string that starts with that prefix.
PREFIX_UPPER_SENTINEL = "\uf8ff"


class EqualsClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["equals"] = "equals"
    field: str
    value: Any

    def describe(self) -> str:
        return f"equals({self.field}, {self.value!r})"


class InClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["in"] = "in"
    field: str
    values: Tuple[Any, ...]

    def describe(self) -> str:
        return f"in({self.field}, {list(self.values)!r})"


class RangeClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["range"] = "range"
    field: str
    comparator: Literal[">=", "<="]
    value: Any

    def describe(self) -> str:
        return f"range({self.field}, {self.comparator}, {self.value!r})"


class PrefixRangeClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["prefixRange"] = "prefixRange"
    field: str
    lower: str
    upper: str

    @classmethod
    def for_prefix(cls, field: str, prefix: str) -> "PrefixRangeClause":
        return cls(field=field, lower=prefix, upper=prefix + PREFIX_UPPER_SENTINEL)

    def describe(self) -> str:
        return f"prefixRange({self.field}, {self.lower!r}, {self.lower!r}+U+F8FF)"


class OrderByClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["orderBy"] = "orderBy"
    field: str
    direction: SortDirection

    def describe(self) -> str:
        return f"orderBy({self.field}, {self.direction.value})"


class LimitClause(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["limit"] = "limit"
    n: int = Field(..., gt=0)

    def describe(self) -> str:
        return f"limit({self.n})"


FilterClause = Union[EqualsClause, InClause, RangeClause, PrefixRangeClause]
Clause = Annotated[
    Union[EqualsClause, InClause, RangeClause, PrefixRangeClause, OrderByClause, LimitClause],
    Field(discriminator="op"),
]

_FILTER_TYPES = (EqualsClause, InClause, RangeClause, PrefixRangeClause)
_RANGE_TYPES = (RangeClause, PrefixRangeClause)


class QueryPlan(BaseModel):
    """
    Ordered clauses for one store query.

    Attributes
    ----------
    kind : str
        Record kind the plan targets.
    clauses : tuple
        Filter clauses, then an optional orderBy, then an optional limit.
    index : IndexDescriptor | None
        Composite index the plan was built for; None on the fallback path.
    used_fallback : bool
        True when no composite index could serve the spec.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    clauses: Tuple[Clause, ...] = ()
    index: Optional[IndexDescriptor] = None
    used_fallback: bool = False

    @field_validator("clauses")
    @classmethod
    def _check_shape(cls, clauses: Tuple[Any, ...]) -> Tuple[Any, ...]:
        # filters* orderBy? limit?
        stage = 0
        for clause in clauses:
            if isinstance(clause, _FILTER_TYPES):
                current = 0
            elif isinstance(clause, OrderByClause):
                current = 1
            else:
                current = 2
            if current < stage or (current > 0 and current == stage):
                raise ValueError(f"clause {clause.describe()} is out of order")
            stage = current
        return clauses

    @property
    def index_name(self) -> Optional[str]:
        return self.index.name if self.index is not None else None

    @property
    def filter_clauses(self) -> Tuple[FilterClause, ...]:
        return tuple(c for c in self.clauses if isinstance(c, _FILTER_TYPES))

    @property
    def order_by(self) -> Optional[OrderByClause]:
        return next((c for c in self.clauses if isinstance(c, OrderByClause)), None)

    @property
    def limit(self) -> Optional[int]:
        clause = next((c for c in self.clauses if isinstance(c, LimitClause)), None)
        return clause.n if clause is not None else None

    def violations(self) -> List[str]:
        """
        Store restrictions this plan breaks.

        The store accepts range-type clauses on a single field only, and that
        field must also be the orderBy field when an orderBy is present.
        """
        problems: List[str] = []
        range_fields = sorted({c.field for c in self.clauses if isinstance(c, _RANGE_TYPES)})
        if len(range_fields) > 1:
            problems.append(f"range clauses on more than one field: {', '.join(range_fields)}")
        order_by = self.order_by
        if range_fields and order_by is not None and order_by.field not in range_fields:
            problems.append(
                f"orderBy({order_by.field}) differs from range field {range_fields[0]}"
            )
        return problems

    def describe(self) -> List[str]:
        return [clause.describe() for clause in self.clauses]


__all__ = [
    "PREFIX_UPPER_SENTINEL",
    "EqualsClause",
    "InClause",
    "RangeClause",
    "PrefixRangeClause",
    "OrderByClause",
    "LimitClause",
    "FilterClause",
    "Clause",
    "QueryPlan",
]
