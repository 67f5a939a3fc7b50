"""
Normalized query intent.

A FilterSpec is what a caller asks for: a set of per-field predicates plus an
optional sort and limit. It says nothing about how the store should answer;
the planner turns it into a QueryPlan.

Predicates are kept sorted by field so that two specs carrying the same
conditions compare (and hash) equal no matter how they were assembled.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recordplan.domain.kinds import RecordKind, SortDirection, get_kind
from recordplan.utils.logging import get_logger

log = get_logger(__name__)

_END_OF_DAY = time(23, 59, 59, 999_000)


class Equals(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["eq"] = "eq"
    field: str = Field(..., min_length=1)
    value: Any


class Membership(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["in"] = "in"
    field: str = Field(..., min_length=1)
    values: Tuple[Any, ...]

    @field_validator("values")
    @classmethod
    def _non_empty(cls, values: Tuple[Any, ...]) -> Tuple[Any, ...]:
        if not values:
            raise ValueError("membership needs at least one value")
        return values


class Range(BaseModel):
    """Inclusive range; either bound may be omitted, not both."""

    model_config = ConfigDict(frozen=True)

    op: Literal["range"] = "range"
    field: str = Field(..., min_length=1)
    lower: Any = None
    upper: Any = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "Range":
        if self.lower is None and self.upper is None:
            raise ValueError(f"range on '{self.field}' needs a lower or upper bound")
        if self.lower is not None and self.upper is not None:
            try:
                inverted = self.lower > self.upper
            except TypeError as exc:
                raise ValueError(f"range bounds on '{self.field}' are not comparable") from exc
            if inverted:
                raise ValueError(f"range on '{self.field}' has lower > upper")
        return self


class PrefixRange(BaseModel):
    """Case-insensitive "starts with" on a lower-cased text field."""

    model_config = ConfigDict(frozen=True)

    op: Literal["prefix"] = "prefix"
    field: str = Field(..., min_length=1)
    prefix: str = Field(..., min_length=1)

    @field_validator("prefix")
    @classmethod
    def _lower(cls, prefix: str) -> str:
        return prefix.lower()


Predicate = Annotated[Union[Equals, Membership, Range, PrefixRange], Field(discriminator="op")]

EQUALITY_TYPES = (Equals, Membership)
RANGE_TYPES = (Range, PrefixRange)


class FilterSpec(BaseModel):
    """
    Immutable description of a caller's query.

    Attributes
    ----------
    predicates : tuple
        At most one predicate per field, stored sorted by field name.
    sort_field : str | None
        Requested sort; None means "the kind's default sort".
    sort_direction : SortDirection
        Direction for the sort field.
    limit : int | None
        Maximum number of records, when set.
    """

    model_config = ConfigDict(frozen=True)

    predicates: Tuple[Predicate, ...] = ()
    sort_field: Optional[str] = None
    sort_direction: SortDirection = SortDirection.DESC
    limit: Optional[int] = Field(None, gt=0)

    @field_validator("predicates")
    @classmethod
    def _normalize(cls, predicates: Tuple[Any, ...]) -> Tuple[Any, ...]:
        seen: set[str] = set()
        for predicate in predicates:
            if predicate.field in seen:
                raise ValueError(f"more than one predicate on field '{predicate.field}'")
            seen.add(predicate.field)
        return tuple(sorted(predicates, key=lambda p: p.field))

    @property
    def equality_predicates(self) -> Tuple[Union[Equals, Membership], ...]:
        return tuple(p for p in self.predicates if isinstance(p, EQUALITY_TYPES))

    @property
    def range_predicates(self) -> Tuple[Union[Range, PrefixRange], ...]:
        return tuple(p for p in self.predicates if isinstance(p, RANGE_TYPES))

    @property
    def equality_fields(self) -> frozenset[str]:
        return frozenset(p.field for p in self.equality_predicates)

    @property
    def range_field(self) -> Optional[str]:
        """Field of the range-type predicate, when there is exactly one."""
        ranges = self.range_predicates
        return ranges[0].field if len(ranges) == 1 else None

    def predicate_for(self, field: str) -> Optional[Any]:
        for predicate in self.predicates:
            if predicate.field == field:
                return predicate
        return None

    @classmethod
    def from_filters(
        cls,
        kind: "RecordKind | str",
        filters: Mapping[str, Any],
        sort_field: Optional[str] = None,
        sort_direction: "SortDirection | str" = SortDirection.DESC,
    ) -> "FilterSpec":
        """
        Build a spec from the dashboard's raw filter mapping.

        Recognized keys depend on the kind (status, cliente, servico, userId,
        orcamentoId) plus minValor/maxValor, dataInicio/dataFim and limit.
        Empty values are ignored, as are keys the kind does not know.
        """
        kind = get_kind(kind)
        predicates: list[Any] = []

        for key, raw in filters.items():
            if _is_blank(raw):
                continue
            if key in kind.equality_filters:
                predicates.append(Equals(field=kind.equality_filters[key], value=raw))
            elif key in kind.prefix_filters:
                predicates.append(PrefixRange(field=kind.prefix_filters[key], prefix=str(raw)))
            elif key not in {"minValor", "maxValor", "dataInicio", "dataFim", "limit"}:
                log.debug("Ignoring unknown filter key", extra={"kind": kind.name, "key": key})

        lower_amount = _parse_amount(filters.get("minValor"))
        upper_amount = _parse_amount(filters.get("maxValor"))
        if lower_amount is not None or upper_amount is not None:
            predicates.append(Range(field=kind.amount_field, lower=lower_amount, upper=upper_amount))

        start = _parse_day(filters.get("dataInicio"), time.min)
        end = _parse_day(filters.get("dataFim"), _END_OF_DAY)
        if start is not None or end is not None:
            predicates.append(Range(field=kind.date_field, lower=start, upper=end))

        raw_limit = filters.get("limit")
        limit = None if _is_blank(raw_limit) else int(raw_limit)

        return cls(
            predicates=tuple(predicates),
            sort_field=sort_field,
            sort_direction=SortDirection(sort_direction),
            limit=limit,
        )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_amount(value: Any) -> Optional[Decimal]:
    if _is_blank(value):
        return None
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount filter: {value!r}") from exc


def _parse_day(value: Any, at: time) -> Optional[datetime]:
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        day = datetime.fromisoformat(str(value).strip()).date()
    return datetime.combine(day, at)


__all__ = [
    "Equals",
    "Membership",
    "Range",
    "PrefixRange",
    "Predicate",
    "FilterSpec",
]
