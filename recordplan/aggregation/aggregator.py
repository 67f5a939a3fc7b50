"""
Single-pass roll-ups over record sequences.

The aggregator consumes records one at a time (sync or async iterables), so a
caller can stream a whole collection through it without materializing it.
Counts and sums are order-independent; rates are derived once, at the end,
from the final counts.

Malformed input never aborts a summary. A record without a status is counted
in `total` and in `unknown`; an unreadable amount counts as zero; a missing
grouping value lands in the "unspecified" group.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncIterable, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from recordplan.aggregation.rules import RuleSet, StatusRule
from recordplan.config import get_settings
from recordplan.errors import AggregationInputError
from recordplan.utils.logging import get_logger

log = get_logger(__name__)

ZERO = Decimal(0)

KeyFunc = Callable[[Any], Any]


class SummaryRecord(BaseModel):
    """
    Roll-up of one record sequence.

    Attributes
    ----------
    total : int
        Every record seen, recognized or not.
    counts : dict[str, int]
        Per-bucket counts; every bucket of the rule set is present.
    amounts : dict[str, Decimal]
        Per-bucket monetary sums for statuses that carry one.
    valor_total : Decimal
        Sum of amounts over records whose status is not voided.
    unknown : int
        Records whose status is missing or not in the rule set.
    rates : dict[str, float]
        Percentages rounded to one decimal; 0.0 when the denominator is 0.
    """

    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    counts: Dict[str, int] = Field(default_factory=dict)
    amounts: Dict[str, Decimal] = Field(default_factory=dict)
    valor_total: Decimal = Field(ZERO, alias="valorTotal")
    unknown: int = 0
    rates: Dict[str, float] = Field(default_factory=dict)

    def as_flat_dict(self) -> Dict[str, Any]:
        """Dashboard shape: counts, amounts and rates side by side."""
        flat: Dict[str, Any] = {"total": self.total}
        flat.update(self.counts)
        flat["valorTotal"] = float(self.valor_total)
        flat.update({name: float(value) for name, value in self.amounts.items()})
        flat.update(self.rates)
        flat["desconhecidos"] = self.unknown
        return flat


class GroupedSummary(BaseModel):
    """SummaryRecords keyed by a grouping value (client, service type, ...)."""

    key_name: Optional[str] = None
    groups: Dict[str, SummaryRecord] = Field(default_factory=dict)

    def ranked(self) -> List[Tuple[str, SummaryRecord]]:
        """Groups by descending total amount, ties broken by key."""
        return sorted(self.groups.items(), key=lambda item: (-item[1].valor_total, item[0]))


def read_amount(record: Any, field: str) -> Decimal:
    """Amount field as Decimal; missing or unreadable values count as zero."""
    value = record.get(field)
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, float) and not math.isfinite(value):
        return ZERO
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        log.debug(
            "Unreadable amount treated as zero",
            extra={"record_id": record.get("id"), "field": field, "value": repr(value)},
        )
        return ZERO
    return amount if amount.is_finite() else ZERO


def _percent(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return round(numerator / denominator * 100, 1)


class _Accumulator:
    """Mutable running totals for one summary; never shared between calls."""

    def __init__(self, rules: RuleSet) -> None:
        self.rules = rules
        self.total = 0
        self.unknown = 0
        self.counts = {bucket: 0 for bucket in rules.buckets}
        self.amounts = {bucket: ZERO for bucket in rules.amount_buckets}
        self.valor_total = ZERO

    def _classify(self, record: Any) -> Optional[StatusRule]:
        status = record.get("status")
        if not isinstance(status, str) or not status:
            raise AggregationInputError(record.get("id"), "status")
        return self.rules.rule_for(status)

    def add(self, record: Any) -> None:
        self.total += 1
        amount = read_amount(record, self.rules.amount_field)
        try:
            rule = self._classify(record)
        except AggregationInputError as exc:
            log.debug(str(exc), extra={"rule_set": self.rules.name})
            rule = None

        if rule is None:
            self.unknown += 1
            self.valor_total += amount
            return

        self.counts[rule.bucket] += 1
        if rule.amount_bucket is not None:
            self.amounts[rule.amount_bucket] += amount
        if rule.counts_toward_total:
            self.valor_total += amount

    def finalize(self) -> SummaryRecord:
        rates: Dict[str, float] = {}
        for rate in self.rules.rates:
            numerator = sum(self.counts[bucket] for bucket in rate.numerator)
            denominator = self.total if rate.denominator == "total" else self.counts[rate.denominator]
            rates[rate.name] = _percent(numerator, denominator)
        return SummaryRecord(
            total=self.total,
            counts=dict(self.counts),
            amounts=dict(self.amounts),
            valor_total=self.valor_total,
            unknown=self.unknown,
            rates=rates,
        )


def field_key(field: str) -> KeyFunc:
    """Grouping function reading one document field."""

    def key(record: Any) -> Any:
        return record.get(field)

    key.__name__ = f"field_key({field})"
    return key


def _group_label(value: Any, unspecified: str) -> str:
    if value is None:
        return unspecified
    label = str(value).strip()
    return label or unspecified


def summarize(records: Iterable[Any], rules: RuleSet) -> SummaryRecord:
    """Reduce a record sequence to one SummaryRecord in a single pass."""
    acc = _Accumulator(rules)
    for record in records:
        acc.add(record)
    return acc.finalize()


async def asummarize(records: AsyncIterable[Any], rules: RuleSet) -> SummaryRecord:
    """`summarize` for async record streams."""
    acc = _Accumulator(rules)
    async for record in records:
        acc.add(record)
    return acc.finalize()


class _GroupedAccumulator:
    def __init__(self, rules: RuleSet, key: KeyFunc, unspecified: Optional[str]) -> None:
        self.rules = rules
        self.key = key
        self.unspecified = unspecified or get_settings().unspecified_label
        self.groups: Dict[str, _Accumulator] = {}

    def add(self, record: Any) -> None:
        label = _group_label(self.key(record), self.unspecified)
        acc = self.groups.get(label)
        if acc is None:
            acc = self.groups[label] = _Accumulator(self.rules)
        acc.add(record)

    def finalize(self, key_name: Optional[str]) -> GroupedSummary:
        return GroupedSummary(
            key_name=key_name,
            groups={label: acc.finalize() for label, acc in self.groups.items()},
        )


def summarize_by(
    records: Iterable[Any],
    rules: RuleSet,
    key: "KeyFunc | str",
    unspecified: Optional[str] = None,
) -> GroupedSummary:
    """
    Group records by `key` and summarize each group.

    `key` is either a field name or a callable taking a record. Records whose
    key is missing or blank go to the `unspecified` group (defaults to the
    configured UNSPECIFIED_LABEL).
    """
    key_name, key_func = _resolve_key(key)
    acc = _GroupedAccumulator(rules, key_func, unspecified)
    for record in records:
        acc.add(record)
    return acc.finalize(key_name)


async def asummarize_by(
    records: AsyncIterable[Any],
    rules: RuleSet,
    key: "KeyFunc | str",
    unspecified: Optional[str] = None,
) -> GroupedSummary:
    """`summarize_by` for async record streams."""
    key_name, key_func = _resolve_key(key)
    acc = _GroupedAccumulator(rules, key_func, unspecified)
    async for record in records:
        acc.add(record)
    return acc.finalize(key_name)


def _resolve_key(key: "KeyFunc | str") -> Tuple[Optional[str], KeyFunc]:
    if isinstance(key, str):
        return key, field_key(key)
    return getattr(key, "__name__", None), key


__all__ = [
    "SummaryRecord",
    "GroupedSummary",
    "read_amount",
    "field_key",
    "summarize",
    "asummarize",
    "summarize_by",
    "asummarize_by",
]
