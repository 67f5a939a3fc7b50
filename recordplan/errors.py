"""
Error hierarchy for recordplan.

Planning is total and never fails; the store is the only component allowed to
fail, and aggregation degrades instead of raising. The classes below make
those boundaries explicit so callers can tell a transient store hiccup from a
query the store refuses to run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from recordplan.planning.plan import QueryPlan


class RecordPlanError(Exception):
    """Base class for every error raised by recordplan."""


class PlanningError(RecordPlanError):
    """
    Reserved for planner failures.

    The planner always produces at least the fallback plan, so nothing in this
    package raises it; it exists so callers can write exhaustive handlers.
    """


class StoreError(RecordPlanError):
    """Failure reported by a store adapter."""


class StoreUnavailableError(StoreError):
    """Transient failure: network, pool exhaustion, timeouts."""


class QueryRejectedError(StoreError):
    """Permanent failure: the store refuses the clause combination."""


class StoreExecutionError(RecordPlanError):
    """
    A plan failed while the store was executing it.

    Attributes
    ----------
    plan : QueryPlan
        The plan that was submitted.
    kind : str
        Record kind the plan targeted (e.g. "quotes").
    transient : bool
        Whether retrying the same plan later may succeed.
    """

    def __init__(
        self,
        message: str,
        *,
        plan: "QueryPlan",
        kind: str,
        transient: bool,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.plan = plan
        self.kind = kind
        self.transient = transient
        self.cause = cause

    def __str__(self) -> str:
        target = self.plan.index_name or "fallback"
        return f"{self.args[0]} (kind={self.kind}, plan={target}, transient={self.transient})"


class AggregationInputError(RecordPlanError):
    """A record lacks the fields needed to classify it."""

    def __init__(self, record_id: str | None, field: str) -> None:
        super().__init__(f"record {record_id!r} is missing {field!r}")
        self.record_id = record_id
        self.field = field


__all__ = [
    "RecordPlanError",
    "PlanningError",
    "StoreError",
    "StoreUnavailableError",
    "QueryRejectedError",
    "StoreExecutionError",
    "AggregationInputError",
]
