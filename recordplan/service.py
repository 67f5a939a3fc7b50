"""
Dashboard service: plan, execute, aggregate.

Usage (example from the CLI):
    from recordplan.service import DashboardService

    service = DashboardService(build_store())
    result = await service.list_records("quotes", FilterSpec.from_filters("quotes", {"status": "Aprovado"}))
    overview = await service.overview()

Every call plans afresh and executes exactly one store query per collection it
touches; nothing is cached between calls. Independent reads (the quotes and
invoices summaries behind the overview) run concurrently, each with its own
accumulator. Store failures reach the caller as StoreExecutionError.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from recordplan.aggregation.aggregator import (
    GroupedSummary,
    SummaryRecord,
    asummarize,
    asummarize_by,
    summarize,
    summarize_by,
)
from recordplan.aggregation.overview import (
    FinancialOverview,
    PeriodSummary,
    build_overview,
    summarize_periods,
)
from recordplan.aggregation.rules import get_rules
from recordplan.config import Settings, get_settings
from recordplan.domain.filters import FilterSpec
from recordplan.domain.kinds import INVOICES, QUOTES, RecordKind, get_kind
from recordplan.domain.models import Record
from recordplan.infrastructure.store import Store, StreamingStore, consume_plan, run_plan
from recordplan.planning.plan import QueryPlan
from recordplan.planning.planner import QueryPlanner, full_scan_plan
from recordplan.utils.logging import get_logger
from recordplan.utils.profiler import profile_block

log = get_logger(__name__)


class QueryResult(BaseModel):
    """Records returned for one listing, with the plan that produced them."""

    records: List[Record]
    plan: QueryPlan
    duration_seconds: float

    @property
    def count(self) -> int:
        return len(self.records)


class DashboardService:
    """
    Entry point for listings and roll-ups over quotes and invoices.

    Parameters
    ----------
    store : Store
        Adapter executing plans; streaming is used when it supports it.
    settings : Settings, optional
        Defaults to the cached process settings.
    """

    def __init__(self, store: Store, settings: Optional[Settings] = None) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self._planners: Dict[str, QueryPlanner] = {}

    @property
    def timeout(self) -> float:
        return self.settings.store_timeout_seconds

    def planner(self, kind: "str | RecordKind") -> QueryPlanner:
        name = get_kind(kind).name
        if name not in self._planners:
            self._planners[name] = QueryPlanner.for_kind(name)
        return self._planners[name]

    def plan(self, kind: "str | RecordKind", spec: FilterSpec) -> QueryPlan:
        return self.planner(kind).plan(spec)

    async def list_records(self, kind: "str | RecordKind", spec: FilterSpec) -> QueryResult:
        """Plan `spec`, run it once, and return the records in plan order."""
        plan = self.plan(kind, spec)
        with profile_block(f"list:{plan.kind}") as stats:
            records = await run_plan(self.store, plan, self.timeout)
        log.info(
            "Listed records",
            extra={
                **stats.as_log_extra(),
                "kind": plan.kind,
                "index": plan.index_name,
                "used_fallback": plan.used_fallback,
                "rows": len(records),
            },
        )
        return QueryResult(
            records=list(records), plan=plan, duration_seconds=stats.duration_seconds
        )

    async def fetch_all(self, kind: "str | RecordKind") -> Sequence[Record]:
        """Every record of a collection, unordered."""
        plan = full_scan_plan(kind)
        with profile_block(f"fetch:{plan.kind}") as stats:
            records = await run_plan(self.store, plan, self.timeout)
        log.debug("Fetched collection", extra={**stats.as_log_extra(), "rows": len(records)})
        return records

    async def summary(self, kind: "str | RecordKind") -> SummaryRecord:
        """Roll up a whole collection with its kind's rule set."""
        plan = full_scan_plan(kind)
        rules = get_rules(plan.kind)
        with profile_block(f"summary:{plan.kind}") as stats:
            if isinstance(self.store, StreamingStore):
                result = await consume_plan(
                    self.store, plan, lambda records: asummarize(records, rules), self.timeout
                )
            else:
                result = summarize(await run_plan(self.store, plan, self.timeout), rules)
        log.info(
            "Computed summary",
            extra={**stats.as_log_extra(), "kind": plan.kind, "total": result.total},
        )
        return result

    async def grouped_summary(self, kind: "str | RecordKind", field: str) -> GroupedSummary:
        """Roll up a collection per value of `field` (e.g. quotes by servico)."""
        plan = full_scan_plan(kind)
        rules = get_rules(plan.kind)
        unspecified = self.settings.unspecified_label

        async def consume(records: Any) -> GroupedSummary:
            return await asummarize_by(records, rules, field, unspecified)

        with profile_block(f"grouped:{plan.kind}:{field}") as stats:
            if isinstance(self.store, StreamingStore):
                result = await consume_plan(self.store, plan, consume, self.timeout)
            else:
                records = await run_plan(self.store, plan, self.timeout)
                result = summarize_by(records, rules, field, unspecified)
        log.info(
            "Computed grouped summary",
            extra={
                **stats.as_log_extra(),
                "kind": plan.kind,
                "field": field,
                "groups": len(result.groups),
            },
        )
        return result

    async def overview(self) -> FinancialOverview:
        """Quotes and invoices summaries, fetched concurrently, combined."""
        quotes, invoices = await asyncio.gather(self.summary(QUOTES), self.summary(INVOICES))
        return build_overview(quotes, invoices, self.settings.margin_cost_ratio)

    async def periods(self) -> List[PeriodSummary]:
        """Monthly quoted vs. invoiced amounts with the estimated margin."""
        quotes, invoices = await asyncio.gather(self.fetch_all(QUOTES), self.fetch_all(INVOICES))
        return summarize_periods(
            quotes,
            invoices,
            cost_ratio=self.settings.margin_cost_ratio,
            unspecified=self.settings.unspecified_label,
        )


__all__ = ["QueryResult", "DashboardService"]
