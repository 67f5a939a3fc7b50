"""
recordplan - query routing and roll-ups for a quotes/invoices dashboard.

The package turns the dashboard's loosely-structured filters into a single
store query that a declared composite index can serve, and reduces the
returned records into summaries:

- FilterSpec: validated predicates, sort and limit
- IndexCatalog / QueryPlanner: ranked index selection with a fallback plan
- Store adapters: in-memory (fixtures, tests) and PostgreSQL (asyncpg)
- Aggregation: per-status counts, sums and rates, grouped summaries,
  the financial overview and monthly periods
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from recordplan.aggregation import (
    FinancialOverview,
    GroupedSummary,
    SummaryRecord,
    build_overview,
    summarize,
    summarize_by,
    summarize_periods,
)
from recordplan.config import Settings, get_settings
from recordplan.domain import FilterSpec, Record, get_kind
from recordplan.errors import (
    AggregationInputError,
    PlanningError,
    QueryRejectedError,
    RecordPlanError,
    StoreExecutionError,
    StoreUnavailableError,
)
from recordplan.infrastructure import InMemoryStore, PostgresStore, Store, build_store, run_plan
from recordplan.planning import IndexCatalog, IndexDescriptor, QueryPlan, QueryPlanner, get_catalog
from recordplan.service import DashboardService, QueryResult
from recordplan.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "FilterSpec",
    "Record",
    "get_kind",
    # Planning
    "IndexCatalog",
    "IndexDescriptor",
    "QueryPlan",
    "QueryPlanner",
    "get_catalog",
    # Store
    "Store",
    "InMemoryStore",
    "PostgresStore",
    "build_store",
    "run_plan",
    # Aggregation
    "SummaryRecord",
    "GroupedSummary",
    "FinancialOverview",
    "summarize",
    "summarize_by",
    "build_overview",
    "summarize_periods",
    # Service
    "DashboardService",
    "QueryResult",
    # Errors
    "RecordPlanError",
    "PlanningError",
    "StoreExecutionError",
    "StoreUnavailableError",
    "QueryRejectedError",
    "AggregationInputError",
    # Logging
    "configure_logging",
    "get_logger",
]
