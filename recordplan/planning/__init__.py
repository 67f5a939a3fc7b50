"""
Planning package for recordplan.

Exports the index catalogs, the query plan model and the planner that
resolves FilterSpecs into plans.
"""

from recordplan.planning.catalog import (
    INVOICES_CATALOG,
    QUOTES_CATALOG,
    IndexCatalog,
    IndexDescriptor,
    get_catalog,
)
from recordplan.planning.plan import (
    EqualsClause,
    InClause,
    LimitClause,
    OrderByClause,
    PrefixRangeClause,
    QueryPlan,
    RangeClause,
)
from recordplan.planning.planner import QueryPlanner, full_scan_plan

__all__ = [
    "INVOICES_CATALOG",
    "QUOTES_CATALOG",
    "IndexCatalog",
    "IndexDescriptor",
    "get_catalog",
    "EqualsClause",
    "InClause",
    "LimitClause",
    "OrderByClause",
    "PrefixRangeClause",
    "QueryPlan",
    "RangeClause",
    "QueryPlanner",
    "full_scan_plan",
]
