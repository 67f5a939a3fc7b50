"""
Aggregation package for recordplan.

Exports the classification tables, the single-pass summarizers and the
cross-collection dashboard figures.
"""

from recordplan.aggregation.aggregator import (
    GroupedSummary,
    SummaryRecord,
    asummarize,
    asummarize_by,
    field_key,
    summarize,
    summarize_by,
)
from recordplan.aggregation.overview import (
    FinancialOverview,
    PeriodSummary,
    build_overview,
    summarize_periods,
)
from recordplan.aggregation.rules import (
    INVOICE_RULES,
    QUOTE_RULES,
    RateRule,
    RuleSet,
    StatusRule,
    get_rules,
)

__all__ = [
    "GroupedSummary",
    "SummaryRecord",
    "asummarize",
    "asummarize_by",
    "field_key",
    "summarize",
    "summarize_by",
    "FinancialOverview",
    "PeriodSummary",
    "build_overview",
    "summarize_periods",
    "INVOICE_RULES",
    "QUOTE_RULES",
    "RateRule",
    "RuleSet",
    "StatusRule",
    "get_rules",
]
