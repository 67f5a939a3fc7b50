"""
Cross-collection dashboard figures.

Combines a quotes summary with an invoices summary (approval, conversion and
payment rates plus an estimated margin), and buckets both collections by
calendar month for the period chart.

The margin is received invoice payments minus a fixed share (MARGIN_COST_RATIO,
0.7 by default) of the gross quoted value. It is an estimate carried over from
the dashboard as-is; do not read it as an accounting figure.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

from recordplan.aggregation.aggregator import ZERO, SummaryRecord, read_amount
from recordplan.config import get_settings
from recordplan.domain.kinds import INVOICES, QUOTES


class FinancialOverview(BaseModel):
    quotes: SummaryRecord
    invoices: SummaryRecord
    margin: Decimal
    approval_rate: float
    conversion_rate: float
    payment_rate: float


class PeriodSummary(BaseModel):
    period: str
    quotes_amount: Decimal = ZERO
    invoices_amount: Decimal = ZERO
    margin: Decimal = ZERO


def _ratio(cost_ratio: Optional[float]) -> Decimal:
    if cost_ratio is None:
        cost_ratio = get_settings().margin_cost_ratio
    return Decimal(str(cost_ratio))


def estimate_margin(received: Decimal, quoted: Decimal, cost_ratio: Optional[float] = None) -> Decimal:
    return received - quoted * _ratio(cost_ratio)


def build_overview(
    quotes: SummaryRecord,
    invoices: SummaryRecord,
    cost_ratio: Optional[float] = None,
) -> FinancialOverview:
    return FinancialOverview(
        quotes=quotes,
        invoices=invoices,
        margin=estimate_margin(invoices.amounts.get("valorPago", ZERO), quotes.valor_total, cost_ratio),
        approval_rate=quotes.rates.get("taxaAprovacao", 0.0),
        conversion_rate=quotes.rates.get("taxaConversao", 0.0),
        payment_rate=invoices.rates.get("taxaRecebimento", 0.0),
    )


def period_key(value: Any) -> Optional[str]:
    """YYYY-MM for datetimes, dates and ISO strings; None when unreadable."""
    if isinstance(value, (datetime, date)):
        return f"{value.year:04d}-{value.month:02d}"
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return f"{parsed.year:04d}-{parsed.month:02d}"
    return None


def summarize_periods(
    quotes: Iterable[Any],
    invoices: Iterable[Any],
    cost_ratio: Optional[float] = None,
    unspecified: Optional[str] = None,
) -> List[PeriodSummary]:
    """
    Monthly quoted and invoiced amounts with the estimated margin.

    Records without a readable date are collected under the unspecified
    label, which sorts after every real month.
    """
    unspecified = unspecified or get_settings().unspecified_label
    ratio = _ratio(cost_ratio)
    periods: Dict[str, PeriodSummary] = {}

    def bucket(record: Any, date_field: str) -> PeriodSummary:
        label = period_key(record.get(date_field)) or unspecified
        if label not in periods:
            periods[label] = PeriodSummary(period=label)
        return periods[label]

    for record in quotes:
        entry = bucket(record, QUOTES.date_field)
        entry.quotes_amount += read_amount(record, QUOTES.amount_field)
    for record in invoices:
        entry = bucket(record, INVOICES.date_field)
        entry.invoices_amount += read_amount(record, INVOICES.amount_field)

    for entry in periods.values():
        entry.margin = entry.invoices_amount - entry.quotes_amount * ratio

    return sorted(periods.values(), key=lambda p: (p.period == unspecified, p.period))


__all__ = [
    "FinancialOverview",
    "PeriodSummary",
    "estimate_margin",
    "build_overview",
    "period_key",
    "summarize_periods",
]
