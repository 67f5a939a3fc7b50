"""
Classification tables for roll-up summaries.

Each record kind gets one RuleSet mapping status values to the bucket they
count toward, the amount bucket they add to (if any), and whether their
amount belongs in the overall total. A new status is a new table entry; the
aggregator never switches on status values itself.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from recordplan.domain.kinds import INVOICES, QUOTES, InvoiceStatus, QuoteStatus, RecordKind, get_kind


class StatusRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    bucket: str
    amount_bucket: Optional[str] = None
    counts_toward_total: bool = True


class RateRule(BaseModel):
    """Percentage of `total` (or of a bucket count) that falls in `numerator` buckets."""

    model_config = ConfigDict(frozen=True)

    name: str
    numerator: Tuple[str, ...]
    denominator: str = "total"


class RuleSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    amount_field: str
    rules: Dict[str, StatusRule]
    rates: Tuple[RateRule, ...] = ()

    @model_validator(mode="after")
    def _rates_reference_buckets(self) -> "RuleSet":
        known = set(self.buckets) | {"total"}
        for rate in self.rates:
            missing = [b for b in (*rate.numerator, rate.denominator) if b not in known]
            if missing:
                raise ValueError(f"rate '{rate.name}' references unknown buckets {missing}")
        return self

    @property
    def buckets(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(rule.bucket for rule in self.rules.values()))

    @property
    def amount_buckets(self) -> Tuple[str, ...]:
        return tuple(
            dict.fromkeys(r.amount_bucket for r in self.rules.values() if r.amount_bucket)
        )

    def rule_for(self, status: str) -> Optional[StatusRule]:
        return self.rules.get(status)


QUOTE_RULES = RuleSet(
    name=QUOTES.name,
    amount_field=QUOTES.amount_field,
    rules={
        QuoteStatus.PENDENTE.value: StatusRule(bucket="pendentes"),
        QuoteStatus.APROVADO.value: StatusRule(bucket="aprovados", amount_bucket="valorAprovado"),
        QuoteStatus.REJEITADO.value: StatusRule(bucket="rejeitados"),
        QuoteStatus.FATURADO.value: StatusRule(bucket="faturados", amount_bucket="valorFaturado"),
    },
    rates=(
        RateRule(name="taxaAprovacao", numerator=("aprovados",)),
        RateRule(name="taxaConversao", numerator=("faturados",)),
    ),
)

INVOICE_RULES = RuleSet(
    name=INVOICES.name,
    amount_field=INVOICES.amount_field,
    rules={
        InvoiceStatus.EMITIDA.value: StatusRule(bucket="emitidas", amount_bucket="valorPendente"),
        InvoiceStatus.PAGA.value: StatusRule(bucket="pagas", amount_bucket="valorPago"),
        InvoiceStatus.CANCELADA.value: StatusRule(bucket="canceladas", counts_toward_total=False),
    },
    rates=(RateRule(name="taxaRecebimento", numerator=("pagas",)),),
)

_RULES = {QUOTE_RULES.name: QUOTE_RULES, INVOICE_RULES.name: INVOICE_RULES}


def get_rules(kind: "str | RecordKind") -> RuleSet:
    return _RULES[get_kind(kind).name]


__all__ = [
    "StatusRule",
    "RateRule",
    "RuleSet",
    "QUOTE_RULES",
    "INVOICE_RULES",
    "get_rules",
]
