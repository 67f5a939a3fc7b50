from __future__ import annotations

import itertools
import random
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List

import pytest

from recordplan.aggregation.aggregator import (
    asummarize,
    asummarize_by,
    field_key,
    read_amount,
    summarize,
    summarize_by,
)
from recordplan.aggregation.rules import INVOICE_RULES, QUOTE_RULES, get_rules
from recordplan.domain.models import Record

SCENARIO_A = [
    {"id": "1", "status": "Pendente", "valorTotal": 100},
    {"id": "2", "status": "Aprovado", "valorTotal": 200},
    {"id": "3", "status": "Aprovado", "valorTotal": 50},
]


async def _aiter(items: List[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


def test_quote_summary_counts_sums_and_rates() -> None:
    summary = summarize(SCENARIO_A, QUOTE_RULES)

    assert summary.total == 3
    assert summary.counts["pendentes"] == 1
    assert summary.counts["aprovados"] == 2
    assert summary.amounts["valorAprovado"] == Decimal(250)
    assert summary.valor_total == Decimal(350)
    assert summary.rates["taxaAprovacao"] == 66.7
    assert summary.rates["taxaConversao"] == 0.0


def test_every_bucket_is_present_even_when_empty() -> None:
    summary = summarize([], QUOTE_RULES)

    assert summary.counts == {"pendentes": 0, "aprovados": 0, "rejeitados": 0, "faturados": 0}
    assert summary.amounts == {"valorAprovado": Decimal(0), "valorFaturado": Decimal(0)}
    assert summary.total == 0
    assert all(rate == 0.0 for rate in summary.rates.values())


def test_flat_dict_matches_dashboard_shape() -> None:
    flat = summarize(SCENARIO_A, QUOTE_RULES).as_flat_dict()

    assert flat["total"] == 3
    assert flat["aprovados"] == 2
    assert flat["valorTotal"] == 350.0
    assert flat["valorAprovado"] == 250.0
    assert flat["taxaAprovacao"] == 66.7
    assert flat["desconhecidos"] == 0


def test_cancelled_invoices_are_counted_but_not_summed() -> None:
    records = [
        {"id": "a", "status": "Paga", "valor": 300},
        {"id": "b", "status": "Emitida", "valor": 200},
        {"id": "c", "status": "Cancelada", "valor": 80},
    ]

    summary = summarize(records, INVOICE_RULES)

    assert summary.total == 3
    assert summary.counts["canceladas"] == 1
    assert summary.amounts == {"valorPendente": Decimal(200), "valorPago": Decimal(300)}
    assert summary.valor_total == Decimal(500)
    assert summary.rates["taxaRecebimento"] == 33.3


def test_missing_and_unknown_status_count_as_unknown() -> None:
    records = [
        {"id": "a", "status": "Aprovado", "valorTotal": 10},
        {"id": "b", "valorTotal": 5},
        {"id": "c", "status": "Arquivado", "valorTotal": 1},
        {"id": "d", "status": "", "valorTotal": None},
    ]

    summary = summarize(records, QUOTE_RULES)

    assert summary.total == 4
    assert summary.unknown == 3
    assert sum(summary.counts.values()) + summary.unknown == summary.total
    assert summary.valor_total == Decimal(16)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, Decimal(0)),
        ("12.5", Decimal("12.5")),
        ("abc", Decimal(0)),
        (True, Decimal(0)),
        (float("nan"), Decimal(0)),
        (float("inf"), Decimal(0)),
        (7, Decimal(7)),
    ],
)
def test_read_amount_degrades_to_zero(raw: Any, expected: Decimal) -> None:
    assert read_amount({"valor": raw}, "valor") == expected


def test_totals_are_permutation_invariant() -> None:
    rng = random.Random(7)
    statuses = ["Pendente", "Aprovado", "Rejeitado", "Faturado", "Outro", None]
    records: List[Dict[str, Any]] = [
        {"id": str(i), "status": rng.choice(statuses), "valorTotal": rng.randint(0, 500)}
        for i in range(40)
    ]
    expected = summarize(records, QUOTE_RULES)

    for _ in range(5):
        shuffled = records[:]
        rng.shuffle(shuffled)
        summary = summarize(shuffled, QUOTE_RULES)
        assert summary == expected
        assert summary.total == len(records)
        assert sum(summary.counts.values()) + summary.unknown == summary.total


def test_valor_total_sums_every_non_voided_record() -> None:
    for statuses in itertools.product(["Emitida", "Paga", "Cancelada", None], repeat=3):
        records = [{"id": str(i), "status": s, "valor": 10 * (i + 1)} for i, s in enumerate(statuses)]
        expected = sum(r["valor"] for r in records if r["status"] != "Cancelada")
        assert summarize(records, INVOICE_RULES).valor_total == Decimal(expected)


def test_grouping_collapses_blank_keys_into_unspecified() -> None:
    records = [
        {"id": "1", "status": "Pendente", "cliente": "A", "valorTotal": 1},
        {"id": "2", "status": "Aprovado", "cliente": "A", "valorTotal": 2},
        {"id": "3", "status": "Aprovado", "cliente": "", "valorTotal": 3},
        {"id": "4", "status": "Aprovado", "cliente": None, "valorTotal": 4},
    ]

    grouped = summarize_by(records, QUOTE_RULES, "cliente")

    assert set(grouped.groups) == {"A", "unspecified"}
    assert grouped.groups["A"].total == 2
    assert grouped.groups["unspecified"].total == 2
    assert grouped.key_name == "cliente"


def test_grouping_label_follows_settings(monkeypatch) -> None:
    monkeypatch.setenv("UNSPECIFIED_LABEL", "Não informado")

    grouped = summarize_by([{"id": "1", "status": "Paga"}], INVOICE_RULES, "cliente")

    assert list(grouped.groups) == ["Não informado"]


def test_ranked_orders_by_amount_then_key() -> None:
    records = [
        {"id": "1", "status": "Aprovado", "servico": "b", "valorTotal": 10},
        {"id": "2", "status": "Aprovado", "servico": "a", "valorTotal": 10},
        {"id": "3", "status": "Aprovado", "servico": "c", "valorTotal": 99},
    ]

    ranked = summarize_by(records, QUOTE_RULES, field_key("servico")).ranked()

    assert [label for label, _ in ranked] == ["c", "a", "b"]


def test_records_and_mappings_are_interchangeable() -> None:
    as_records = [Record.from_document("quotes", r["id"], r) for r in SCENARIO_A]

    assert summarize(as_records, get_rules("quotes")) == summarize(SCENARIO_A, QUOTE_RULES)


@pytest.mark.asyncio
async def test_async_variants_match_sync_results() -> None:
    assert await asummarize(_aiter(SCENARIO_A), QUOTE_RULES) == summarize(SCENARIO_A, QUOTE_RULES)
    grouped = await asummarize_by(_aiter(SCENARIO_A), QUOTE_RULES, "status")
    assert grouped == summarize_by(SCENARIO_A, QUOTE_RULES, "status")
