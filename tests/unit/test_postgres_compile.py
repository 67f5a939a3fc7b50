from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from recordplan.config import Settings
from recordplan.domain.filters import FilterSpec
from recordplan.domain.kinds import SortDirection
from recordplan.infrastructure.db_factory import build_dsn, encode_json
from recordplan.infrastructure.postgres_store import _NUMBER_TEXT, _TIMESTAMP_TEXT, compile_plan
from recordplan.planning.plan import (
    PREFIX_UPPER_SENTINEL,
    InClause,
    OrderByClause,
    PrefixRangeClause,
    QueryPlan,
)
from recordplan.planning.planner import QueryPlanner, full_scan_plan


def test_full_scan_filters_on_collection_only() -> None:
    sql, params = compile_plan(full_scan_plan("quotes"))

    assert sql == "SELECT id, data FROM documents WHERE collection = $1"
    assert params == ["orcamentos"]


def test_index_plan_compiles_in_clause_order() -> None:
    spec = FilterSpec.from_filters("invoices", {"status": "Paga", "limit": 5})
    plan = QueryPlanner.for_kind("invoices").plan(spec)

    sql, params = compile_plan(plan, "public.documents")

    assert sql == (
        "SELECT id, data FROM public.documents WHERE collection = $1"
        " AND data @> $2::jsonb"
        " ORDER BY NULLIF(data -> $3::text, 'null'::jsonb) DESC NULLS LAST"
        " LIMIT $4"
    )
    assert params == ["notasFiscais", {"status": "Paga"}, "dataEmissao", 5]


def test_range_bounds_are_cast_by_value_type() -> None:
    spec = FilterSpec.from_filters(
        "quotes", {"dataInicio": "2024-01-01", "minValor": "10.5"}
    )
    plan = QueryPlanner.for_kind("quotes").plan(spec)

    sql, params = compile_plan(plan)

    assert "THEN (data ->> $2::text)::timestamptz END) >= $3" in sql
    assert "THEN (data ->> $4::text)::numeric END) >= $5" in sql
    assert params[1:5] == [
        "dataCriacao",
        datetime(2024, 1, 1, tzinfo=timezone.utc),
        "valorTotal",
        Decimal("10.5"),
    ]


def test_prefix_and_membership_clauses() -> None:
    plan = QueryPlan(
        kind="quotes",
        clauses=(
            InClause(field="status", values=("Aprovado", "Faturado")),
            PrefixRangeClause.for_prefix("clienteLowerCase", "ac"),
            OrderByClause(field="clienteLowerCase", direction=SortDirection.ASC),
        ),
    )

    sql, params = compile_plan(plan)

    assert "data -> $2::text = ANY($3::jsonb[])" in sql
    prefix_text = "(CASE WHEN jsonb_typeof(data -> $4::text) = 'string' THEN (data ->> $4::text)::text END)"
    assert f'{prefix_text} COLLATE "C" >= $5' in sql
    assert f'{prefix_text} COLLATE "C" <= $6' in sql
    assert "ORDER BY NULLIF(data -> $7::text, 'null'::jsonb) ASC NULLS LAST" in sql
    assert params[2] == ["Aprovado", "Faturado"]
    assert params[4:6] == ["ac", "ac" + PREFIX_UPPER_SENTINEL]


def test_json_null_sort_values_order_with_missing_ones() -> None:
    for direction in SortDirection:
        plan = QueryPlan(
            kind="invoices", clauses=(OrderByClause(field="dataEmissao", direction=direction),)
        )

        sql, params = compile_plan(plan)

        assert sql.endswith(
            f" ORDER BY NULLIF(data -> $2::text, 'null'::jsonb) {direction.value.upper()} NULLS LAST"
        )
        assert params == ["notasFiscais", "dataEmissao"]


def test_range_casts_are_guarded() -> None:
    plan = QueryPlanner.for_kind("quotes").plan(
        FilterSpec.from_filters("quotes", {"minValor": "100"}, sort_field="valorTotal")
    )

    sql, _ = compile_plan(plan)

    assert "CASE WHEN (data ->> $2::text) ~ " in sql
    assert "THEN (data ->> $2::text)::numeric END) >= $3" in sql
    # every cast sits behind a guard
    assert sql.count("::numeric") == sql.count("CASE WHEN")


@pytest.mark.parametrize("text", ["350", "10.5", " -2 ", "1e3", ".5"])
def test_numeric_guard_accepts_number_text(text: str) -> None:
    assert re.match(_NUMBER_TEXT, text)


@pytest.mark.parametrize("text", ["n/a", "", "R$ 10", "12,50", "true"])
def test_numeric_guard_rejects_other_text(text: str) -> None:
    assert re.match(_NUMBER_TEXT, text) is None


@pytest.mark.parametrize(
    "text, matches",
    [
        ("2024-01-10", True),
        ("2024-01-10T12:30:00", True),
        ("2024-01-10T12:30:00.250Z", True),
        ("2024-01-10 12:30:00-03:00", True),
        ("10/01/2024", False),
        ("ontem", False),
    ],
)
def test_timestamp_guard(text: str, matches: bool) -> None:
    assert (re.match(_TIMESTAMP_TEXT, text) is not None) is matches


@pytest.mark.parametrize("table", ["documents; DROP TABLE x", "1docs", "a.b.c", ""])
def test_table_name_is_validated(table: str) -> None:
    with pytest.raises(ValueError):
        compile_plan(full_scan_plan("quotes"), table)


def test_jsonb_encoder_handles_timestamps_and_decimals() -> None:
    payload = encode_json({"d": datetime(2024, 1, 1), "v": Decimal("10.5")})

    assert payload == '{"d": "2024-01-01T00:00:00", "v": 10.5}'


def test_dsn_is_built_from_settings() -> None:
    settings = Settings(db_user="u", db_password="p", db_host="db", db_port=6543, db_name="dash")

    assert build_dsn(settings) == "postgresql://u:p@db:6543/dash"
