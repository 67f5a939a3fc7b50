from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from recordplan.domain.filters import Equals, FilterSpec, Membership, PrefixRange, Range
from recordplan.domain.kinds import SortDirection

LIMIT = 25


def test_from_filters_maps_quote_keys_to_predicates() -> None:
    spec = FilterSpec.from_filters(
        "quotes",
        {"status": "Aprovado", "cliente": "ACme", "minValor": "100", "limit": str(LIMIT)},
    )

    assert spec.predicate_for("status") == Equals(field="status", value="Aprovado")
    assert spec.predicate_for("clienteLowerCase") == PrefixRange(field="clienteLowerCase", prefix="acme")
    assert spec.predicate_for("valorTotal") == Range(field="valorTotal", lower=Decimal("100"))
    assert spec.limit == LIMIT
    assert spec.sort_field is None
    assert spec.sort_direction == SortDirection.DESC


def test_from_filters_ignores_blank_and_unknown_keys() -> None:
    spec = FilterSpec.from_filters(
        "quotes", {"status": "", "servico": "   ", "maxValor": None, "color": "blue"}
    )

    assert spec.predicates == ()
    assert spec.limit is None


def test_invoice_cliente_is_an_exact_match() -> None:
    spec = FilterSpec.from_filters("invoices", {"cliente": "Acme"})

    assert spec.predicates == (Equals(field="cliente", value="Acme"),)


def test_date_filters_cover_whole_days() -> None:
    spec = FilterSpec.from_filters("quotes", {"dataInicio": "2024-01-01", "dataFim": "2024-01-31"})

    predicate = spec.predicate_for("dataCriacao")
    assert predicate.lower == datetime(2024, 1, 1, 0, 0)
    assert predicate.upper == datetime(2024, 1, 31, 23, 59, 59, 999_000)


def test_predicates_are_kept_sorted_by_field() -> None:
    a = FilterSpec(predicates=(Equals(field="status", value="Paga"), Equals(field="cliente", value="X")))
    b = FilterSpec(predicates=(Equals(field="cliente", value="X"), Equals(field="status", value="Paga")))

    assert a == b
    assert [p.field for p in a.predicates] == ["cliente", "status"]


def test_two_predicates_on_one_field_are_rejected() -> None:
    with pytest.raises(ValidationError):
        FilterSpec(
            predicates=(
                Equals(field="status", value="Paga"),
                Membership(field="status", values=("Emitida",)),
            )
        )


def test_range_needs_a_bound_and_ordered_bounds() -> None:
    with pytest.raises(ValidationError):
        Range(field="valor")
    with pytest.raises(ValidationError):
        Range(field="valor", lower=10, upper=5)


def test_membership_needs_values() -> None:
    with pytest.raises(ValidationError):
        Membership(field="status", values=())


def test_non_positive_limit_is_rejected() -> None:
    with pytest.raises(ValidationError):
        FilterSpec(limit=0)


def test_invalid_amount_filter_raises_value_error() -> None:
    with pytest.raises(ValueError):
        FilterSpec.from_filters("quotes", {"minValor": "lots"})


def test_multiple_ranges_are_accepted_at_construction() -> None:
    spec = FilterSpec.from_filters("quotes", {"minValor": "10", "dataInicio": "2024-01-01"})

    assert len(spec.range_predicates) == 2
    assert spec.range_field is None
