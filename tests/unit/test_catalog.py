from __future__ import annotations

import pytest
from pydantic import ValidationError

from recordplan.domain.kinds import SortDirection
from recordplan.planning.catalog import (
    INVOICES_CATALOG,
    QUOTES_CATALOG,
    IndexCatalog,
    IndexDescriptor,
    get_catalog,
)


def test_get_catalog_resolves_by_kind_name() -> None:
    assert get_catalog("quotes") is QUOTES_CATALOG
    assert get_catalog("invoices") is INVOICES_CATALOG
    with pytest.raises(ValueError):
        get_catalog("receipts")


def test_lookup_uses_subset_rule_and_sort_field() -> None:
    names = [d.name for d in QUOTES_CATALOG.lookup({"status", "servico"}, None, "dataCriacao")]

    assert names == ["status+dataCriacao", "servico+dataCriacao", "dataCriacao"]


def test_lookup_excludes_other_sort_fields() -> None:
    names = [d.name for d in QUOTES_CATALOG.lookup(frozenset(), None, "valorTotal")]

    assert names == ["valorTotal"]


def test_range_descriptor_only_matches_its_range_field() -> None:
    assert QUOTES_CATALOG.lookup(frozenset(), "valorTotal", "clienteLowerCase") == ()
    names = [d.name for d in QUOTES_CATALOG.lookup(frozenset(), "clienteLowerCase", "clienteLowerCase")]
    assert names == ["clienteLowerCase"]


def test_descriptor_range_field_must_be_sort_field() -> None:
    with pytest.raises(ValidationError):
        IndexDescriptor(name="bad", range_field="valor", sort_field="dataEmissao")


def test_descriptor_cannot_sort_on_equality_field() -> None:
    with pytest.raises(ValidationError):
        IndexDescriptor(name="bad", equality_fields=("status",), sort_field="status")


def test_catalog_rejects_duplicate_names() -> None:
    descriptor = IndexDescriptor(name="dup", sort_field="dataEmissao")
    with pytest.raises(ValidationError):
        IndexCatalog(kind="invoices", default_sort_field="dataEmissao", descriptors=(descriptor, descriptor))


def test_catalogs_are_immutable() -> None:
    with pytest.raises(ValidationError):
        QUOTES_CATALOG.default_direction = SortDirection.ASC


def test_date_indexes_serve_range_and_sort() -> None:
    for catalog, field in ((QUOTES_CATALOG, "dataCriacao"), (INVOICES_CATALOG, "dataEmissao")):
        ranged = [d.name for d in catalog.lookup(frozenset(), field, field)]
        sort_only = [d.name for d in catalog.lookup(frozenset(), None, field)]

        assert ranged == [field]
        assert sort_only == [field]
        assert catalog.lookup(frozenset(), "valorTotal", field) == ()
