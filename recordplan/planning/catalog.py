"""
Static registry of the composite indexes each collection has.

The catalogs below mirror the index definitions deployed with the store. They
are module-level constants built once per process and never mutated, so they
can be shared across concurrent callers without locking. Adding an index is a
data change here, not a new branch in the planner.
"""

from __future__ import annotations

from typing import AbstractSet, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from recordplan.domain.kinds import INVOICES, QUOTES, RecordKind, SortDirection, get_kind


class IndexDescriptor(BaseModel):
    """
    One physically available composite index.

    A descriptor with a range field must sort on that same field: the store
    can only combine an inequality filter with an ordering on the same field.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    equality_fields: Tuple[str, ...] = ()
    range_field: Optional[str] = None
    sort_field: str
    direction: SortDirection = SortDirection.DESC

    @model_validator(mode="after")
    def _check_shape(self) -> "IndexDescriptor":
        if len(set(self.equality_fields)) != len(self.equality_fields):
            raise ValueError(f"index '{self.name}' repeats an equality field")
        if self.range_field is not None and self.range_field != self.sort_field:
            raise ValueError(
                f"index '{self.name}' ranges on '{self.range_field}' "
                f"but sorts on '{self.sort_field}'"
            )
        if self.sort_field in self.equality_fields:
            raise ValueError(f"index '{self.name}' sorts on one of its equality fields")
        return self


class IndexCatalog(BaseModel):
    """Read-only list of the indexes available for one record kind."""

    model_config = ConfigDict(frozen=True)

    kind: str
    default_sort_field: str
    default_direction: SortDirection = SortDirection.DESC
    descriptors: Tuple[IndexDescriptor, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _unique_names(self) -> "IndexCatalog":
        names = [d.name for d in self.descriptors]
        if len(set(names)) != len(names):
            raise ValueError(f"catalog '{self.kind}' has duplicate index names")
        return self

    def lookup(
        self,
        equality_fields: AbstractSet[str],
        range_field: Optional[str],
        sort_field: str,
    ) -> Tuple[IndexDescriptor, ...]:
        """
        Descriptors compatible with the given predicate shape, in catalog order.

        A descriptor is compatible when its equality fields are a subset of
        `equality_fields`, it sorts on `sort_field`, and its range field is
        absent or equals `range_field`. A range index also serves queries
        with no range predicate at all, as a plain sort index.
        """
        return tuple(
            d
            for d in self.descriptors
            if set(d.equality_fields) <= set(equality_fields)
            and (d.range_field is None or range_field is None or d.range_field == range_field)
            and d.sort_field == sort_field
        )

    def position(self, descriptor: IndexDescriptor) -> int:
        return self.descriptors.index(descriptor)


def _catalog(kind: RecordKind, *descriptors: IndexDescriptor) -> IndexCatalog:
    return IndexCatalog(
        kind=kind.name,
        default_sort_field=kind.default_sort_field,
        default_direction=kind.default_direction,
        descriptors=descriptors,
    )


QUOTES_CATALOG = _catalog(
    QUOTES,
    IndexDescriptor(
        name="status+dataCriacao", equality_fields=("status",), sort_field="dataCriacao"
    ),
    IndexDescriptor(
        name="servico+dataCriacao", equality_fields=("servico",), sort_field="dataCriacao"
    ),
    IndexDescriptor(
        name="userId+dataCriacao", equality_fields=("userId",), sort_field="dataCriacao"
    ),
    IndexDescriptor(name="valorTotal", sort_field="valorTotal"),
    IndexDescriptor(
        name="clienteLowerCase",
        range_field="clienteLowerCase",
        sort_field="clienteLowerCase",
        direction=SortDirection.ASC,
    ),
    IndexDescriptor(name="dataCriacao", range_field="dataCriacao", sort_field="dataCriacao"),
)

INVOICES_CATALOG = _catalog(
    INVOICES,
    IndexDescriptor(
        name="status+dataEmissao", equality_fields=("status",), sort_field="dataEmissao"
    ),
    IndexDescriptor(name="cliente+valor", equality_fields=("cliente",), sort_field="valor"),
    IndexDescriptor(
        name="orcamentoId+dataEmissao", equality_fields=("orcamentoId",), sort_field="dataEmissao"
    ),
    IndexDescriptor(name="dataEmissao", range_field="dataEmissao", sort_field="dataEmissao"),
)

_CATALOGS: Dict[str, IndexCatalog] = {
    QUOTES_CATALOG.kind: QUOTES_CATALOG,
    INVOICES_CATALOG.kind: INVOICES_CATALOG,
}


def get_catalog(kind: "str | RecordKind") -> IndexCatalog:
    """Return the process-wide catalog for a record kind."""
    return _CATALOGS[get_kind(kind).name]


__all__ = [
    "IndexDescriptor",
    "IndexCatalog",
    "QUOTES_CATALOG",
    "INVOICES_CATALOG",
    "get_catalog",
]
