"""
Record kinds served by the dashboard.

A RecordKind is static metadata about one document collection: where it
lives, which fields carry the amount and the reference date, how it sorts by
default, and how the dashboard's raw filter keys translate into predicates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Tuple


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class QuoteStatus(str, Enum):
    PENDENTE = "Pendente"
    APROVADO = "Aprovado"
    REJEITADO = "Rejeitado"
    FATURADO = "Faturado"


class InvoiceStatus(str, Enum):
    EMITIDA = "Emitida"
    PAGA = "Paga"
    CANCELADA = "Cancelada"


@dataclass(frozen=True)
class RecordKind:
    name: str
    collection: str
    amount_field: str
    date_field: str
    default_sort_field: str
    default_direction: SortDirection
    statuses: Tuple[str, ...]
    # raw dashboard key -> document field compared with equality
    equality_filters: Mapping[str, str] = field(default_factory=dict)
    # raw dashboard key -> lower-cased document field matched by prefix
    prefix_filters: Mapping[str, str] = field(default_factory=dict)


QUOTES = RecordKind(
    name="quotes",
    collection="orcamentos",
    amount_field="valorTotal",
    date_field="dataCriacao",
    default_sort_field="dataCriacao",
    default_direction=SortDirection.DESC,
    statuses=tuple(s.value for s in QuoteStatus),
    equality_filters={"status": "status", "servico": "servico", "userId": "userId"},
    prefix_filters={"cliente": "clienteLowerCase"},
)

INVOICES = RecordKind(
    name="invoices",
    collection="notasFiscais",
    amount_field="valor",
    date_field="dataEmissao",
    default_sort_field="dataEmissao",
    default_direction=SortDirection.DESC,
    statuses=tuple(s.value for s in InvoiceStatus),
    equality_filters={"status": "status", "cliente": "cliente", "orcamentoId": "orcamentoId"},
)

_KINDS = {kind.name: kind for kind in (QUOTES, INVOICES)}


def get_kind(name: "str | RecordKind") -> RecordKind:
    """Resolve a kind by name ("quotes" / "invoices"); kinds pass through."""
    if isinstance(name, RecordKind):
        return name
    try:
        return _KINDS[name]
    except KeyError:
        raise ValueError(f"Unknown record kind '{name}'. Available: {', '.join(_KINDS)}") from None


def available_kinds() -> list[str]:
    return sorted(_KINDS)


__all__ = [
    "SortDirection",
    "QuoteStatus",
    "InvoiceStatus",
    "RecordKind",
    "QUOTES",
    "INVOICES",
    "get_kind",
    "available_kinds",
]
