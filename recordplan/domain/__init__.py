"""
Domain package for recordplan.

Exports record kinds, the record snapshot model and the FilterSpec query
model. Keep this package focused on data definitions and validation concerns.
"""

from recordplan.domain.filters import Equals, FilterSpec, Membership, PrefixRange, Range
from recordplan.domain.kinds import (
    INVOICES,
    QUOTES,
    InvoiceStatus,
    QuoteStatus,
    RecordKind,
    SortDirection,
    available_kinds,
    get_kind,
)
from recordplan.domain.models import Record

__all__ = [
    "Equals",
    "FilterSpec",
    "Membership",
    "PrefixRange",
    "Range",
    "INVOICES",
    "QUOTES",
    "InvoiceStatus",
    "QuoteStatus",
    "RecordKind",
    "SortDirection",
    "available_kinds",
    "get_kind",
    "Record",
]
