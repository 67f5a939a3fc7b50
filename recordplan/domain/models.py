"""
Domain models for recordplan.

Records are read-only snapshots of store documents. The core never mutates
them; it only reads identifiers, statuses, amounts and timestamps.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field


class Record(BaseModel):
    """
    Snapshot of a single quote or invoice document.
    """

    id: str = Field(..., description="Document identifier.")
    kind: str = Field(..., description="Record kind name (quotes / invoices).")
    data: Dict[str, Any] = Field(default_factory=dict, description="Document fields.")

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": False,
    }

    @classmethod
    def from_document(cls, kind: str, doc_id: Any, data: Mapping[str, Any]) -> "Record":
        return cls(id=str(doc_id), kind=kind, data=dict(data))

    def get(self, field: str, default: Any = None) -> Any:
        if field == "id":
            return self.id
        return self.data.get(field, default)

    @property
    def status(self) -> Optional[str]:
        value = self.data.get("status")
        return value if isinstance(value, str) and value else None


__all__ = ["Record"]
