"""
Pytest configuration for recordplan.

Provides fixtures for:
- Settings isolation (the cached get_settings is cleared around each test)
- Quote and invoice document factories
- In-memory stores seeded with a small dashboard dataset
- Settings for the PostgreSQL integration tests
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List

import pytest

from recordplan.config import Settings, get_settings
from recordplan.infrastructure.memory_store import InMemoryStore

FIXTURE_PATH = Path(__file__).parent / "fixtures" / "dashboard.json"

Document = Dict[str, Any]


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep a developer's .env or shell exports from leaking into unit tests."""
    for name in (
        "STORE_BACKEND",
        "STORE_FIXTURE_PATH",
        "UNSPECIFIED_LABEL",
        "MARGIN_COST_RATIO",
        "STORE_TIMEOUT_SECONDS",
        "LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_quote() -> Callable[..., Document]:
    counter = {"n": 0}

    def factory(**fields: Any) -> Document:
        counter["n"] += 1
        doc: Document = {
            "id": f"q{counter['n']}",
            "status": "Pendente",
            "cliente": "Acme",
            "clienteLowerCase": "acme",
            "servico": "Instalação",
            "valorTotal": 100,
            "dataCriacao": datetime(2024, 1, counter["n"] % 28 + 1, 12, 0),
        }
        doc.update(fields)
        if "cliente" in fields and "clienteLowerCase" not in fields and isinstance(fields["cliente"], str):
            doc["clienteLowerCase"] = fields["cliente"].lower()
        return doc

    return factory


@pytest.fixture
def make_invoice() -> Callable[..., Document]:
    counter = {"n": 0}

    def factory(**fields: Any) -> Document:
        counter["n"] += 1
        doc: Document = {
            "id": f"n{counter['n']}",
            "status": "Emitida",
            "cliente": "Acme",
            "valor": 100,
            "dataEmissao": datetime(2024, 1, counter["n"] % 28 + 1, 12, 0),
        }
        doc.update(fields)
        return doc

    return factory


@pytest.fixture
def quote_docs(make_quote: Callable[..., Document]) -> List[Document]:
    return [
        make_quote(status="Aprovado", cliente="Acme", servico="Manutenção", valorTotal=200,
                   dataCriacao=datetime(2024, 1, 10)),
        make_quote(status="Pendente", cliente="Beta Ltda", servico="Instalação", valorTotal=100,
                   dataCriacao=datetime(2024, 1, 20)),
        make_quote(status="Faturado", cliente="Acme", servico="Instalação", valorTotal=300,
                   dataCriacao=datetime(2024, 2, 5)),
        make_quote(status="Rejeitado", cliente="Gamma", servico="Manutenção", valorTotal=50,
                   dataCriacao=datetime(2024, 2, 15)),
    ]


@pytest.fixture
def invoice_docs(make_invoice: Callable[..., Document]) -> List[Document]:
    return [
        make_invoice(status="Paga", cliente="Acme", valor=300, dataEmissao=datetime(2024, 2, 10)),
        make_invoice(status="Emitida", cliente="Acme", valor=200, dataEmissao=datetime(2024, 1, 15)),
        make_invoice(status="Cancelada", cliente="Beta Ltda", valor=80, dataEmissao=datetime(2024, 1, 25)),
    ]


@pytest.fixture
def memory_store(quote_docs: List[Document], invoice_docs: List[Document]) -> InMemoryStore:
    return InMemoryStore({"orcamentos": quote_docs, "notasFiscais": invoice_docs})


@pytest.fixture
def strict_store(quote_docs: List[Document], invoice_docs: List[Document]) -> InMemoryStore:
    return InMemoryStore({"orcamentos": quote_docs, "notasFiscais": invoice_docs}, strict=True)


@pytest.fixture
def unit_settings() -> Settings:
    return Settings(
        store_backend="memory",
        store_timeout_seconds=5.0,
        unspecified_label="unspecified",
        margin_cost_ratio=0.7,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings for integration tests.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        store_backend="postgres",
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "recordplan"),
        documents_table=os.getenv("DOCUMENTS_TABLE", "documents_test"),
        log_level="DEBUG",
    )
