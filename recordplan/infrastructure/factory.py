"""
Store selection from settings.

STORE_BACKEND=memory serves the JSON fixture named by STORE_FIXTURE_PATH (or
an empty store); STORE_BACKEND=postgres connects to the documents table.
"""

from __future__ import annotations

from typing import Optional

from recordplan.config import Settings, get_settings
from recordplan.infrastructure.db_factory import build_dsn
from recordplan.infrastructure.memory_store import InMemoryStore
from recordplan.infrastructure.postgres_store import PostgresStore
from recordplan.infrastructure.store import Store
from recordplan.utils.logging import get_logger

log = get_logger(__name__)


def build_store(settings: Optional[Settings] = None) -> Store:
    """
    Construct the configured store adapter.

    Parameters
    ----------
    settings : Settings, optional
        Defaults to the cached process settings.

    Returns
    -------
    Store
        An InMemoryStore or a PostgresStore; both also support streaming.
    """
    settings = settings or get_settings()
    if settings.store_backend == "postgres":
        log.info(
            "Using PostgreSQL store",
            extra={"host": settings.db_host, "db": settings.db_name, "table": settings.documents_table},
        )
        return PostgresStore(
            dsn=build_dsn(settings),
            table=settings.documents_table,
            batch_size=settings.stream_batch_size,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    if settings.store_fixture_path:
        return InMemoryStore.from_json(
            settings.store_fixture_path, batch_size=settings.stream_batch_size
        )
    log.warning("No STORE_FIXTURE_PATH set; in-memory store starts empty")
    return InMemoryStore(batch_size=settings.stream_batch_size)


__all__ = ["build_store"]
