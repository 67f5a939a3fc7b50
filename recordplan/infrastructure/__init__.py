"""
Infrastructure package for recordplan.

Holds the store contract, the plan executor that wraps store failures, and
the two adapters (in-memory and PostgreSQL). Keep this layer focused on I/O
and resource management, decoupled from planning and aggregation.
"""

from recordplan.infrastructure.db_factory import build_dsn, create_async_pool, get_async_connection
from recordplan.infrastructure.factory import build_store
from recordplan.infrastructure.memory_store import InMemoryStore
from recordplan.infrastructure.postgres_store import PostgresStore, compile_plan
from recordplan.infrastructure.store import (
    Store,
    StreamingStore,
    consume_plan,
    run_plan,
    translate_store_errors,
)

__all__ = [
    "Store",
    "StreamingStore",
    "run_plan",
    "consume_plan",
    "translate_store_errors",
    "InMemoryStore",
    "PostgresStore",
    "compile_plan",
    "build_dsn",
    "create_async_pool",
    "get_async_connection",
    "build_store",
]
