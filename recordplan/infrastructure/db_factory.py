"""
PostgreSQL connection factory for the document store adapter.

Builds DSNs from settings and opens asyncpg connections and pools with the
jsonb codec installed, so document bodies come back as dicts. Opening a
connection is retried with tenacity; statements are not.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

import asyncpg
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from recordplan.config import Settings, get_settings

# Failures worth another connection attempt.
TRANSIENT_CONNECT_ERRORS = (
    OSError,
    ConnectionError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_json(value: Any) -> str:
    return json.dumps(value, default=_json_default)


async def init_connection(conn: asyncpg.Connection) -> None:
    """Install jsonb/json codecs on a fresh connection."""
    for type_name in ("jsonb", "json"):
        await conn.set_type_codec(
            type_name, encoder=encode_json, decoder=json.loads, schema="pg_catalog"
        )


def _server_settings(statement_timeout_ms: Optional[int]) -> dict:
    # Naive timestamps stored in documents are read as UTC.
    settings = {"application_name": "recordplan", "timezone": "UTC"}
    if statement_timeout_ms:
        settings["statement_timeout"] = str(statement_timeout_ms)
    return settings


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_CONNECT_ERRORS),
    reraise=True,
)
async def get_async_connection(
    dsn: Optional[str] = None, statement_timeout_ms: Optional[int] = None
) -> asyncpg.Connection:
    """
    Acquire a dedicated asyncpg connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors. Use this for one-off operations (schema setup, fixtures); the
    store itself uses a pool.

    Raises
    ------
    OSError
        If the server stays unreachable after all attempts.
    """
    settings = get_settings()
    if statement_timeout_ms is None:
        statement_timeout_ms = settings.db_statement_timeout_ms
    conn = await asyncpg.connect(
        dsn or build_dsn(settings), server_settings=_server_settings(statement_timeout_ms)
    )
    await init_connection(conn)
    return conn


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_CONNECT_ERRORS),
    reraise=True,
)
async def create_async_pool(
    dsn: Optional[str] = None,
    min_size: int = 1,
    max_size: int = 10,
    statement_timeout_ms: Optional[int] = None,
) -> asyncpg.Pool:
    """
    Create an asyncpg pool with automatic retry.

    Parameters
    ----------
    dsn : str, optional
        Connection string; built from settings when omitted.
    min_size : int
        Minimum number of idle connections to keep.
    max_size : int
        Maximum total connections in the pool.
    statement_timeout_ms : int, optional
        Server-side statement timeout applied to every pooled connection.

    Returns
    -------
    asyncpg.Pool
        A ready pool; the caller owns closing it.
    """
    settings = get_settings()
    if statement_timeout_ms is None:
        statement_timeout_ms = settings.db_statement_timeout_ms
    return await asyncpg.create_pool(
        dsn or build_dsn(settings),
        min_size=min_size,
        max_size=max_size,
        init=init_connection,
        server_settings=_server_settings(statement_timeout_ms),
    )


__all__ = [
    "TRANSIENT_CONNECT_ERRORS",
    "build_dsn",
    "encode_json",
    "init_connection",
    "get_async_connection",
    "create_async_pool",
]
