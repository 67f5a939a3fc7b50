"""
Store contract and plan execution.

The core talks to storage through the `Store` protocol only. A store receives a
resolved QueryPlan and returns records in plan order, or fails. Adapters own
their retry policy; `run_plan` and `consume_plan` never retry. They apply the
caller's timeout and wrap every failure in StoreExecutionError, with the plan
and kind attached.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Generator,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)

from recordplan.domain.models import Record
from recordplan.errors import StoreExecutionError, StoreUnavailableError
from recordplan.planning.plan import QueryPlan
from recordplan.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@runtime_checkable
class Store(Protocol):
    """
    Anything that can execute a QueryPlan.

    Implementations should raise StoreUnavailableError for transient
    failures and QueryRejectedError for plans they refuse to run.
    """

    async def execute(self, plan: QueryPlan) -> Sequence[Record]:
        """Run the plan and return the matching records in plan order."""
        ...


@runtime_checkable
class StreamingStore(Store, Protocol):
    """Store that can also yield records lazily, for large collections."""

    def stream(self, plan: QueryPlan) -> AsyncIterator[Record]:
        """Yield the plan's records one at a time, in plan order."""
        ...


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, (StoreUnavailableError, TimeoutError, ConnectionError, OSError))


@contextlib.contextmanager
def translate_store_errors(plan: QueryPlan) -> Generator[None, None, None]:
    """Re-raise any store failure as StoreExecutionError carrying the plan."""
    try:
        yield
    except StoreExecutionError:
        raise
    except Exception as exc:  # noqa: BLE001 - every adapter failure is surfaced uniformly
        transient = _is_transient(exc)
        log.error(
            "Store failed executing plan",
            extra={
                "kind": plan.kind,
                "index": plan.index_name,
                "used_fallback": plan.used_fallback,
                "transient": transient,
                "error": repr(exc),
            },
        )
        raise StoreExecutionError(
            f"store failed executing {plan.kind} plan: {exc}",
            plan=plan,
            kind=plan.kind,
            transient=transient,
            cause=exc,
        ) from exc


async def run_plan(
    store: Store, plan: QueryPlan, timeout: Optional[float] = None
) -> Sequence[Record]:
    """
    Execute one plan against a store.

    Raises
    ------
    StoreExecutionError
        If the store fails or the timeout expires. Not retried.
    """
    with translate_store_errors(plan):
        if timeout is None:
            return await store.execute(plan)
        return await asyncio.wait_for(store.execute(plan), timeout)


async def consume_plan(
    store: StreamingStore,
    plan: QueryPlan,
    consumer: Callable[[AsyncIterator[Record]], Awaitable[T]],
    timeout: Optional[float] = None,
) -> T:
    """
    Stream a plan's records into `consumer` and return its result.

    The timeout covers the whole stream. Partial results are never returned:
    a failure mid-stream discards whatever the consumer had accumulated.
    """
    with translate_store_errors(plan):
        pending = consumer(store.stream(plan))
        if timeout is None:
            return await pending
        return await asyncio.wait_for(pending, timeout)


__all__ = [
    "Store",
    "StreamingStore",
    "translate_store_errors",
    "run_plan",
    "consume_plan",
]
