from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import typer
from rich.console import Console

from recordplan import reporter
from recordplan.config import get_settings
from recordplan.domain.filters import FilterSpec
from recordplan.domain.kinds import SortDirection, available_kinds, get_kind
from recordplan.errors import StoreExecutionError
from recordplan.infrastructure.factory import build_store
from recordplan.planning.catalog import get_catalog
from recordplan.planning.planner import QueryPlanner
from recordplan.service import DashboardService
from recordplan.utils.logging import configure_logging

app = typer.Typer(help="Query planning and roll-ups for the quotes/invoices dashboard.")

T = TypeVar("T")

KIND_OPTION = typer.Option("quotes", "--kind", "-k", help="Record kind: quotes or invoices.")
FILTER_OPTION = typer.Option(
    None,
    "--filter",
    "-f",
    help="Dashboard filter as key=value (status, cliente, servico, minValor, dataInicio, ...). Repeatable.",
)
JSON_OPTION = typer.Option(False, "--json", help="Print JSON instead of a table.")


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _parse_filters(raw: Optional[List[str]]) -> Dict[str, str]:
    filters: Dict[str, str] = {}
    for item in raw or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected key=value, got {item!r}", param_hint="--filter")
        filters[key.strip()] = value.strip()
    return filters


def _build_spec(
    kind: str,
    filters: Optional[List[str]],
    sort: Optional[str],
    direction: SortDirection,
    limit: Optional[int],
) -> FilterSpec:
    parsed: Dict[str, Any] = _parse_filters(filters)
    if limit is not None:
        parsed["limit"] = limit
    try:
        return FilterSpec.from_filters(kind, parsed, sort_field=sort, sort_direction=direction)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--filter") from exc


def _resolve_kind(kind: str) -> str:
    try:
        return get_kind(kind).name
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--kind") from exc


def _run(action: Callable[[DashboardService], Awaitable[T]]) -> T:
    """Run one service call against a fresh store, closing it afterwards."""
    settings = get_settings()

    async def runner() -> T:
        store = build_store(settings)
        try:
            return await action(DashboardService(store, settings))
        finally:
            close = getattr(store, "close", None)
            if close is not None:
                await close()

    try:
        return asyncio.run(runner())
    except StoreExecutionError as exc:
        typer.echo(f"Store error: {exc}", err=True)
        raise typer.Exit(code=2 if exc.transient else 1) from exc


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    if settings.store_backend == "postgres":
        store = (
            f"postgres {settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
            f" table={settings.documents_table}"
        )
    else:
        store = f"memory fixture={settings.store_fixture_path or '-'}"
    typer.echo(
        f"store={store} | timeout={settings.store_timeout_seconds}s "
        f"batch={settings.stream_batch_size} | kinds={', '.join(available_kinds())} | "
        f"unspecified={settings.unspecified_label!r} margin_cost_ratio={settings.margin_cost_ratio}"
    )


@app.command()
def catalog(kind: str = KIND_OPTION) -> None:
    """
    List the composite indexes declared for a record kind.
    """
    _setup()
    reporter.print_catalog(get_catalog(_resolve_kind(kind)))


@app.command()
def plan(
    kind: str = KIND_OPTION,
    filters: Optional[List[str]] = FILTER_OPTION,
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort field (defaults to the kind's date field)."),
    direction: SortDirection = typer.Option(SortDirection.DESC, "--direction", "-d"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1),
    as_json: bool = JSON_OPTION,
) -> None:
    """
    Show the plan chosen for a filter combination without running it.
    """
    _setup()
    kind = _resolve_kind(kind)
    spec = _build_spec(kind, filters, sort, direction, limit)
    query_plan = QueryPlanner.for_kind(kind).plan(spec)
    if as_json:
        _echo_json(query_plan.model_dump(mode="json"))
        return
    reporter.print_plan(query_plan)


@app.command("list")
def list_records(
    kind: str = KIND_OPTION,
    filters: Optional[List[str]] = FILTER_OPTION,
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort field (defaults to the kind's date field)."),
    direction: SortDirection = typer.Option(SortDirection.DESC, "--direction", "-d"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1),
    as_json: bool = JSON_OPTION,
) -> None:
    """
    Plan and run a filtered listing.
    """
    _setup()
    kind = _resolve_kind(kind)
    spec = _build_spec(kind, filters, sort, direction, limit)
    result = _run(lambda service: service.list_records(kind, spec))
    if as_json:
        _echo_json(
            {
                "plan": result.plan.model_dump(mode="json"),
                "duration_seconds": result.duration_seconds,
                "records": [{"id": r.id, **r.data} for r in result.records],
            }
        )
        return
    console = Console()
    reporter.print_plan(result.plan, console)
    reporter.print_records(result.records, kind, console, result.duration_seconds)


@app.command()
def summary(
    kind: str = KIND_OPTION,
    by: Optional[str] = typer.Option(None, "--by", help="Group by this document field (e.g. servico)."),
    as_json: bool = JSON_OPTION,
) -> None:
    """
    Roll up a whole collection, optionally per value of a field.
    """
    _setup()
    kind = _resolve_kind(kind)
    if by:
        grouped = _run(lambda service: service.grouped_summary(kind, by))
        if as_json:
            _echo_json({label: s.as_flat_dict() for label, s in grouped.ranked()})
            return
        reporter.print_grouped(grouped, f"{kind} by {by}")
        return

    result = _run(lambda service: service.summary(kind))
    if as_json:
        _echo_json(result.as_flat_dict())
        return
    reporter.print_summary(result, f"{kind} summary")


@app.command()
def overview(as_json: bool = JSON_OPTION) -> None:
    """
    Combined quotes/invoices figures: rates and estimated margin.
    """
    _setup()
    result = _run(lambda service: service.overview())
    if as_json:
        _echo_json(result.model_dump(mode="json", by_alias=True))
        return
    reporter.print_overview(result)


@app.command()
def periods(as_json: bool = JSON_OPTION) -> None:
    """
    Quoted vs. invoiced amounts per month.
    """
    _setup()
    result = _run(lambda service: service.periods())
    if as_json:
        _echo_json([p.model_dump(mode="json") for p in result])
        return
    reporter.print_periods(result)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
