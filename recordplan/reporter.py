from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from recordplan.aggregation.aggregator import GroupedSummary, SummaryRecord
from recordplan.aggregation.overview import FinancialOverview, PeriodSummary
from recordplan.domain.kinds import get_kind
from recordplan.domain.models import Record
from recordplan.planning.catalog import IndexCatalog
from recordplan.planning.plan import QueryPlan


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _cell(value: Any) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, Decimal):
        return _money(value)
    return str(value)


def print_catalog(catalog: IndexCatalog, console: Optional[Console] = None) -> None:
    """Render the composite indexes declared for one record kind."""
    console = console or Console()
    table = Table(
        title=f"Index catalog: {catalog.kind}",
        box=box.ROUNDED,
        caption=f"Default sort: {catalog.default_sort_field} {catalog.default_direction.value}",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Index", style="cyan", no_wrap=True)
    table.add_column("Equality", style="magenta")
    table.add_column("Range", style="yellow")
    table.add_column("Sort", style="green")
    table.add_column("Direction", style="blue")

    for position, descriptor in enumerate(catalog.descriptors):
        table.add_row(
            str(position),
            descriptor.name,
            ", ".join(descriptor.equality_fields) or "[dim]-[/dim]",
            descriptor.range_field or "[dim]-[/dim]",
            descriptor.sort_field,
            descriptor.direction.value,
        )
    console.print(table)


def print_plan(plan: QueryPlan, console: Optional[Console] = None) -> None:
    """
    Render a plan's clauses in execution order.

    Fallback plans are flagged, together with any store restriction they
    break, so the missing composite index is easy to spot.
    """
    console = console or Console()
    if plan.used_fallback:
        title = f"Plan for {plan.kind} [bold red](fallback)[/bold red]"
    else:
        title = f"Plan for {plan.kind} via [cyan]{plan.index_name or 'full scan'}[/cyan]"

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Clause", style="green")
    for position, clause in enumerate(plan.clauses, start=1):
        table.add_row(str(position), clause.describe())
    console.print(table)

    for problem in plan.violations():
        console.print(f"[yellow]warning:[/yellow] {problem}")


def print_records(
    records: Sequence[Record],
    kind: str,
    console: Optional[Console] = None,
    duration_seconds: Optional[float] = None,
) -> None:
    """Render listed records with the kind's key columns."""
    console = console or Console()
    if not records:
        console.print("[yellow]No records matched.[/yellow]")
        return

    record_kind = get_kind(kind)
    columns = ["id", "status", "cliente", record_kind.amount_field, record_kind.date_field]
    caption = f"{len(records)} record(s)"
    if duration_seconds is not None:
        caption += f" in {duration_seconds:.3f}s"

    table = Table(title=f"{record_kind.name} ({record_kind.collection})", box=box.ROUNDED, caption=caption)
    for name in columns:
        justify = "right" if name == record_kind.amount_field else "left"
        table.add_column(name, justify=justify, no_wrap=name == "id")
    for record in records:
        table.add_row(*(_cell(record.get(name)) for name in columns))
    console.print(table)


def _summary_rows(summary: SummaryRecord) -> List[tuple]:
    rows: List[tuple] = [("total", str(summary.total))]
    rows.extend((bucket, str(count)) for bucket, count in summary.counts.items())
    rows.append(("desconhecidos", str(summary.unknown)))
    rows.append(("valorTotal", _money(summary.valor_total)))
    rows.extend((bucket, _money(amount)) for bucket, amount in summary.amounts.items())
    rows.extend((rate, f"{value:.1f}%") for rate, value in summary.rates.items())
    return rows


def print_summary(summary: SummaryRecord, title: str, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="bold green")
    for metric, value in _summary_rows(summary):
        table.add_row(metric, value)
    console.print(table)


def print_grouped(grouped: GroupedSummary, title: str, console: Optional[Console] = None) -> None:
    """Render one row per group, largest total amount first."""
    console = console or Console()
    ranked = grouped.ranked()
    if not ranked:
        console.print("[yellow]No records to group.[/yellow]")
        return

    first = ranked[0][1]
    table = Table(
        title=title,
        box=box.ROUNDED,
        caption="Sorted by valorTotal (descending)",
    )
    table.add_column(grouped.key_name or "group", style="cyan", no_wrap=True)
    table.add_column("total", justify="right", style="magenta")
    for bucket in first.counts:
        table.add_column(bucket, justify="right")
    table.add_column("valorTotal", justify="right", style="bold green")
    for rate in first.rates:
        table.add_column(rate, justify="right", style="yellow")

    for label, summary in ranked:
        table.add_row(
            label,
            str(summary.total),
            *(str(count) for count in summary.counts.values()),
            _money(summary.valor_total),
            *(f"{value:.1f}%" for value in summary.rates.values()),
        )
    console.print(table)


def print_overview(overview: FinancialOverview, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Financial overview", box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="bold green")
    table.add_row("Quotes", str(overview.quotes.total))
    table.add_row("Quoted value", _money(overview.quotes.valor_total))
    table.add_row("Invoices", str(overview.invoices.total))
    table.add_row("Invoiced value", _money(overview.invoices.valor_total))
    table.add_row("Received", _money(overview.invoices.amounts.get("valorPago", Decimal(0))))
    table.add_row("Estimated margin", _money(overview.margin))
    table.add_row("Approval rate", f"{overview.approval_rate:.1f}%")
    table.add_row("Conversion rate", f"{overview.conversion_rate:.1f}%")
    table.add_row("Payment rate", f"{overview.payment_rate:.1f}%")
    console.print(table)


def print_periods(periods: Sequence[PeriodSummary], console: Optional[Console] = None) -> None:
    console = console or Console()
    if not periods:
        console.print("[yellow]No records to bucket by period.[/yellow]")
        return

    table = Table(title="Quoted vs. invoiced by month", box=box.ROUNDED)
    table.add_column("Period", style="cyan", no_wrap=True)
    table.add_column("Quoted", justify="right", style="magenta")
    table.add_column("Invoiced", justify="right", style="green")
    table.add_column("Margin", justify="right", style="bold green")
    for period in periods:
        margin_style = "red" if period.margin < 0 else "bold green"
        table.add_row(
            period.period,
            _money(period.quotes_amount),
            _money(period.invoices_amount),
            f"[{margin_style}]{_money(period.margin)}[/{margin_style}]",
        )
    console.print(table)


__all__ = [
    "print_catalog",
    "print_plan",
    "print_records",
    "print_summary",
    "print_grouped",
    "print_overview",
    "print_periods",
]
