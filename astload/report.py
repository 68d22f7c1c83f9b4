"""
Console Report for Concurrent Load Tests

Renders AggregateStats with rich: summary counts, latency sections,
failed clients and one line per client.
"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .metrics import AggregateStats, LatencyStats


def _rate_color(rate: float) -> str:
    return "green" if rate >= 99.0 else "yellow" if rate >= 90.0 else "red"


def render_summary(stats: AggregateStats) -> Table:
    """Render the headline counts."""
    table = Table(show_header=False, box=box.SIMPLE, padding=(0, 1))
    table.add_column("metric", style="bold")
    table.add_column("value", justify="right")

    color = _rate_color(stats.success_rate)
    table.add_row("Total clients", str(stats.total_clients))
    table.add_row("Successful clients", f"[green]{stats.successful_clients}[/green]")
    table.add_row("Failed clients", f"[red]{stats.failed_clients}[/red]" if stats.failed_clients else "0")
    table.add_row("Success rate", f"[{color}]{stats.success_rate:.2f}%[/{color}]")
    table.add_row("Total test time", f"{stats.total_test_time:.0f}ms")
    return table


def render_latency(stats: AggregateStats) -> Table:
    """Render connection, first-response and total time stats (ms)."""
    table = Table(title="Latency (ms, successful clients)", header_style="bold magenta", box=box.SIMPLE_HEAD)
    table.add_column("timing", style="cyan")
    for name in ("min", "avg", "max", "p95"):
        table.add_column(name, justify="right")

    rows = (
        ("connection", stats.connection_time),
        ("first response", stats.first_response_time),
        ("total", stats.total_time),
    )
    for label, lat in rows:
        table.add_row(label, *_latency_cells(lat))
    return table


def _latency_cells(lat: LatencyStats):
    return (f"{lat.min:.2f}", f"{lat.avg:.2f}", f"{lat.max:.2f}", f"{lat.p95:.2f}")


def render_failures(stats: AggregateStats) -> Optional[Table]:
    failed = stats.failed_results
    if not failed:
        return None

    table = Table(title="Failed clients", header_style="bold red", box=box.SIMPLE_HEAD)
    table.add_column("client", justify="right", style="cyan")
    table.add_column("error", style="red", overflow="fold")
    for r in failed:
        table.add_row(str(r.client_id), r.error or "unknown")
    return table


def render_details(stats: AggregateStats) -> Table:
    """One line per client."""
    table = Table(title="Per-client detail", header_style="bold", box=box.SIMPLE_HEAD)
    table.add_column("client", justify="right", style="cyan")
    table.add_column("", justify="center")
    table.add_column("connect", justify="right")
    table.add_column("first resp", justify="right")
    table.add_column("total", justify="right")
    table.add_column("msgs", justify="right")
    table.add_column("error", style="red", overflow="fold")

    for r in stats.results:
        mark = "[green]✓[/green]" if r.success else "[red]✗[/red]"
        table.add_row(
            f"{r.client_id:>3}",
            mark,
            f"{r.connection_time:.0f}ms",
            f"{r.first_response_time:.0f}ms",
            f"{r.total_time:.0f}ms",
            str(r.received_messages),
            r.error or "",
        )
    return table


def print_report(stats: AggregateStats, console: Optional[Console] = None) -> None:
    """Print the full multi-section report."""
    console = console or Console()

    console.print(Panel(
        f"[blue]WS: {stats.ws_url or '-'}[/blue]  |  [cyan]Audio: {stats.audio_path or '-'}[/cyan]",
        title="[bold]Concurrent Test Results[/bold]",
        border_style="bright_blue",
    ))
    console.print(render_summary(stats))
    console.print(render_latency(stats))

    failures = render_failures(stats)
    if failures is not None:
        console.print(failures)

    console.print(render_details(stats))
