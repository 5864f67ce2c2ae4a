"""Rich display helpers for the termflow CLI."""

from rich.console import Console
from rich.table import Table

from termflow.orchestrator import HealthStatus

STATUS_STYLES = {
    "excellent": "green",
    "good": "green",
    "degraded": "yellow",
    "critical": "red",
}


def _mark(healthy: bool) -> str:
    return "[green]ok[/green]" if healthy else "[red]unhealthy[/red]"


def display_health(console: Console, health: HealthStatus) -> None:
    """Print a health report table."""
    style = STATUS_STYLES.get(health.status, "white")
    table = Table(title=f"Output health: [{style}]{health.status}[/{style}] ({health.score}/100)")
    table.add_column("Area")
    table.add_column("State")
    table.add_column("Details", style="dim")

    table.add_row(
        "queue",
        _mark(health.queue.is_healthy),
        f"size={health.queue.queue_size} dropped={health.queue.dropped}",
    )
    table.add_row(
        "terminal",
        _mark(health.terminal.is_healthy),
        f"ansi={health.terminal.ansi_supported} interactive={health.terminal.interactive}",
    )
    table.add_row(
        "errors",
        _mark(health.errors.is_healthy),
        f"total={health.errors.total_errors} critical={health.errors.in_critical_state}",
    )
    console.print(table)
