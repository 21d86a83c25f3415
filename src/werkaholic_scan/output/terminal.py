from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..controller.scan_loop import LoopStats
from ..models.quota import Plan, QuotaState
from ..models.scan_result import Condition, ScanResult

_CONDITION_COLORS = {
    Condition.NEW: "green",
    Condition.VERY_GOOD: "green",
    Condition.GOOD: "cyan",
    Condition.ACCEPTABLE: "yellow",
    Condition.DEFECTIVE: "red",
}

_TRIGGER_TAGS = {
    "auto": "[cyan](Auto-Scan)[/cyan]",
    "manual": "[magenta](Manual)[/magenta]",
    "upload": "[green](Upload)[/green]",
}


class TerminalOutput:
    """Rich terminal output for scan results."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._count = 0

    def display_result(self, result: ScanResult, source_name: str = "", trigger: str = "auto"):
        if not result.detected:
            self.console.print(f"[dim]No sellable item detected in {source_name or 'frame'}.[/dim]")
            return

        self._count += 1
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Field", style="bold cyan", width=16)
        table.add_column("Value")

        table.add_row("Title", f"[bold yellow]{result.title}[/bold yellow] {_TRIGGER_TAGS.get(trigger, '')}")
        table.add_row("Price", f"[bold green]{result.price_estimate}[/bold green]")
        color = _CONDITION_COLORS.get(result.condition, "white")
        table.add_row("Condition", f"[{color}]{result.condition.value}[/{color}]")
        table.add_row("Category", result.category)
        if result.brand:
            table.add_row("Brand", result.brand)
        if result.keywords:
            table.add_row("Keywords", ", ".join(result.keywords))

        desc = result.description[:300]
        if len(result.description) > 300:
            desc += "..."
        table.add_row("Description", desc)

        if result.reasoning:
            reasoning = result.reasoning[:200]
            if len(result.reasoning) > 200:
                reasoning += "..."
            table.add_row("AI Insight", f"[dim]{reasoning}[/dim]")
        if source_name:
            table.add_row("Image", f"[dim]{source_name}[/dim]")

        self.console.print(
            Panel(
                table,
                title=f"[bold]#{self._count}[/bold]",
                border_style="green",
            )
        )

    def display_notice(self, message: str, style: str = "yellow"):
        self.console.print(f"[{style}]{message}[/{style}]")

    def display_summary(self, stats: LoopStats, quota: QuotaState | None, limit: int):
        """Display a summary of the scanning session."""
        self.console.print()
        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", style="bold green")
        summary.add_row("Frames analyzed", str(stats.ticks))
        summary.add_row("Listings accepted", str(stats.accepted))
        summary.add_row("Duplicates skipped", str(stats.duplicates))
        summary.add_row("Nothing detected", str(stats.not_detected))
        summary.add_row("Failed scans", str(stats.failures))
        if quota is not None:
            summary.add_row("Plan", quota.plan.value)
            used = f"{quota.scans_used}/{limit}" if quota.plan is Plan.FREE else str(quota.scans_used)
            summary.add_row("Scans used today", used)
        self.console.print(Panel(summary, title="[bold]Scan Summary[/bold]"))
        self.console.print()
