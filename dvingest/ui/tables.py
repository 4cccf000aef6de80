"""Table rendering utilities for CLI output."""

from rich.table import Table

from dvingest.domain.progress import CompletableItemWithCount, ProgressLog


def create_progress_table(progress_log: ProgressLog, title_suffix: str = "") -> Table:
    """Create a table showing every step of a progress log.

    Args:
        progress_log: Progress log of one bag
        title_suffix: Optional suffix for table title

    Returns:
        Rich Table object ready for display
    """
    items = list(progress_log.iter_items())
    done = sum(1 for _, item in items if item.completed)
    table = Table(title=f"Progress ({done}/{len(items)} steps completed){title_suffix}")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Items done", justify="right", style="dim")

    for name, item in items:
        status = "[green]completed[/green]" if item.completed else "[yellow]pending[/yellow]"
        count = str(item.number_completed) if isinstance(item, CompletableItemWithCount) else "-"
        table.add_row(name, status, count)

    return table


def create_check_table(checks: list[tuple[str, bool, str]]) -> Table:
    """Create a table for the result of checking a bag.

    Args:
        checks: Tuples of (document, ok, detail)

    Returns:
        Rich Table object ready for display
    """
    table = Table(title="Bag check")
    table.add_column("Document", style="cyan")
    table.add_column("Result")
    table.add_column("Detail", style="dim")

    for document, ok, detail in checks:
        result = "[green]✓ ok[/green]" if ok else "[red]✗ invalid[/red]"
        table.add_row(document, result, detail)

    return table
