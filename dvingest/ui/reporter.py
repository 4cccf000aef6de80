"""Reporter for ingest output and upload progress."""

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
)

from dvingest.domain.types import UploadProgressHook


class Reporter:
    """Ingest reporter with rich progress bars and formatted output."""

    def __init__(self, silent: bool = False) -> None:
        """Initialize reporter.

        Args:
            silent: If True, suppress all output (for testing/automation).
        """
        self.silent = silent
        self.console = Console(quiet=silent)
        self._upload_progress: Progress | None = None

    def report_bag_started(self, deposit_id: str, bag: str) -> None:
        if not self.silent:
            self.console.print(f"[bold]{deposit_id}[/bold] / {bag} - processing")

    def report_bag_finished(self, deposit_id: str, bag: str, pid: str) -> None:
        if not self.silent:
            self.console.print(f"[bold]{deposit_id}[/bold] / {bag} - [green]✓[/green] dataset {pid}")

    def report_deposit_result(self, deposit_id: str, status: str, location: str | None = None) -> None:
        """Report the final status of a deposit."""
        if self.silent:
            return

        colors = {"SUCCESS": "green", "REJECTED": "yellow", "FAILED": "red"}
        color = colors.get(status, "white")
        suffix = f" → {location}" if location else ""
        self.console.print(f"[bold]{deposit_id}[/bold] [{color}]{status}[/{color}]{suffix}")

    def create_upload_progress_hook(self, description: str) -> UploadProgressHook:
        """Create a progress hook for one upload sub-step.

        The hook receives the number of files uploaded so far and the total.
        """
        if self.silent or self._upload_progress is None:

            def hook(done: int, total: int | None) -> None:
                pass

            return hook

        task_id = self._upload_progress.add_task(description, total=None)

        def hook(done: int, total: int | None) -> None:
            if self._upload_progress is None:
                return
            if total is not None and self._upload_progress.tasks[task_id].total != total:
                self._upload_progress.update(task_id, total=total)
            self._upload_progress.update(task_id, completed=done)

        return hook

    def upload_context(self):
        """Context manager for upload progress display."""
        if self.silent:

            class NoOpContext:
                def __enter__(self):
                    return self

                def __exit__(self, *args):
                    pass

            return NoOpContext()

        class UploadContext:
            def __init__(ctx_self, reporter):
                ctx_self.reporter = reporter

            def __enter__(ctx_self):
                ctx_self.reporter._upload_progress = Progress(
                    TextColumn("{task.description}"),
                    BarColumn(),
                    MofNCompleteColumn(),
                    TextColumn("files"),
                    TimeRemainingColumn(),
                    console=ctx_self.reporter.console,
                )
                ctx_self.reporter._upload_progress.__enter__()
                return ctx_self.reporter._upload_progress

            def __exit__(ctx_self, *args):
                if ctx_self.reporter._upload_progress:
                    ctx_self.reporter._upload_progress.__exit__(*args)
                    ctx_self.reporter._upload_progress = None

        return UploadContext(self)

    def report_warning(self, message: str) -> None:
        """Report a warning message."""
        if not self.silent:
            self.console.print(f"\n[yellow]Warning:[/yellow] {message}")

    def report_error(self, message: str) -> None:
        """Report an error message."""
        if not self.silent:
            self.console.print(f"\n[red]Error:[/red] {message}")
