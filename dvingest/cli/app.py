"""Typer-based CLI for bag ingestion."""

import logging
from pathlib import Path

import orjson
import typer
from rich.logging import RichHandler

from dvingest.config import Settings
from dvingest.domain.errors import IngestError
from dvingest.operations.bag import (
    DATASET_YML,
    EDIT_FILES_YML,
    EDIT_METADATA_YML,
    EDIT_PERMISSIONS_YML,
    INIT_YML,
    UPDATE_STATE_YML,
    IngestBag,
)
from dvingest.operations.remote import DataverseClient
from dvingest.orchestrators import ImportJobRegistry, JobStatus
from dvingest.orchestrators.deposit import DepositStatus
from dvingest.state.manager import ProgressLogManager
from dvingest.ui import Reporter
from dvingest.ui.tables import create_check_table, create_progress_table

app = typer.Typer(help="Ingest bags into a Dataverse installation")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    """Show help when no subcommand is provided."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(rich_tracebacks=True)],
        )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def ingest(
    path: Path = typer.Argument(..., exists=True, file_okay=False, help="Deposit or batch directory"),
    batch: bool = typer.Option(False, "--batch", help="PATH holds several deposits"),
):
    """Ingest a deposit, or every deposit in a batch directory."""
    config = Settings()
    reporter = Reporter()

    with DataverseClient(
        config.api_url,
        api_key=config.api_key,
        timeout=config.api_timeout,
        parent_collection=config.parent_collection,
    ) as client, ImportJobRegistry(client, config, reporter) as registry:
        job = registry.submit(path, single_object=not batch)
        job.future.result()

    for deposit_id, status in job.results.items():
        reporter.report_deposit_result(deposit_id, status.value)

    if job.status is JobStatus.FAILED:
        reporter.report_error(f"Import job failed: {job.error}")
        raise typer.Exit(1)
    if any(status is not DepositStatus.SUCCESS for status in job.results.values()):
        raise typer.Exit(1)


@app.command()
def progress(
    bag_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Bag directory"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the progress log of a bag."""
    config = Settings()
    reporter = Reporter()

    progress_log = ProgressLogManager(bag_dir / config.progress_log_name).load()
    if json_output:
        payload = orjson.dumps(progress_log.model_dump(mode="json", by_alias=True), option=orjson.OPT_INDENT_2)
        typer.echo(payload.decode())
    else:
        reporter.console.print(create_progress_table(progress_log, title_suffix=f" - {bag_dir.name}"))


@app.command()
def check(bag_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Bag directory")):
    """Validate the instruction documents of a bag without contacting the repository."""
    config = Settings()
    reporter = Reporter()

    try:
        bag = IngestBag(bag_dir, config.progress_log_name)
    except IngestError as e:
        reporter.report_error(str(e))
        raise typer.Exit(1) from e

    readers = {
        INIT_YML: bag.get_init,
        DATASET_YML: bag.get_dataset_metadata,
        EDIT_FILES_YML: bag.get_edit_files,
        EDIT_METADATA_YML: bag.get_edit_metadata,
        EDIT_PERMISSIONS_YML: bag.get_edit_permissions,
        UPDATE_STATE_YML: bag.get_update_state,
    }
    checks: list[tuple[str, bool, str]] = []
    for name, reader in readers.items():
        if not (bag.location / name).exists():
            checks.append((name, True, "absent"))
            continue
        try:
            reader()
            checks.append((name, True, "valid"))
        except IngestError as e:
            checks.append((name, False, str(e)))

    checks.append(("data/", True, f"{len(bag.payload_files())} file(s)"))
    reporter.console.print(create_check_table(checks))

    if not all(ok for _, ok, _ in checks):
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
