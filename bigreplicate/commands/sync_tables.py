"""Replicate missing tables of one dataset command."""
from typing import List

import click
from google.api_core import exceptions as google_api_exceptions
from google.auth import exceptions as google_auth_exceptions

from bigreplicate.commands.context import CREDENTIALS_HINT, build_config, get_managers
from bigreplicate.console import error, header, newline, success, table
from bigreplicate.objects.app_config import DEFAULT_NAME_PATTERN
from bigreplicate.objects.replication_task import ReplicationTask
from bigreplicate.replication.engine import exit_code, replicate


@click.command(name="sync")
@click.option(
    "--source-dataset",
    "-i",
    type=click.STRING,
    required=True,
    help="Source BigQuery dataset",
    envvar="BR_SOURCE_DATASET",
)
@click.option(
    "--destination-dataset",
    "-d",
    type=click.STRING,
    default=None,
    help="Destination BigQuery dataset (defaults to the source dataset name)",
    envvar="BR_DESTINATION_DATASET",
)
@click.option(
    "--number",
    "-n",
    type=click.IntRange(min=0),
    default=7,
    show_default=True,
    help="Number of most recent missing tables to replicate",
)
@click.option(
    "--name-pattern",
    type=click.STRING,
    default=DEFAULT_NAME_PATTERN,
    show_default=True,
    help="Regex that must fully match a table name (e.g., ga_sessions_\\d+)",
)
@click.pass_context
def sync_tables(
    ctx: click.Context,
    source_dataset: str,
    destination_dataset: str | None,
    number: int,
    name_pattern: str,
) -> None:
    """Copy tables missing from the destination dataset.

    Workflow:
    1. List matching tables in source and destination datasets
    2. Pick the most recent tables missing from the destination
    3. Extract each to the staging bucket, load it, delete the staged files
    4. Exit non-zero if any table failed
    """
    config = build_config(
        ctx,
        source_dataset=source_dataset,
        destination_dataset=destination_dataset,
        limit=number,
        name_pattern=name_pattern,
    )
    bq_manager, gcs_manager = get_managers(ctx, config.staging_bucket)

    header(
        f"{config.source_project}:{config.source_dataset} → "
        f"{config.destination_project}:{config.target_dataset}"
    )
    try:
        tasks = replicate(config, bq_manager, gcs_manager)
    except google_api_exceptions.GoogleAPIError as e:
        error(f"Unable to list tables: {e}")
        ctx.exit(1)
    except google_auth_exceptions.DefaultCredentialsError as e:
        error(f"No Google Cloud credentials found: {e}")
        error(CREDENTIALS_HINT)
        ctx.exit(1)

    report_results(tasks)
    ctx.exit(exit_code(tasks))


def report_results(tasks: List[ReplicationTask]) -> None:
    """Print one row per task and a summary line."""
    newline()
    if not tasks:
        success("Destination is up to date, nothing to replicate.")
        return

    table_data = [
        [
            task.source_table.full_table_id,
            task.destination_table.full_table_id,
            task.state.value,
            task.describe_failure(),
        ]
        for task in tasks
    ]
    table(
        data=table_data,
        headers=["Source", "Destination", "State", "Cause"],
        title="Replication Results",
        status_column="State",
    )
    newline()

    failed = [t for t in tasks if not t.is_completed]
    if failed:
        error(f"{len(failed)} of {len(tasks)} tables failed. Check logs.")
    elif len(tasks) == 1:
        success("Replicated 1 table.")
    else:
        success(f"Replicated {len(tasks)} tables.")

