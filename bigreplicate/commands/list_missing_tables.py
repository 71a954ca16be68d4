"""List tables that a sync would replicate command."""

from typing import List

import click
from google.api_core import exceptions as google_api_exceptions
from google.auth import exceptions as google_auth_exceptions

from bigreplicate.commands.context import CREDENTIALS_HINT, build_config, get_bigquery_manager
from bigreplicate.console import error, newline, success, table, warning
from bigreplicate.objects.app_config import DEFAULT_NAME_PATTERN
from bigreplicate.objects.table_reference import TableReference
from bigreplicate.replication.catalog import destination_table, resolve_targets


@click.command(name="list-missing-tables")
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
    help="Number of most recent missing tables to show",
)
@click.option(
    "--name-pattern",
    type=click.STRING,
    default=DEFAULT_NAME_PATTERN,
    show_default=True,
    help="Regex that must fully match a table name (e.g., ga_sessions_\\d+)",
)
@click.pass_context
def list_missing_tables(
    ctx: click.Context,
    source_dataset: str,
    destination_dataset: str | None,
    number: int,
    name_pattern: str,
) -> List[TableReference]:
    """Show which tables `sync` would copy, without copying anything.

    Returns:
        Missing source tables, most recent first
    """
    config = build_config(
        ctx,
        require_bucket=False,
        source_dataset=source_dataset,
        destination_dataset=destination_dataset,
        limit=number,
        name_pattern=name_pattern,
    )
    bq_manager = get_bigquery_manager(ctx)

    try:
        targets = resolve_targets(
            bq_manager,
            config.source_project,
            config.source_dataset,
            config.destination_project,
            config.destination_dataset,
            name_pattern=config.name_pattern,
            limit=config.limit,
        )
    except google_api_exceptions.GoogleAPIError as e:
        error(f"Unable to list tables: {e}")
        ctx.exit(1)
    except google_auth_exceptions.DefaultCredentialsError as e:
        error(f"No Google Cloud credentials found: {e}")
        error(CREDENTIALS_HINT)
        ctx.exit(1)

    newline()
    if not targets:
        success("Destination is up to date, nothing to replicate.")
        return []

    warning(f"Found {len(targets)} tables missing from {config.destination_project}:{config.target_dataset}:")
    newline()
    table(
        data=[
            [
                t.full_table_id,
                destination_table(t, config.destination_project, config.target_dataset).full_table_id,
            ]
            for t in targets
        ],
        headers=["Source", "Destination"],
        title="Tables to Replicate",
    )
    newline()
    return targets
