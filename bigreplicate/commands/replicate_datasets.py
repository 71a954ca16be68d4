"""Replicate missing tables across several datasets command."""

import click
from google.api_core import exceptions as google_api_exceptions
from google.auth import exceptions as google_auth_exceptions

from bigreplicate.commands.context import CREDENTIALS_HINT, build_config, get_managers
from bigreplicate.commands.sync_tables import report_results
from bigreplicate.console import error, header
from bigreplicate.objects.app_config import DEFAULT_NAME_PATTERN
from bigreplicate.replication.engine import exit_code, replicate_datasets


def parse_datasets(value: str) -> list[str]:
    """Split a comma-separated dataset list, dropping blanks and duplicates."""
    datasets: list[str] = []
    for dataset in value.split(","):
        dataset = dataset.strip()
        if dataset and dataset not in datasets:
            datasets.append(dataset)
    return datasets


@click.command(name="replicate-datasets")
@click.option(
    "--datasets",
    "-i",
    type=click.STRING,
    required=True,
    help="Comma-separated list of dataset IDs to replicate",
    envvar="BR_DATASETS",
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
def replicate_datasets_command(ctx: click.Context, datasets: str, number: int, name_pattern: str) -> None:
    """Copy missing tables of several datasets into same-named destination datasets."""
    dataset_ids = parse_datasets(datasets)
    if not dataset_ids:
        raise click.UsageError("--datasets must name at least one dataset")

    # source_dataset is required by the config model but unused here
    config = build_config(ctx, source_dataset=dataset_ids[0], limit=number, name_pattern=name_pattern)
    bq_manager, gcs_manager = get_managers(ctx, config.staging_bucket)

    header(f"{config.source_project} → {config.destination_project}: {', '.join(dataset_ids)}")
    try:
        tasks = replicate_datasets(config, dataset_ids, bq_manager, gcs_manager)
    except google_api_exceptions.GoogleAPIError as e:
        error(f"Unable to list datasets or tables: {e}")
        ctx.exit(1)
    except google_auth_exceptions.DefaultCredentialsError as e:
        error(f"No Google Cloud credentials found: {e}")
        error(CREDENTIALS_HINT)
        ctx.exit(1)

    report_results(tasks)
    ctx.exit(exit_code(tasks))
