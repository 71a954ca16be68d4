"""BigReplicate CLI application entry point.

This module provides the main Click CLI interface for BigReplicate, which
copies BigQuery tables missing from a destination dataset by extracting them
to a GCS staging bucket and loading them into the destination. It handles
settings (flags, environment variables and an optional .env file), logging
setup and command registration.
"""
import importlib.metadata
from typing import Optional

import click
from dotenv import find_dotenv, load_dotenv

from bigreplicate.commands.list_missing_tables import list_missing_tables
from bigreplicate.commands.materialize import materialize
from bigreplicate.commands.replicate_datasets import replicate_datasets_command
from bigreplicate.commands.sync_tables import sync_tables
from bigreplicate.console import info
from bigreplicate.logging_config import setup_logging
from bigreplicate.objects.app_config import DEFAULT_POLL_INTERVAL


@click.group()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging (DEBUG level, shows job polling)",
)
@click.option(
    "--log-file",
    type=click.Path(),
    help="Write logs to file",
)
@click.option(
    "--source-project",
    "-s",
    type=str,
    help="Source Google Cloud Project",
    envvar="BR_SOURCE_PROJECT",
)
@click.option(
    "--destination-project",
    "-p",
    type=str,
    help="Destination Google Cloud Project",
    envvar="BR_DESTINATION_PROJECT",
)
@click.option(
    "--google-cloud-bucket",
    "-g",
    type=str,
    help="Staging bucket to store exported data (gs://bucket)",
    envvar="BR_STAGING_BUCKET",
)
@click.option(
    "--number-of-agents",
    "-a",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concurrent replication agents to run (default: CPU count)",
    envvar="BR_NUMBER_OF_AGENTS",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_POLL_INTERVAL,
    show_default=True,
    help="Seconds between BigQuery job status checks",
    envvar="BR_POLL_INTERVAL",
)
@click.option(
    "--location",
    type=str,
    default=None,
    help="BigQuery job location (e.g., EU)",
    envvar="BR_BQ_LOCATION",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_file: Optional[str],
    source_project: Optional[str],
    destination_project: Optional[str],
    google_cloud_bucket: Optional[str],
    number_of_agents: Optional[int],
    poll_interval: float,
    location: Optional[str],
) -> None:
    """Copy BigQuery tables between projects via a GCS staging bucket.

    Settings given here are shared by every command. Each one can also be set
    through its BR_* environment variable.

    Example:
        >>> bigreplicate -s source-project -p destination-project \\
        ...     -g gs://staging-bucket sync -i analytics -n 7
    """
    logger = setup_logging(verbose=verbose, log_file=log_file)
    ctx.ensure_object(dict)
    ctx.obj["logger"] = logger
    ctx.obj["SETTINGS"] = {
        "source_project": source_project,
        "destination_project": destination_project,
        "google_cloud_bucket": google_cloud_bucket,
        "number_of_agents": number_of_agents,
        "poll_interval": poll_interval,
        "location": location,
    }


cli.add_command(sync_tables)
cli.add_command(replicate_datasets_command)
cli.add_command(list_missing_tables)
cli.add_command(materialize)


def start_cli() -> None:
    """Initialize and start the BigReplicate CLI application.

    Loads environment variables from a .env file when one is found in the
    current directory or its parents, shows the application banner and runs
    the Click group.
    """
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)

    info("BigReplicate", bold=True)
    info(f"Version: {importlib.metadata.version('bigreplicate')}")
    if env_file:
        info(f"Configuration loaded from: {env_file}")

    cli(obj={})


if __name__ == "__main__":
    start_cli()
