"""Materialize a query into a table command.

Reads a SQL query from stdin and writes its result into a destination table,
waiting for the query job to finish.
"""
import time
from typing import Callable, Optional, TextIO

import click
from google.api_core import exceptions as google_api_exceptions
from google.auth import exceptions as google_auth_exceptions

from bigreplicate.bucket.analytics_provider import WarehouseProvider
from bigreplicate.commands.context import CREDENTIALS_HINT, get_bigquery_manager
from bigreplicate.console import error, success
from bigreplicate.exceptions import JobFailedError
from bigreplicate.logging_config import get_logger
from bigreplicate.objects.replication_task import JobHandle
from bigreplicate.objects.table_reference import TableReference

logger = get_logger(__name__)

MATERIALIZE_POLL_INTERVAL = 10.0


def wait_for_job(
    warehouse: WarehouseProvider,
    job: JobHandle,
    poll_interval: float = MATERIALIZE_POLL_INTERVAL,
    sleep: Optional[Callable[[float], None]] = None,
) -> JobHandle:
    """Poll ``job`` until it is no longer pending or running."""
    sleep = sleep or time.sleep
    job = warehouse.get_job_status(job.project_id, job.job_id, job.location)
    while job.is_pending or job.is_running:
        logger.info(f"waiting for job: {job.job_id} ({job.state.value})")
        sleep(poll_interval)
        job = warehouse.get_job_status(job.project_id, job.job_id, job.location)
    return job


def materialize_query(
    warehouse: WarehouseProvider,
    query: str,
    destination: TableReference,
    force: bool = False,
    poll_interval: float = MATERIALIZE_POLL_INTERVAL,
    sleep: Optional[Callable[[float], None]] = None,
) -> JobHandle:
    """Run ``query`` into ``destination`` and wait for it.

    Raises:
        JobFailedError: If the query job finishes with errors
    """
    job = warehouse.submit_query_job(destination.project_id, query, destination, force=force)
    job = wait_for_job(warehouse, job, poll_interval, sleep)
    if job.is_failed:
        messages = "; ".join(str(e.get("message", e)) for e in job.errors)
        raise JobFailedError(f"materialize job {job.job_id} failed: {messages}", job=job)
    logger.info(f"completed {job.job_id}")
    return job


@click.command(name="materialize")
@click.option("--project-id", "-p", type=click.STRING, default=None, help="Google Cloud Project ID")
@click.option("--dataset-id", "-d", type=click.STRING, required=True, help="Output Dataset ID")
@click.option("--table-id", "-t", type=click.STRING, required=True, help="Output Table ID")
@click.option("--force", "-f", is_flag=True, default=False, help="Overwrite destination table contents")
@click.argument("query_file", type=click.File("r"), default="-")
@click.pass_context
def materialize(
    ctx: click.Context,
    project_id: Optional[str],
    dataset_id: str,
    table_id: str,
    force: bool,
    query_file: TextIO,
) -> None:
    """Write the result of a query (read from stdin or QUERY_FILE) into a table."""
    project_id = project_id or ctx.obj["SETTINGS"].get("destination_project")
    if not project_id:
        raise click.UsageError("--project-id or BR_DESTINATION_PROJECT must be set")

    query = query_file.read()
    if not query.strip():
        raise click.UsageError("No query given on stdin")

    destination = TableReference(project_id=project_id, dataset_id=dataset_id, table_id=table_id)
    bq_manager = get_bigquery_manager(ctx)

    try:
        job = materialize_query(bq_manager, query, destination, force=force)
    except JobFailedError as e:
        error(f"failed: {e}")
        ctx.exit(1)
    except google_api_exceptions.GoogleAPIError as e:
        error(f"Unable to run query: {e}")
        ctx.exit(1)
    except google_auth_exceptions.DefaultCredentialsError as e:
        error(f"No Google Cloud credentials found: {e}")
        error(CREDENTIALS_HINT)
        ctx.exit(1)

    success(f"Materialized into {destination.full_table_id} (job {job.job_id})")
