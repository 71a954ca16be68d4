"""Google BigQuery catalog and job management.

This module provides the BigQueryManager class, the WarehouseProvider used in
production. It lists datasets and tables, submits extract/load/query jobs and
reports job status. Jobs are submitted without waiting; the replication state
machine polls them.
"""

import functools
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from google.api_core import exceptions as google_api_exceptions
from google.cloud import bigquery

from bigreplicate.bucket.analytics_provider import WarehouseProvider
from bigreplicate.bucket.retry_utils import retry_with_backoff
from bigreplicate.logging_config import get_logger
from bigreplicate.objects.replication_task import JobHandle, JobStatus
from bigreplicate.objects.table_reference import TableReference

logger = get_logger(__name__)

# Newline-delimited JSON keeps nested and repeated fields intact (CSV cannot)
STAGING_FORMAT = bigquery.DestinationFormat.NEWLINE_DELIMITED_JSON
STAGING_COMPRESSION = bigquery.Compression.GZIP

CREATE_DISPOSITIONS = {
    "needed": bigquery.CreateDisposition.CREATE_IF_NEEDED,
    "never": bigquery.CreateDisposition.CREATE_NEVER,
}

WRITE_DISPOSITIONS = {
    "empty": bigquery.WriteDisposition.WRITE_EMPTY,
    "append": bigquery.WriteDisposition.WRITE_APPEND,
    "truncate": bigquery.WriteDisposition.WRITE_TRUNCATE,
}


def new_job_id(kind: str) -> str:
    """Client-side job id, e.g. ``bigreplicate_load_3f2a...``."""
    return f"bigreplicate_{kind}_{uuid.uuid4().hex}"


class BigQueryManager(WarehouseProvider):
    """Google BigQuery implementation of WarehouseProvider.

    Source and destination tables usually live in different projects, so a
    BigQuery client is created lazily per project and shared by all
    replicator agents.

    Attributes:
        location: Optional job location passed to every job submission
    """

    def __init__(self, location: Optional[str] = None) -> None:
        self.location = location
        self._clients: Dict[str, bigquery.Client] = {}
        self._clients_lock = threading.Lock()

    def client(self, project_id: str) -> bigquery.Client:
        """Return the BigQuery client for a project, creating it on first use."""
        with self._clients_lock:
            if project_id not in self._clients:
                logger.debug(f"Creating BigQuery client for project {project_id}")
                self._clients[project_id] = bigquery.Client(project=project_id)
            return self._clients[project_id]

    def verify_dataset(self, project_id: str, dataset_id: str) -> bool:
        """Check the dataset exists and is accessible.

        Returns:
            True if the dataset is reachable, False otherwise

        Note:
            Run 'gcloud auth application-default login' if authentication fails.
        """
        try:
            dataset = self.client(project_id).get_dataset(f"{project_id}.{dataset_id}")
            logger.info(f"Found BigQuery dataset: {dataset.project}.{dataset.dataset_id}")
            return True
        except google_api_exceptions.Unauthenticated as e:
            logger.error(f"BigQuery authentication failed: {e}")
            logger.error("Authentication required. Run: gcloud auth application-default login")
            return False
        except google_api_exceptions.NotFound:
            logger.error(f"BigQuery dataset not found: {project_id}.{dataset_id}")
            logger.error(f"Create dataset with: bq mk --dataset {project_id}:{dataset_id}")
            return False
        except google_api_exceptions.PermissionDenied as e:
            logger.error(f"BigQuery permission denied: {e}")
            return False
        except Exception as e:
            logger.error(f"Error connecting to BigQuery: {e}", exc_info=True)
            return False

    @retry_with_backoff(retries=3)
    def list_tables(self, project_id: str, dataset_id: str) -> List[TableReference]:
        """List all tables in a dataset.

        A missing dataset lists as empty: nothing has been replicated into it
        yet. Other API errors propagate.
        """
        try:
            items = self.client(project_id).list_tables(f"{project_id}.{dataset_id}")
            tables = [
                TableReference(project_id=item.project, dataset_id=item.dataset_id, table_id=item.table_id)
                for item in items
            ]
        except google_api_exceptions.NotFound:
            logger.warning(f"Dataset not found: {project_id}.{dataset_id}")
            return []

        logger.info(f"Found {len(tables)} tables in {project_id}.{dataset_id}")
        return tables

    @retry_with_backoff(retries=3)
    def list_datasets(self, project_id: str) -> List[str]:
        return [item.dataset_id for item in self.client(project_id).list_datasets(project=project_id)]

    def submit_extract_job(self, project_id: str, source_table: TableReference, destination_uri: str) -> JobHandle:
        """Start exporting a table into gzipped newline-delimited JSON shards.

        Example:
            >>> manager.submit_extract_job(
            ...     "source-project",
            ...     table,
            ...     "gs://staging/analytics/ga_sessions_20160101/*",
            ... )
            JobHandle(job_id='...', state=<JobStatus.RUNNING: 'RUNNING'>, ...)
        """
        job_config = bigquery.ExtractJobConfig(
            destination_format=STAGING_FORMAT,
            compression=STAGING_COMPRESSION,
        )
        job_id = new_job_id("extract")
        submit = functools.partial(
            self.client(project_id).extract_table,
            source_table.full_table_id,
            destination_uri,
            job_config=job_config,
            job_id=job_id,
            location=self.location,
            project=project_id,
        )
        handle = self._run_job(project_id, job_id, submit)
        logger.debug(f"Submitted extract job {handle.job_id} for {source_table}")
        return handle

    def submit_load_job(
        self,
        project_id: str,
        destination_table: TableReference,
        load_options: Dict[str, Any],
        source_uris: Sequence[str],
    ) -> JobHandle:
        """Start loading staged shards into a table.

        Args:
            project_id: Project the job runs in
            destination_table: Table to load into
            load_options: ``create_disposition`` ("needed"/"never"),
                ``write_disposition`` ("empty"/"append"/"truncate") and ``schema``
            source_uris: Wildcard URIs of the staged shards
        """
        job_config = bigquery.LoadJobConfig(
            source_format=bigquery.SourceFormat.NEWLINE_DELIMITED_JSON,
            create_disposition=CREATE_DISPOSITIONS[load_options.get("create_disposition", "needed")],
            write_disposition=WRITE_DISPOSITIONS[load_options.get("write_disposition", "empty")],
        )
        if load_options.get("schema") is not None:
            job_config.schema = load_options["schema"]

        job_id = new_job_id("load")
        submit = functools.partial(
            self.client(project_id).load_table_from_uri,
            list(source_uris),
            destination_table.full_table_id,
            job_config=job_config,
            job_id=job_id,
            location=self.location,
            project=project_id,
        )
        handle = self._run_job(project_id, job_id, submit)
        logger.debug(f"Submitted load job {handle.job_id} into {destination_table}")
        return handle

    @retry_with_backoff(retries=3)
    def get_job_status(self, project_id: str, job_id: str, location: Optional[str] = None) -> JobHandle:
        job = self.client(project_id).get_job(job_id, project=project_id, location=location or self.location)
        return self._to_handle(job)

    @retry_with_backoff(retries=3)
    def get_table_schema(self, project_id: str, table: TableReference) -> List[bigquery.SchemaField]:
        return self.client(project_id).get_table(table.full_table_id).schema

    def submit_query_job(
        self,
        project_id: str,
        query: str,
        destination_table: TableReference,
        force: bool = False,
    ) -> JobHandle:
        """Start a query whose result is written into ``destination_table``.

        The query cache is bypassed so the destination always reflects fresh
        data. Without ``force`` the destination must be empty.
        """
        job_config = bigquery.QueryJobConfig(
            destination=destination_table.full_table_id,
            create_disposition=bigquery.CreateDisposition.CREATE_IF_NEEDED,
            write_disposition=(
                bigquery.WriteDisposition.WRITE_TRUNCATE if force else bigquery.WriteDisposition.WRITE_EMPTY
            ),
            use_query_cache=False,
            priority=bigquery.QueryPriority.INTERACTIVE,
        )
        job_id = new_job_id("query")
        submit = functools.partial(
            self.client(project_id).query,
            query,
            job_config=job_config,
            job_id=job_id,
            location=self.location,
            project=project_id,
        )
        handle = self._run_job(project_id, job_id, submit)
        logger.info(f"Started materialize job {handle.job_id} into {destination_table}")
        return handle

    @retry_with_backoff(retries=3)
    def _run_job(self, project_id: str, job_id: str, submit: Callable[[], Any]) -> JobHandle:
        """Submit a job under a fixed id, retrying transient errors.

        Every attempt reuses ``job_id``, so a retry after a lost response can
        never start a second job. BigQuery answers such a retry with Conflict,
        and the job created by the earlier attempt is returned instead.
        """
        try:
            job = submit()
        except google_api_exceptions.Conflict:
            logger.warning(f"Job {job_id} already exists, using it")
            job = self.client(project_id).get_job(job_id, project=project_id, location=self.location)
        return self._to_handle(job)

    @staticmethod
    def _to_handle(job: Any) -> JobHandle:
        """Convert a google-cloud-bigquery job into a JobHandle."""
        return JobHandle(
            job_id=job.job_id,
            project_id=job.project,
            location=job.location,
            state=JobStatus(job.state or JobStatus.PENDING.value),
            errors=list(job.errors or []),
        )
