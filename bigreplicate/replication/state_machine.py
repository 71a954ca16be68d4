"""Per-table replication state machine.

A table moves through extract -> wait-for-extract -> load -> wait-for-load ->
cleanup -> completed, or jumps to failed from any of those. Each non-terminal
state has a Handler whose ``execute`` returns the next task value; the
Replicator drives a task until it reaches a state without a handler.

Polling has no ceiling: a job that never finishes keeps its table waiting
forever, without holding up any other agent.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from bigreplicate.bucket.analytics_provider import WarehouseProvider
from bigreplicate.bucket.storage_provider import StorageProvider
from bigreplicate.exceptions import CleanupError, StagingBucketError
from bigreplicate.logging_config import get_logger
from bigreplicate.objects.app_config import DEFAULT_POLL_INTERVAL
from bigreplicate.objects.replication_task import ReplicationTask, State
from bigreplicate.objects.table_reference import TableReference

logger = get_logger(__name__)

GCS_SCHEME = "gs://"

LOAD_OPTIONS = {
    "create_disposition": "needed",
    # Never overwrite: the load fails if the destination already has rows
    "write_disposition": "empty",
}


def validate_staging_bucket(staging_bucket: str) -> None:
    """Check a staging bucket URI has the ``gs://name`` shape.

    Raises:
        StagingBucketError: If the scheme is missing, the bucket name is
            empty, or the URI ends with a separator
    """
    if not staging_bucket.startswith(GCS_SCHEME):
        raise StagingBucketError(f"staging bucket must start with {GCS_SCHEME}: {staging_bucket}")
    if staging_bucket.endswith("/"):
        raise StagingBucketError(f"staging bucket must not end with '/': {staging_bucket}")
    if not staging_bucket[len(GCS_SCHEME) :]:
        raise StagingBucketError(f"staging bucket has no bucket name: {staging_bucket}")


def split_bucket(staging_bucket: str) -> Tuple[str, str]:
    """Split ``gs://bucket/some/path`` into ``("bucket", "some/path")``."""
    bucket_name, _, path = staging_bucket[len(GCS_SCHEME) :].partition("/")
    return bucket_name, path


def staging_location(staging_bucket: str, table: TableReference) -> str:
    """Wildcard URI an extract job shards ``table`` into.

    Example:
        >>> staging_location("gs://staging", table)
        'gs://staging/analytics/ga_sessions_20160101/*'
    """
    return f"{staging_bucket}/{table.dataset_id}/{table.table_id}/*"


def staging_prefix(staging_bucket: str, table: TableReference) -> str:
    """Blob name prefix of the shards written to :func:`staging_location`."""
    _, path = split_bucket(staging_bucket)
    prefix = f"{table.dataset_id}/{table.table_id}/"
    return f"{path}/{prefix}" if path else prefix


class Handler(ABC):
    """Action taken when a task is in a particular state."""

    state: State

    @abstractmethod
    def execute(self, task: ReplicationTask) -> ReplicationTask:
        """Run the action and return the resulting task."""
        pass


class ExtractHandler(Handler):
    state = State.EXTRACT

    def __init__(self, warehouse: WarehouseProvider) -> None:
        self.warehouse = warehouse

    def execute(self, task: ReplicationTask) -> ReplicationTask:
        validate_staging_bucket(task.staging_bucket)

        uri = staging_location(task.staging_bucket, task.source_table)
        logger.info(f"starting extract for {task.source_table} into {uri}")
        job = self.warehouse.submit_extract_job(task.source_table.project_id, task.source_table, uri)
        return task.advance(
            State.WAIT_FOR_EXTRACT,
            job=job,
            extract_uri=uri,
            staging_prefix=staging_prefix(task.staging_bucket, task.source_table),
        )


class WaitForJobHandler(Handler):
    """Poll the task's job once, sleeping before returning if it is unfinished."""

    def __init__(
        self,
        state: State,
        next_state: State,
        warehouse: WarehouseProvider,
        poll_interval: float,
        sleep: Callable[[float], None],
    ) -> None:
        self.state = state
        self.next_state = next_state
        self.warehouse = warehouse
        self.poll_interval = poll_interval
        self.sleep = sleep

    def execute(self, task: ReplicationTask) -> ReplicationTask:
        if task.job is None:
            raise ValueError(f"{task.source_table} is {self.state.value} without a job")

        job = self.warehouse.get_job_status(task.job.project_id, task.job.job_id, task.job.location)

        if job.is_failed:
            return task.advance(State.FAILED, job=job, failure_cause=job)
        if job.is_successful:
            return task.advance(self.next_state, job=job)

        logger.debug(f"waiting for job {job.job_id} ({job.state.value}) for {task.source_table}")
        self.sleep(self.poll_interval)
        return task.with_job(job)


class LoadHandler(Handler):
    state = State.LOAD

    def __init__(self, warehouse: WarehouseProvider) -> None:
        self.warehouse = warehouse

    def execute(self, task: ReplicationTask) -> ReplicationTask:
        if task.extract_uri is None:
            raise ValueError(f"{task.source_table} reached load without an extract URI")

        schema = self.warehouse.get_table_schema(task.source_table.project_id, task.source_table)
        job = self.warehouse.submit_load_job(
            task.destination_table.project_id,
            task.destination_table,
            {**LOAD_OPTIONS, "schema": schema},
            [task.extract_uri],
        )
        logger.info(f"starting load into {task.destination_table}")
        return task.advance(State.WAIT_FOR_LOAD, job=job)


class CleanupHandler(Handler):
    """Delete every staged shard; the first blob that fails fails the task.

    Blobs deleted before a failure stay deleted.
    """

    state = State.CLEANUP

    def __init__(self, storage: StorageProvider) -> None:
        self.storage = storage

    def execute(self, task: ReplicationTask) -> ReplicationTask:
        if task.staging_prefix is None:
            raise ValueError(f"{task.source_table} reached cleanup without a staging prefix")

        bucket_name, _ = split_bucket(task.staging_bucket)
        blobs = self.storage.list_blobs(bucket_name, task.staging_prefix)
        logger.info(f"deleting {len(blobs)} staged files under gs://{bucket_name}/{task.staging_prefix}")

        for blob_name in blobs:
            if not self.storage.delete_blob(bucket_name, blob_name):
                return task.fail(CleanupError(blob_name))

        return task.advance(State.COMPLETED)


class Replicator:
    """Drives replication tasks to a terminal state.

    Attributes:
        warehouse: BigQuery catalog/job provider
        storage: Staging storage provider
        poll_interval: Seconds between job status polls
        sleep: Blocking sleep used between polls (replaceable in tests)
    """

    def __init__(
        self,
        warehouse: WarehouseProvider,
        storage: StorageProvider,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.warehouse = warehouse
        self.storage = storage
        self.poll_interval = poll_interval
        self.sleep = sleep or time.sleep
        self.handlers: Dict[State, Handler] = {
            h.state: h
            for h in (
                ExtractHandler(warehouse),
                WaitForJobHandler(State.WAIT_FOR_EXTRACT, State.LOAD, warehouse, poll_interval, self.sleep),
                LoadHandler(warehouse),
                WaitForJobHandler(State.WAIT_FOR_LOAD, State.CLEANUP, warehouse, poll_interval, self.sleep),
                CleanupHandler(storage),
            )
        }

    def step(self, task: ReplicationTask) -> ReplicationTask:
        """Execute the handler for the task's current state once.

        Any exception raised by the handler moves the task to FAILED with the
        exception as its cause.
        """
        handler = self.handlers[task.state]
        try:
            return handler.execute(task)
        except Exception as e:
            logger.error(f"{task.state.value} failed for {task.source_table}: {e}", exc_info=True)
            return task.fail(e)

    def progress(self, task: ReplicationTask) -> ReplicationTask:
        """Drive ``task`` until it reaches a state with no handler."""
        while task.state in self.handlers:
            task = self.step(task)

        if task.is_completed:
            logger.info(f"successfully replicated {task.destination_table}")
        else:
            logger.error(f"failed to replicate {task.source_table}: {task.describe_failure()}")
        return task
