"""Replication entry points.

Resolve which tables are missing, build one ReplicationTask per table and run
them through the worker pool. Failures are reported in-band as FAILED tasks;
these functions only raise for catalog errors that happen before any table
is scheduled.
"""

from typing import Callable, Iterable, List, Optional, Sequence

from bigreplicate.bucket.analytics_provider import WarehouseProvider
from bigreplicate.bucket.storage_provider import StorageProvider
from bigreplicate.exceptions import ConfigurationError
from bigreplicate.logging_config import get_logger
from bigreplicate.objects.app_config import ReplicationConfig
from bigreplicate.objects.replication_task import ReplicationTask, State
from bigreplicate.objects.table_reference import TableReference
from bigreplicate.replication.catalog import destination_table, resolve_dataset_targets, resolve_targets
from bigreplicate.replication.state_machine import Replicator
from bigreplicate.replication.worker_pool import WorkerPool

logger = get_logger(__name__)


def build_tasks(
    targets: Iterable[TableReference],
    staging_bucket: str,
    destination_project: str,
    destination_dataset: Optional[str] = None,
) -> List[ReplicationTask]:
    """Create an EXTRACT-state task per target, in target order."""
    return [
        ReplicationTask(
            source_table=t,
            destination_table=destination_table(t, destination_project, destination_dataset),
            staging_bucket=staging_bucket,
            state=State.EXTRACT,
        )
        for t in targets
    ]


def run_tasks(
    tasks: Sequence[ReplicationTask],
    warehouse: WarehouseProvider,
    storage: StorageProvider,
    agents: int,
    poll_interval: float,
    sleep: Optional[Callable[[float], None]] = None,
) -> List[ReplicationTask]:
    """Run tasks on a worker pool and collect them in completion order."""
    replicator = Replicator(warehouse, storage, poll_interval=poll_interval, sleep=sleep)
    return list(WorkerPool(replicator, agents).run(tasks))


def replicate(
    config: ReplicationConfig,
    warehouse: WarehouseProvider,
    storage: StorageProvider,
    sleep: Optional[Callable[[float], None]] = None,
) -> List[ReplicationTask]:
    """Copy every missing table of one dataset.

    Returns:
        One terminal task per replicated table, in completion order. Empty
        when the destination already has every matching table.
    """
    targets = resolve_targets(
        warehouse,
        config.source_project,
        config.source_dataset,
        config.destination_project,
        config.destination_dataset,
        name_pattern=config.name_pattern,
        limit=config.limit,
    )
    logger.info(f"{len(targets)} tables to replicate into {config.destination_project}.{config.target_dataset}")
    tasks = build_tasks(targets, config.staging_bucket, config.destination_project, config.target_dataset)
    return run_tasks(tasks, warehouse, storage, config.agents, config.poll_interval, sleep)


def replicate_datasets(
    config: ReplicationConfig,
    datasets: Sequence[str],
    warehouse: WarehouseProvider,
    storage: StorageProvider,
    sleep: Optional[Callable[[float], None]] = None,
) -> List[ReplicationTask]:
    """Copy missing tables of several datasets into same-named destination datasets.

    ``config.source_dataset`` and ``config.destination_dataset`` are ignored;
    ``datasets`` selects what is copied.

    Raises:
        ConfigurationError: If ``datasets`` is empty
    """
    if not datasets:
        raise ConfigurationError("at least one dataset is required")

    targets = resolve_dataset_targets(
        warehouse,
        config.source_project,
        config.destination_project,
        datasets,
        name_pattern=config.name_pattern,
        limit=config.limit,
    )
    logger.info(f"{len(targets)} tables to replicate across {len(datasets)} datasets")
    tasks = build_tasks(targets, config.staging_bucket, config.destination_project)
    return run_tasks(tasks, warehouse, storage, config.agents, config.poll_interval, sleep)


def exit_code(tasks: Iterable[ReplicationTask]) -> int:
    """0 when every task completed (including when there were none), else 1."""
    return 0 if all(t.is_completed for t in tasks) else 1
