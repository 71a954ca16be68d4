"""Table replication engine: catalog resolution, per-table state machine and worker pool."""

from bigreplicate.replication.engine import exit_code, replicate, replicate_datasets
from bigreplicate.replication.state_machine import Replicator
from bigreplicate.replication.worker_pool import WorkerPool

__all__ = [
    "Replicator",
    "WorkerPool",
    "exit_code",
    "replicate",
    "replicate_datasets",
]
