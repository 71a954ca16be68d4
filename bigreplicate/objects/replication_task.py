"""Replication task models.

This module defines the per-table pipeline state, the BigQuery job handle the
pipeline polls, and the immutable ReplicationTask value each pipeline step
returns an updated copy of.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from bigreplicate.objects.table_reference import TableReference


class State(str, Enum):
    """Pipeline states of a single table replication.

    Declaration order is the canonical pipeline order. ``FAILED`` sits outside
    that order and can be reached from any non-terminal state.
    """

    EXTRACT = "extract"
    WAIT_FOR_EXTRACT = "wait-for-extract"
    LOAD = "load"
    WAIT_FOR_LOAD = "wait-for-load"
    CLEANUP = "cleanup"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (State.COMPLETED, State.FAILED)

    @property
    def order(self) -> int:
        """Position in the pipeline; ``FAILED`` sorts after everything."""
        return PIPELINE_ORDER.index(self) if self in PIPELINE_ORDER else len(PIPELINE_ORDER)


PIPELINE_ORDER: Tuple[State, ...] = (
    State.EXTRACT,
    State.WAIT_FOR_EXTRACT,
    State.LOAD,
    State.WAIT_FOR_LOAD,
    State.CLEANUP,
    State.COMPLETED,
)


class JobStatus(str, Enum):
    """BigQuery job states as reported by ``jobs.get``."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"


class JobHandle(BaseModel):
    """Identity and last-known status of a BigQuery job.

    Attributes:
        job_id: BigQuery job ID
        project_id: Project the job runs in (used when polling)
        location: Job location (e.g., "EU"); None lets BigQuery resolve it
        state: Last-known job state
        errors: Error list reported by BigQuery (empty while running or on success)

    Example:
        >>> job = JobHandle(job_id="job_123", project_id="source-project", state=JobStatus.DONE)
        >>> job.is_successful
        True
    """

    model_config = ConfigDict(frozen=True)

    job_id: str
    project_id: str
    location: Optional[str] = None
    state: JobStatus = JobStatus.PENDING
    errors: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        return self.state == JobStatus.PENDING

    @property
    def is_running(self) -> bool:
        return self.state == JobStatus.RUNNING

    @property
    def is_failed(self) -> bool:
        return self.state == JobStatus.DONE and len(self.errors) > 0

    @property
    def is_successful(self) -> bool:
        return self.state == JobStatus.DONE and not self.errors


class ReplicationTask(BaseModel):
    """Immutable record of one table moving through the replication pipeline.

    Each pipeline step returns a new task via :meth:`advance` or
    :meth:`with_job`; nothing mutates a task in place. A task is owned by one
    replicator agent at a time, handed over through queues.

    Attributes:
        source_table: Table being copied
        destination_table: Table to create in the destination dataset
        staging_bucket: GCS URI prefix for extracted files (gs://bucket, no trailing slash)
        state: Current pipeline state
        job: Most recently submitted/polled BigQuery job
        extract_uri: Wildcard URI the extract job writes to
        staging_prefix: Blob name prefix of the extracted files, used by cleanup
        failure_cause: JobHandle or exception that moved the task to FAILED
        history: States visited, in order, starting with the initial state
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source_table: TableReference
    destination_table: TableReference
    staging_bucket: str
    state: State = State.EXTRACT
    job: Optional[JobHandle] = None
    extract_uri: Optional[str] = None
    staging_prefix: Optional[str] = None
    failure_cause: Optional[Any] = None
    history: Tuple[State, ...] = (State.EXTRACT,)

    def advance(self, state: State, **changes: Any) -> "ReplicationTask":
        """Return a copy moved to ``state`` with ``changes`` applied.

        Raises:
            ValueError: If the move goes backwards in the pipeline, leaves a
                terminal state, or rewrites the staging location.
        """
        if self.state.is_terminal:
            raise ValueError(f"task for {self.source_table} is already {self.state.value}")
        if state != State.FAILED and state.order < self.state.order:
            raise ValueError(f"cannot move from {self.state.value} back to {state.value}")
        for field in ("extract_uri", "staging_prefix"):
            current = getattr(self, field)
            if field in changes and current is not None and changes[field] != current:
                raise ValueError(f"{field} is already set to {current}")

        history = self.history if state == self.state else self.history + (state,)
        return self.model_copy(update={**changes, "state": state, "history": history})

    def with_job(self, job: JobHandle) -> "ReplicationTask":
        """Return a copy in the same state carrying a refreshed job."""
        return self.model_copy(update={"job": job})

    def fail(self, cause: Any) -> "ReplicationTask":
        return self.advance(State.FAILED, failure_cause=cause)

    @property
    def is_completed(self) -> bool:
        return self.state == State.COMPLETED

    def describe_failure(self) -> str:
        """Render the failure cause for logs and console output."""
        cause = self.failure_cause
        if cause is None:
            return ""
        if isinstance(cause, JobHandle):
            messages = "; ".join(str(e.get("message", e)) for e in cause.errors)
            return f"job {cause.job_id} failed: {messages}"
        if isinstance(cause, BaseException):
            return f"{type(cause).__name__}: {cause}"
        return str(cause)
