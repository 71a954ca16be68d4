"""Pytest fixtures and configuration."""

import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence, Set, Tuple

import pytest

from bigreplicate.bucket.analytics_provider import WarehouseProvider
from bigreplicate.bucket.storage_provider import StorageProvider
from bigreplicate.objects.replication_task import JobHandle, JobStatus, ReplicationTask
from bigreplicate.objects.table_reference import TableReference


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast tests without Google Cloud access")
    config.addinivalue_line("markers", "security: input validation tests")


def table_ref(table_id: str, project_id: str = "source-project", dataset_id: str = "analytics") -> TableReference:
    return TableReference(project_id=project_id, dataset_id=dataset_id, table_id=table_id)


class FakeWarehouse(WarehouseProvider):
    """In-memory BigQuery stand-in.

    Every job reports RUNNING on its first poll and DONE on the second. Jobs
    for tables named in ``failing_extracts``/``failing_loads`` finish with an
    error. A successful load adds the destination table to the catalog, so a
    second run sees it as present.
    """

    def __init__(
        self,
        tables: Optional[Dict[Tuple[str, str], List[str]]] = None,
        datasets: Optional[Dict[str, List[str]]] = None,
        failing_extracts: Optional[Set[str]] = None,
        failing_loads: Optional[Set[str]] = None,
    ) -> None:
        self.tables = {k: list(v) for k, v in (tables or {}).items()}
        self.datasets = datasets or {}
        self.failing_extracts = failing_extracts or set()
        self.failing_loads = failing_loads or set()
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.extracts: List[Tuple[TableReference, str]] = []
        self.loads: List[Tuple[TableReference, Dict[str, Any], List[str]]] = []
        self._lock = threading.Lock()

    def list_tables(self, project_id: str, dataset_id: str) -> List[TableReference]:
        with self._lock:
            names = list(self.tables.get((project_id, dataset_id), []))
        return [table_ref(n, project_id, dataset_id) for n in names]

    def list_datasets(self, project_id: str) -> List[str]:
        return list(self.datasets.get(project_id, []))

    def _new_job(self, project_id: str, kind: str, table: TableReference, fails: bool) -> JobHandle:
        with self._lock:
            job_id = f"{kind}_{len(self.jobs) + 1}"
            self.jobs[job_id] = {"polls": 0, "fails": fails, "kind": kind, "table": table}
        return JobHandle(job_id=job_id, project_id=project_id, state=JobStatus.PENDING)

    def submit_extract_job(self, project_id: str, source_table: TableReference, destination_uri: str) -> JobHandle:
        with self._lock:
            self.extracts.append((source_table, destination_uri))
        return self._new_job(project_id, "extract", source_table, source_table.table_id in self.failing_extracts)

    def submit_load_job(
        self,
        project_id: str,
        destination_table: TableReference,
        load_options: Dict[str, Any],
        source_uris: Sequence[str],
    ) -> JobHandle:
        with self._lock:
            self.loads.append((destination_table, load_options, list(source_uris)))
        return self._new_job(project_id, "load", destination_table, destination_table.table_id in self.failing_loads)

    def get_job_status(self, project_id: str, job_id: str, location: Optional[str] = None) -> JobHandle:
        with self._lock:
            job = self.jobs[job_id]
            job["polls"] += 1
            if job["polls"] < 2:
                return JobHandle(job_id=job_id, project_id=project_id, state=JobStatus.RUNNING)
            if job["fails"]:
                errors = [{"reason": "invalid", "message": f"{job['kind']} of {job['table'].table_id} failed"}]
                return JobHandle(job_id=job_id, project_id=project_id, state=JobStatus.DONE, errors=errors)
            if job["kind"] == "load":
                table = job["table"]
                names = self.tables.setdefault((table.project_id, table.dataset_id), [])
                if table.table_id not in names:
                    names.append(table.table_id)
            return JobHandle(job_id=job_id, project_id=project_id, state=JobStatus.DONE)

    def get_table_schema(self, project_id: str, table: TableReference) -> Any:
        return [{"name": "visitId", "type": "INTEGER"}]

    def submit_query_job(
        self, project_id: str, query: str, destination_table: TableReference, force: bool = False
    ) -> JobHandle:
        return self._new_job(project_id, "query", destination_table, False)


class FakeStorage(StorageProvider):
    """In-memory staging bucket; blobs named in ``undeletable`` fail to delete.

    Only buckets present in ``blobs`` pass ``verify_bucket``.
    """

    def __init__(self, blobs: Optional[Dict[str, List[str]]] = None, undeletable: Optional[Set[str]] = None) -> None:
        self.blobs = {k: list(v) for k, v in (blobs or {}).items()}
        self.undeletable = undeletable or set()
        self.deleted: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def verify_bucket(self, bucket_name: str) -> bool:
        return bucket_name in self.blobs

    def list_blobs(self, bucket_name: str, prefix: str) -> List[str]:
        with self._lock:
            return [b for b in self.blobs.get(bucket_name, []) if b.startswith(prefix)]

    def delete_blob(self, bucket_name: str, blob_name: str) -> bool:
        if blob_name in self.undeletable:
            return False
        with self._lock:
            self.blobs[bucket_name].remove(blob_name)
            self.deleted.append((bucket_name, blob_name))
        return True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sleeps() -> List[float]:
    """Sleep replacement that records requested delays instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps: List[float]) -> Any:
    return sleeps.append


@pytest.fixture
def source_table() -> TableReference:
    return table_ref("ga_sessions_20160101")


@pytest.fixture
def new_task(source_table: TableReference) -> ReplicationTask:
    """Task in its initial EXTRACT state."""
    return ReplicationTask(
        source_table=source_table,
        destination_table=source_table.with_overrides(project_id="destination-project"),
        staging_bucket="gs://staging-bucket",
    )


@pytest.fixture
def warehouse_factory() -> Any:
    return FakeWarehouse


@pytest.fixture
def storage_factory() -> Any:
    return FakeStorage
