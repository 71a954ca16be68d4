"""Abstract warehouse provider interface.

This module defines the WarehouseProvider abstract base class the replication
engine talks to. BigQueryManager is the production implementation; tests
substitute mocks.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from bigreplicate.objects.replication_task import JobHandle
from bigreplicate.objects.table_reference import TableReference


class WarehouseProvider(ABC):
    """Abstract interface for warehouse catalog and job operations.

    Every job-submitting method returns immediately with a JobHandle; callers
    poll :meth:`get_job_status` until the job is done.
    """

    @abstractmethod
    def list_tables(self, project_id: str, dataset_id: str) -> List[TableReference]:
        """List every table in a dataset.

        Args:
            project_id: Project owning the dataset
            dataset_id: Dataset to list

        Returns:
            Table references in the dataset (any order)
        """
        pass

    @abstractmethod
    def list_datasets(self, project_id: str) -> List[str]:
        """List dataset IDs in a project."""
        pass

    @abstractmethod
    def submit_extract_job(self, project_id: str, source_table: TableReference, destination_uri: str) -> JobHandle:
        """Start exporting a table to storage.

        Args:
            project_id: Project the job is billed to and runs in
            source_table: Table to export
            destination_uri: Wildcard storage URI to shard the export into

        Returns:
            Handle of the submitted job
        """
        pass

    @abstractmethod
    def submit_load_job(
        self,
        project_id: str,
        destination_table: TableReference,
        load_options: Dict[str, Any],
        source_uris: Sequence[str],
    ) -> JobHandle:
        """Start loading storage files into a table.

        Args:
            project_id: Project the job runs in
            destination_table: Table to load into
            load_options: ``create_disposition``, ``write_disposition`` and ``schema``
            source_uris: Storage URIs (wildcards allowed) to read

        Returns:
            Handle of the submitted job
        """
        pass

    @abstractmethod
    def get_job_status(self, project_id: str, job_id: str, location: Optional[str] = None) -> JobHandle:
        """Fetch the current status of a job."""
        pass

    @abstractmethod
    def get_table_schema(self, project_id: str, table: TableReference) -> Any:
        """Fetch a table's schema.

        Returns:
            Provider-specific schema value, passed through to load jobs unmodified
        """
        pass

    @abstractmethod
    def submit_query_job(
        self,
        project_id: str,
        query: str,
        destination_table: TableReference,
        force: bool = False,
    ) -> JobHandle:
        """Start a query job that writes its result into a table.

        Args:
            project_id: Project the job runs in
            query: Standard SQL query
            destination_table: Table to write results into
            force: Truncate existing contents instead of requiring an empty table

        Returns:
            Handle of the submitted job
        """
        pass
