"""BigQuery table reference model.

This module defines the immutable TableReference used both as a catalog entry
and as the source/destination of a replication task.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TableReference(BaseModel):
    """Fully qualified BigQuery table identity.

    Frozen so instances are hashable and compare by value, which lets them be
    used in sets and as dictionary keys.

    Attributes:
        project_id: GCP project ID
        dataset_id: BigQuery dataset name
        table_id: Bare table name (e.g., ga_sessions_20160101)

    Example:
        >>> ref = TableReference(
        ...     project_id="source-project",
        ...     dataset_id="analytics",
        ...     table_id="ga_sessions_20160101",
        ... )
        >>> ref.full_table_id
        'source-project.analytics.ga_sessions_20160101'
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    dataset_id: str
    table_id: str

    @property
    def full_table_id(self) -> str:
        """Return fully qualified table ID."""
        return f"{self.project_id}.{self.dataset_id}.{self.table_id}"

    def with_overrides(
        self, project_id: Optional[str] = None, dataset_id: Optional[str] = None
    ) -> "TableReference":
        """Return a copy with project and/or dataset replaced.

        ``None`` overrides keep the current value, so a destination that only
        changes project keeps the source dataset name.
        """
        return self.model_copy(
            update={
                "project_id": project_id or self.project_id,
                "dataset_id": dataset_id or self.dataset_id,
            }
        )

    def __str__(self) -> str:
        return self.full_table_id
