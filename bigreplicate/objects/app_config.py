"""Application configuration model.

This module defines the runtime configuration for a BigReplicate run: which
dataset to copy where, how tables are selected, and how many replicator
agents run at once.
"""
import os
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bigreplicate.security import SecurityError, validate_regex_complexity

MATCH_ALL = ".*"

# Narrow with e.g. r"ga_sessions_\d+" to copy only Google Analytics session exports
DEFAULT_NAME_PATTERN = MATCH_ALL
DEFAULT_POLL_INTERVAL = 30.0


def default_agent_count() -> int:
    return os.cpu_count() or 1


class ReplicationConfig(BaseModel):
    """Replication run configuration.

    Validated using Pydantic. The staging bucket shape is checked per table
    by the extract step, so a malformed bucket shows up as failed tasks
    rather than a configuration error.

    Attributes:
        source_project: Project holding the tables to copy
        source_dataset: Dataset holding the tables to copy
        destination_project: Project to copy tables into
        destination_dataset: Destination dataset (defaults to source_dataset)
        staging_bucket: GCS URI used as the intermediate hop (gs://bucket)
        name_pattern: Regex that must fully match a table name for it to be copied
        limit: Maximum number of missing tables to copy in one run
        agents: Number of concurrent replicator agents
        poll_interval: Seconds between BigQuery job status polls

    Example:
        >>> config = ReplicationConfig(
        ...     source_project="source-project",
        ...     source_dataset="analytics",
        ...     destination_project="destination-project",
        ...     staging_bucket="gs://staging-bucket",
        ... )
        >>> config.target_dataset
        'analytics'
    """

    model_config = ConfigDict(frozen=True)

    source_project: str
    source_dataset: str
    destination_project: str
    destination_dataset: Optional[str] = None
    staging_bucket: str
    name_pattern: str = DEFAULT_NAME_PATTERN
    limit: int = Field(default=7, ge=0)
    agents: int = Field(default_factory=default_agent_count, ge=1)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)

    @field_validator("name_pattern")
    @classmethod
    def validate_name_pattern(cls, v: str) -> str:
        """Validate name pattern for safety and compilability."""
        try:
            validate_regex_complexity(v)
            re.compile(v)
        except SecurityError as e:
            raise ValueError(f"Unsafe regex pattern: {e}")
        except re.error as e:
            raise ValueError(f"Invalid regex pattern: {e}")
        return v

    @property
    def target_dataset(self) -> str:
        """Destination dataset, falling back to the source dataset name."""
        return self.destination_dataset or self.source_dataset
