"""Abstract storage provider interface.

This module defines the StorageProvider abstract base class used by the
cleanup step to remove staging blobs. GcsManager is the production
implementation.
"""

from abc import ABC, abstractmethod
from typing import List


class StorageProvider(ABC):
    """Abstract interface for staging storage operations."""

    @abstractmethod
    def list_blobs(self, bucket_name: str, prefix: str) -> List[str]:
        """List blob names in a bucket under a prefix.

        Args:
            bucket_name: Bucket name without scheme (e.g., "staging-bucket")
            prefix: Blob name prefix (e.g., "analytics/ga_sessions_20160101/")

        Returns:
            Names of all blobs starting with the prefix
        """
        pass

    @abstractmethod
    def delete_blob(self, bucket_name: str, blob_name: str) -> bool:
        """Delete a single blob.

        Returns:
            True if the blob was deleted, False otherwise
        """
        pass
