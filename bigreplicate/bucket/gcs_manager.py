"""Google Cloud Storage staging bucket management.

This module provides the GcsManager class, the StorageProvider used in
production to enumerate and delete the shards an extract job wrote to the
staging bucket.
"""

from typing import List, Optional

from google.api_core import exceptions as google_api_exceptions
from google.cloud import storage  # type: ignore[attr-defined]

from bigreplicate.bucket.retry_utils import retry_with_backoff
from bigreplicate.bucket.storage_provider import StorageProvider
from bigreplicate.logging_config import get_logger
from bigreplicate.security import SecurityError, validate_blob_name

logger = get_logger(__name__)


class GcsManager(StorageProvider):
    """Manager for Google Cloud Storage staging operations.

    Attributes:
        storage_client: GCS storage client (thread-safe, shared by all agents)
    """

    def __init__(self, gcs_project: Optional[str] = None) -> None:
        """Create the GCS client.

        Args:
            gcs_project: GCP project used for billing storage requests
        """
        self.storage_client = storage.Client(project=gcs_project)

    def verify_bucket(self, bucket_name: str) -> bool:
        """Check the staging bucket exists and is accessible.

        Note:
            Run 'gcloud auth application-default login' if authentication fails.
        """
        try:
            bucket = self.storage_client.get_bucket(bucket_name)
            logger.info(f"Found GCS bucket: {bucket.name}")
            return True
        except google_api_exceptions.Unauthenticated as e:
            logger.error(f"GCS authentication failed: {e}")
            logger.error("Authentication required. Run: gcloud auth application-default login")
            return False
        except google_api_exceptions.NotFound:
            logger.error(f"GCS bucket not found: {bucket_name}")
            return False
        except google_api_exceptions.PermissionDenied as e:
            logger.error(f"GCS permission denied: {e}")
            return False
        except Exception as e:
            logger.error(f"Error connecting to GCS: {e}", exc_info=True)
            return False

    @retry_with_backoff(retries=3)
    def list_blobs(self, bucket_name: str, prefix: str) -> List[str]:
        """List all blobs in bucket with given prefix.

        Errors propagate so cleanup never mistakes an unreadable bucket for an
        empty staging location.
        """
        blobs = self.storage_client.list_blobs(bucket_name, prefix=prefix)
        return [blob.name for blob in blobs]

    def delete_blob(self, bucket_name: str, blob_name: str) -> bool:
        """Delete a blob from the bucket.

        Args:
            bucket_name: Bucket name without scheme
            blob_name: Name of blob to delete

        Returns:
            True if deletion succeeded, False otherwise
        """
        try:
            validate_blob_name(blob_name)
        except SecurityError as e:
            logger.error(f"Refusing to delete blob: {e}")
            return False

        try:
            self._delete(bucket_name, blob_name)
            logger.debug(f"Deleted gs://{bucket_name}/{blob_name}")
            return True
        except google_api_exceptions.NotFound:
            logger.error(f"Blob not found: gs://{bucket_name}/{blob_name}")
            return False
        except google_api_exceptions.PermissionDenied as e:
            logger.error(f"Permission denied deleting blob: {e}")
            return False
        except Exception as e:
            logger.error(f"Error deleting blob gs://{bucket_name}/{blob_name}: {e}", exc_info=True)
            return False

    @retry_with_backoff(retries=3)
    def _delete(self, bucket_name: str, blob_name: str) -> None:
        bucket = self.storage_client.bucket(bucket_name)
        bucket.blob(blob_name).delete()
