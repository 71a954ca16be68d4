"""Custom exceptions for the bigreplicate application."""

from typing import Any


class BigReplicateError(Exception):
    """Base exception class for bigreplicate-specific errors."""

    pass


class ConfigurationError(BigReplicateError):
    """Raised when there are configuration-related errors."""

    pass


class StagingBucketError(BigReplicateError):
    """Raised when a staging bucket URI is malformed.

    Staging buckets must start with ``gs://`` and must not end with ``/``.
    """

    pass


class JobFailedError(BigReplicateError):
    """Raised when a BigQuery job finishes with a non-empty error list."""

    def __init__(self, message: str, job: Any = None) -> None:
        super().__init__(message)
        self.job = job


class CleanupError(BigReplicateError):
    """Raised when a staging blob could not be deleted."""

    def __init__(self, blob_name: str) -> None:
        super().__init__(f"unable to delete staging blob: {blob_name}")
        self.blob_name = blob_name
