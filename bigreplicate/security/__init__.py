"""Security utilities for BigReplicate."""

from bigreplicate.security.validators import (
    SecurityError,
    validate_blob_name,
    validate_regex_complexity,
)

__all__ = [
    "SecurityError",
    "validate_regex_complexity",
    "validate_blob_name",
]
