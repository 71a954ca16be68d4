"""Security validation utilities for BigReplicate."""
import logging
import re
import urllib.parse

logger = logging.getLogger(__name__)


class SecurityError(Exception):
    """Raised when a security validation fails."""

    pass


def validate_regex_complexity(pattern: str, max_length: int = 500) -> None:
    """Validate a table name pattern to prevent ReDoS.

    The pattern is matched against every table name in both datasets, so a
    catastrophic pattern stalls catalog resolution.

    Args:
        pattern: Regex pattern to validate
        max_length: Maximum allowed pattern length

    Raises:
        SecurityError: If pattern is suspicious

    Example:
        >>> validate_regex_complexity(r"ga_sessions_\\d+")
    """
    if len(pattern) > max_length:
        raise SecurityError(f"Regex pattern too long: {len(pattern)} > {max_length}")

    # Nested quantifiers such as (a+)+, (a*)+, (a+)*
    nested_quantifiers = re.findall(r"\([^)]*[+*]\)[+*]", pattern)
    if nested_quantifiers:
        raise SecurityError(f"Nested quantifiers detected (ReDoS risk): {nested_quantifiers}")

    alternation_groups = pattern.count("|")
    if alternation_groups > 20:
        raise SecurityError(f"Too many alternation groups: {alternation_groups} (ReDoS risk)")


def validate_blob_name(blob_name: str, max_length: int = 1024) -> str:
    """Validate a GCS blob name before a destructive operation.

    Args:
        blob_name: Blob name to validate
        max_length: Maximum allowed length

    Returns:
        Validated blob name

    Raises:
        SecurityError: If blob name is invalid or escapes its prefix

    Example:
        >>> validate_blob_name("analytics/ga_sessions_20160101/000000000000")
        'analytics/ga_sessions_20160101/000000000000'
    """
    if len(blob_name) > max_length:
        raise SecurityError(f"Blob name too long: {len(blob_name)} > {max_length}")

    # URL-encoded names are validated in decoded form too (..%2F..%2F)
    decoded = urllib.parse.unquote(blob_name)
    if decoded != blob_name:
        logger.warning(f"Blob name URL-encoded: {blob_name} -> {decoded}")
        validate_blob_name(decoded, max_length)

    if ".." in blob_name or blob_name.startswith("/"):
        raise SecurityError(f"Invalid blob name (path traversal): {blob_name}")

    if any(ord(c) < 32 for c in blob_name):
        raise SecurityError(f"Control characters in blob name: {blob_name}")

    return blob_name
