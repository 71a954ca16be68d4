"""Shared helpers for commands: settings lookup and lazily created managers."""

from typing import Any, Dict, Optional, Tuple

import click
from google.auth import exceptions as google_auth_exceptions
from pydantic import ValidationError

from bigreplicate.bucket.bigquery_manager import BigQueryManager
from bigreplicate.bucket.gcs_manager import GcsManager
from bigreplicate.console import error
from bigreplicate.objects.app_config import ReplicationConfig
from bigreplicate.replication.state_machine import GCS_SCHEME, split_bucket

CREDENTIALS_HINT = "Authentication required. Run: gcloud auth application-default login"


def require_setting(ctx: click.Context, name: str, env_var: str) -> Any:
    """Return a group-level setting, raising a usage error when it is missing."""
    value = ctx.obj["SETTINGS"].get(name)
    if not value:
        raise click.UsageError(f"{env_var} must be set (or pass --{name.replace('_', '-')})")
    return value


def build_config(ctx: click.Context, require_bucket: bool = True, **command_options: Any) -> ReplicationConfig:
    """Combine group settings with command options into a ReplicationConfig.

    Commands that never stage data pass ``require_bucket=False``.
    """
    settings: Dict[str, Any] = ctx.obj["SETTINGS"]
    if require_bucket:
        staging_bucket = require_setting(ctx, "google_cloud_bucket", "BR_STAGING_BUCKET")
    else:
        staging_bucket = settings.get("google_cloud_bucket") or ""
    values = {
        "source_project": require_setting(ctx, "source_project", "BR_SOURCE_PROJECT"),
        "destination_project": require_setting(ctx, "destination_project", "BR_DESTINATION_PROJECT"),
        "staging_bucket": staging_bucket,
        "poll_interval": settings["poll_interval"],
        **{k: v for k, v in command_options.items() if v is not None},
    }
    if settings.get("number_of_agents") is not None:
        values["agents"] = settings["number_of_agents"]

    try:
        return ReplicationConfig(**values)
    except ValidationError as e:
        raise click.UsageError(f"Invalid replication settings\n{e}")


def get_bigquery_manager(ctx: click.Context) -> BigQueryManager:
    """Return the BigQuery manager stored in the context, creating it on first use."""
    bq_manager = ctx.obj.get("BQ_MANAGER")
    if not bq_manager:
        bq_manager = BigQueryManager(location=ctx.obj["SETTINGS"].get("location"))
        ctx.obj["BQ_MANAGER"] = bq_manager
    return bq_manager


def get_managers(ctx: click.Context, staging_bucket: Optional[str] = None) -> Tuple[BigQueryManager, GcsManager]:
    """Return the BigQuery and GCS managers, creating them on first use.

    When ``staging_bucket`` is well-formed, bucket access is checked once so
    credential problems abort before any table is scheduled. A malformed
    bucket is left for the extract step to report per table.
    """
    bq_manager = get_bigquery_manager(ctx)

    gcs_manager = ctx.obj.get("GCS_MANAGER")
    if not gcs_manager:
        try:
            gcs_manager = GcsManager(ctx.obj["SETTINGS"].get("destination_project"))
        except google_auth_exceptions.DefaultCredentialsError as e:
            error(f"No Google Cloud credentials found: {e}")
            error(CREDENTIALS_HINT)
            ctx.exit(1)
        ctx.obj["GCS_MANAGER"] = gcs_manager

    if staging_bucket and staging_bucket.startswith(GCS_SCHEME):
        bucket_name, _ = split_bucket(staging_bucket)
        if bucket_name and not gcs_manager.verify_bucket(bucket_name):
            error("Unable to access the staging bucket. Check credentials and try again.")
            ctx.abort()

    return bq_manager, gcs_manager
