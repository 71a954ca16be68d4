"""Tests for BigQueryManager."""

from unittest.mock import Mock, patch

from google.api_core import exceptions as google_api_exceptions
from google.cloud import bigquery

from bigreplicate.bucket.bigquery_manager import BigQueryManager
from bigreplicate.objects.replication_task import JobStatus
from bigreplicate.objects.table_reference import TableReference

SOURCE = TableReference(project_id="source-project", dataset_id="analytics", table_id="ga_sessions_20160101")
DESTINATION = SOURCE.with_overrides(project_id="destination-project")


def _job(job_id: str = "job_1", state: str = "RUNNING", errors: list | None = None) -> Mock:
    job = Mock()
    job.job_id = job_id
    job.project = "source-project"
    job.location = "US"
    job.state = state
    job.errors = errors
    return job


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_client_created_once_per_project(mock_client_class: Mock) -> None:
    """Test clients are cached per project."""
    manager = BigQueryManager()

    manager.client("source-project")
    manager.client("source-project")
    manager.client("destination-project")

    assert mock_client_class.call_count == 2
    mock_client_class.assert_any_call(project="source-project")
    mock_client_class.assert_any_call(project="destination-project")


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_verify_dataset_found(mock_client_class: Mock) -> None:
    """Test verify_dataset returns True for an accessible dataset."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client

    assert BigQueryManager().verify_dataset("source-project", "analytics") is True
    mock_client.get_dataset.assert_called_once_with("source-project.analytics")


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_verify_dataset_missing(mock_client_class: Mock) -> None:
    """Test verify_dataset returns False when the dataset does not exist."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.get_dataset.side_effect = google_api_exceptions.NotFound("Not found")

    assert BigQueryManager().verify_dataset("source-project", "missing") is False


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_verify_dataset_auth_failure(mock_client_class: Mock) -> None:
    """Test verify_dataset handles authentication failure."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.get_dataset.side_effect = google_api_exceptions.Unauthenticated("Unauthenticated")

    assert BigQueryManager().verify_dataset("source-project", "analytics") is False


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_list_tables(mock_client_class: Mock) -> None:
    """Test list_tables maps list items to TableReferences."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    items = []
    for name in ("ga_sessions_20160101", "ga_sessions_20160102"):
        item = Mock()
        item.project = "source-project"
        item.dataset_id = "analytics"
        item.table_id = name
        items.append(item)
    mock_client.list_tables.return_value = items

    tables = BigQueryManager().list_tables("source-project", "analytics")

    assert [t.full_table_id for t in tables] == [
        "source-project.analytics.ga_sessions_20160101",
        "source-project.analytics.ga_sessions_20160102",
    ]
    mock_client.list_tables.assert_called_once_with("source-project.analytics")


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_list_tables_missing_dataset_is_empty(mock_client_class: Mock) -> None:
    """Test a missing dataset lists as empty."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.list_tables.side_effect = google_api_exceptions.NotFound("Not found")

    assert BigQueryManager().list_tables("destination-project", "analytics") == []


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_list_tables_permission_denied_propagates(mock_client_class: Mock) -> None:
    """Test non-NotFound errors are not swallowed."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.list_tables.side_effect = google_api_exceptions.Forbidden("Forbidden")

    try:
        BigQueryManager().list_tables("source-project", "analytics")
        raise AssertionError("Forbidden was not raised")
    except google_api_exceptions.Forbidden:
        pass


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_list_datasets(mock_client_class: Mock) -> None:
    """Test list_datasets returns dataset ids."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    first, second = Mock(), Mock()
    first.dataset_id = "a"
    second.dataset_id = "b"
    mock_client.list_datasets.return_value = [first, second]

    assert BigQueryManager().list_datasets("source-project") == ["a", "b"]


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_submit_extract_job(mock_client_class: Mock) -> None:
    """Test extract jobs write gzipped newline-delimited JSON."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.extract_table.return_value = _job("extract_1")

    handle = BigQueryManager(location="US").submit_extract_job(
        "source-project", SOURCE, "gs://staging/analytics/ga_sessions_20160101/*"
    )

    assert handle.job_id == "extract_1"
    assert handle.state == JobStatus.RUNNING
    args, kwargs = mock_client.extract_table.call_args
    assert args == ("source-project.analytics.ga_sessions_20160101", "gs://staging/analytics/ga_sessions_20160101/*")
    assert kwargs["location"] == "US"
    assert kwargs["project"] == "source-project"
    job_config = kwargs["job_config"]
    assert job_config.destination_format == bigquery.DestinationFormat.NEWLINE_DELIMITED_JSON
    assert job_config.compression == bigquery.Compression.GZIP


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_submit_load_job_dispositions(mock_client_class: Mock) -> None:
    """Test load options map to BigQuery dispositions."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.load_table_from_uri.return_value = _job("load_1")
    schema = [bigquery.SchemaField("visitId", "INTEGER")]

    BigQueryManager().submit_load_job(
        "destination-project",
        DESTINATION,
        {"create_disposition": "needed", "write_disposition": "empty", "schema": schema},
        ["gs://staging/analytics/ga_sessions_20160101/*"],
    )

    args, kwargs = mock_client.load_table_from_uri.call_args
    assert args == (
        ["gs://staging/analytics/ga_sessions_20160101/*"],
        "destination-project.analytics.ga_sessions_20160101",
    )
    assert kwargs["project"] == "destination-project"
    job_config = kwargs["job_config"]
    assert job_config.source_format == bigquery.SourceFormat.NEWLINE_DELIMITED_JSON
    assert job_config.create_disposition == bigquery.CreateDisposition.CREATE_IF_NEEDED
    assert job_config.write_disposition == bigquery.WriteDisposition.WRITE_EMPTY
    assert [f.name for f in job_config.schema] == ["visitId"]


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_get_job_status_done_with_errors(mock_client_class: Mock) -> None:
    """Test a finished job with errors converts to a failed handle."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.get_job.return_value = _job("load_1", "DONE", [{"reason": "invalid", "message": "bad row"}])

    handle = BigQueryManager().get_job_status("destination-project", "load_1", "EU")

    assert handle.is_failed
    assert handle.errors == [{"reason": "invalid", "message": "bad row"}]
    mock_client.get_job.assert_called_once_with("load_1", project="destination-project", location="EU")


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_get_job_status_done(mock_client_class: Mock) -> None:
    """Test a finished job without errors converts to a successful handle."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.get_job.return_value = _job("extract_1", "DONE")

    assert BigQueryManager().get_job_status("source-project", "extract_1").is_successful


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_get_table_schema(mock_client_class: Mock) -> None:
    """Test the schema is read from the table."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    schema = [bigquery.SchemaField("visitId", "INTEGER")]
    mock_client.get_table.return_value = Mock(schema=schema)

    assert BigQueryManager().get_table_schema("source-project", SOURCE) == schema
    mock_client.get_table.assert_called_once_with("source-project.analytics.ga_sessions_20160101")


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_submit_query_job_write_disposition(mock_client_class: Mock) -> None:
    """Test force selects truncate, otherwise the destination must be empty."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.query.return_value = _job("query_1")
    manager = BigQueryManager()

    manager.submit_query_job("destination-project", "SELECT 1", DESTINATION)
    default_config = mock_client.query.call_args.kwargs["job_config"]
    manager.submit_query_job("destination-project", "SELECT 1", DESTINATION, force=True)
    forced_config = mock_client.query.call_args.kwargs["job_config"]

    assert default_config.write_disposition == bigquery.WriteDisposition.WRITE_EMPTY
    assert forced_config.write_disposition == bigquery.WriteDisposition.WRITE_TRUNCATE
    assert default_config.use_query_cache is False
    assert mock_client.query.call_args.args == ("SELECT 1",)


@patch("bigreplicate.bucket.retry_utils.time.sleep")
@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_submit_load_job_retry_reuses_job_id(mock_client_class: Mock, mock_sleep: Mock) -> None:
    """Test a retried submission keeps its job id, so only one job can exist."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.load_table_from_uri.side_effect = [
        google_api_exceptions.DeadlineExceeded("Deadline exceeded"),
        _job("bigreplicate_load_1"),
    ]

    handle = BigQueryManager().submit_load_job(
        "destination-project", DESTINATION, {}, ["gs://staging/analytics/ga_sessions_20160101/*"]
    )

    assert handle.job_id == "bigreplicate_load_1"
    job_ids = [c.kwargs["job_id"] for c in mock_client.load_table_from_uri.call_args_list]
    assert len(job_ids) == 2
    assert job_ids[0] == job_ids[1]
    assert job_ids[0].startswith("bigreplicate_load_")
    mock_sleep.assert_called_once()


@patch("bigreplicate.bucket.retry_utils.time.sleep")
@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_submit_extract_job_conflict_returns_existing_job(mock_client_class: Mock, mock_sleep: Mock) -> None:
    """Test a retry that finds the job already created returns that job."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.extract_table.side_effect = [
        google_api_exceptions.DeadlineExceeded("Deadline exceeded"),
        google_api_exceptions.Conflict("Already exists"),
    ]
    mock_client.get_job.return_value = _job("bigreplicate_extract_1")

    handle = BigQueryManager(location="US").submit_extract_job(
        "source-project", SOURCE, "gs://staging/analytics/ga_sessions_20160101/*"
    )

    assert handle.job_id == "bigreplicate_extract_1"
    job_id = mock_client.extract_table.call_args.kwargs["job_id"]
    mock_client.get_job.assert_called_once_with(job_id, project="source-project", location="US")


@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_submit_query_job_has_client_job_id(mock_client_class: Mock) -> None:
    """Test query jobs are submitted under a client-side job id."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.query.return_value = _job("query_1")

    BigQueryManager().submit_query_job("destination-project", "SELECT 1", DESTINATION)

    assert mock_client.query.call_args.kwargs["job_id"].startswith("bigreplicate_query_")


@patch("bigreplicate.bucket.retry_utils.time.sleep")
@patch("bigreplicate.bucket.bigquery_manager.bigquery.Client")
def test_get_job_status_retries_transient_read(mock_client_class: Mock, mock_sleep: Mock) -> None:
    """Test a failed status read is retried, while a running job is returned as is."""
    mock_client = Mock()
    mock_client_class.return_value = mock_client
    mock_client.get_job.side_effect = [google_api_exceptions.ServiceUnavailable("Unavailable"), _job("load_1")]

    handle = BigQueryManager().get_job_status("destination-project", "load_1")

    assert handle.state == JobStatus.RUNNING
    assert mock_client.get_job.call_count == 2
    mock_sleep.assert_called_once()
