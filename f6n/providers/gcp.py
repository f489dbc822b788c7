"""
GCP Cloud Functions (1st gen) provider.

Cloud Functions API for metadata, Cloud Logging for logs, Cloud Monitoring
for metrics and Cloud Storage for source archives.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List

from google.api_core import exceptions as gapi_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import functions_v1, monitoring_v3, storage
from google.cloud import logging as cloud_logging

from ..core.exceptions import (
    FunctionNotFoundError,
    ProviderConfigError,
    ProviderError,
    UnsupportedSourceError,
)
from ..models import FunctionMetrics, FunctionSummary, LogEntry, MetricPoint, MetricSeries
from ..services.archive import extract_zip
from .base import Provider, ProviderName
from .sample import sample_metrics

logger = logging.getLogger("f6n.providers.gcp")

LOG_WINDOW = timedelta(hours=24)
MAX_STREAMED_ENTRIES = 1000

# metric type -> (FunctionMetrics field, name, unit, description, scale)
_METRIC_TYPES = {
    "cloudfunctions.googleapis.com/function/executions": (
        "invocations",
        "Invocations",
        "count",
        "Number of function invocations",
        1.0,
    ),
    "cloudfunctions.googleapis.com/function/execution_times": (
        "duration",
        "Duration",
        "ms",
        "Function execution duration",
        1e-6,  # reported in nanoseconds
    ),
    "cloudfunctions.googleapis.com/function/user_memory_bytes": (
        "memory",
        "Memory Usage",
        "bytes",
        "Memory used during execution",
        1.0,
    ),
}


def split_gs_url(url: str) -> tuple[str, str]:
    """Split ``gs://bucket/path/to/object`` into bucket and object names."""
    if not url.startswith("gs://"):
        raise UnsupportedSourceError("", f"invalid GCS URL: {url}")
    bucket, _, obj = url[len("gs://"):].partition("/")
    if not bucket or not obj:
        raise UnsupportedSourceError("", f"invalid GCS URL format: {url}")
    return bucket, obj


def _seconds(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    if isinstance(value, str) and value.endswith("s"):
        return int(float(value[:-1] or 0))
    return int(getattr(value, "seconds", 0) or 0)


def _timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value or "")


def _payload_text(payload: Any) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        return str(payload.get("message") or payload)
    return str(payload)


class GCPProvider(Provider):
    """Provider for Cloud Functions in one project/location."""

    def __init__(
        self,
        project_id: str,
        location: str = "us-central1",
        functions_client: Any = None,
        logging_client: Any = None,
        monitoring_client: Any = None,
        storage_client: Any = None,
    ):
        if not project_id:
            raise ProviderConfigError("GCP project ID is required (set GCP_PROJECT or --gcp-project)")
        self.project_id = project_id
        self.location = location or "us-central1"
        try:
            self.functions_client = functions_client or functions_v1.CloudFunctionsServiceClient()
        except auth_exceptions.DefaultCredentialsError as e:
            raise ProviderConfigError(f"failed to create Cloud Functions client: {e}") from e
        self._logging_client = logging_client
        self._monitoring_client = monitoring_client
        self._storage_client = storage_client

    @property
    def logging_client(self):
        if self._logging_client is None:
            self._logging_client = cloud_logging.Client(project=self.project_id)
        return self._logging_client

    @property
    def monitoring_client(self):
        if self._monitoring_client is None:
            self._monitoring_client = monitoring_v3.MetricServiceClient()
        return self._monitoring_client

    @property
    def storage_client(self):
        if self._storage_client is None:
            self._storage_client = storage.Client(project=self.project_id)
        return self._storage_client

    def get_provider_name(self) -> ProviderName:
        return ProviderName.GCP

    def get_region(self) -> str:
        return self.location

    def get_account_id(self) -> str:
        return self.project_id

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}/locations/{self.location}"

    def _full_name(self, name: str) -> str:
        return f"{self.parent}/functions/{name}"

    def _summary(self, fn: Any) -> FunctionSummary:
        return FunctionSummary(
            name=fn.name.rsplit("/", 1)[-1],
            runtime=fn.runtime,
            memory=fn.available_memory_mb or 0,
            timeout=_seconds(fn.timeout),
            handler=fn.entry_point,
            last_modified=_timestamp(fn.update_time),
            resource_id=fn.name,
            description=fn.description,
            role=fn.service_account_email,
            environment=dict(fn.environment_variables or {}),
            region=self.location,
        )

    def list_functions(self) -> List[FunctionSummary]:
        try:
            functions = [
                self._summary(fn)
                for fn in self.functions_client.list_functions(request={"parent": self.parent})
            ]
        except gapi_exceptions.GoogleAPICallError as e:
            raise ProviderError("list Cloud Functions", e) from e
        logger.debug(f"Listed {len(functions)} Cloud Functions in {self.parent}")
        return functions

    def _get_function(self, name: str) -> Any:
        try:
            return self.functions_client.get_function(request={"name": self._full_name(name)})
        except gapi_exceptions.NotFound as e:
            raise FunctionNotFoundError(name) from e
        except gapi_exceptions.GoogleAPICallError as e:
            raise ProviderError("get function details", e) from e

    def get_function(self, name: str) -> FunctionSummary:
        return self._summary(self._get_function(name))

    def get_function_code(self, name: str) -> str:
        fn = self._get_function(name)
        lines = ["━━━ Code Information ━━━", ""]
        lines.append(f"Runtime: {fn.runtime}")
        lines.append(f"Entry Point: {fn.entry_point}")
        lines.append("")

        repo = fn.source_repository if fn.source_repository and fn.source_repository.url else None
        if fn.source_archive_url:
            lines.append("Source Type: Cloud Storage Archive")
            lines.append(f"Archive URL: {fn.source_archive_url}")
            lines.append("")
            try:
                bucket, obj = split_gs_url(fn.source_archive_url)
            except UnsupportedSourceError:
                pass
            else:
                lines.append(f"Bucket: {bucket}")
                lines.append(f"Object: {obj}")
                lines.append("")
        elif repo:
            lines.append("Source Type: Cloud Source Repository")
            lines.append(f"Repository URL: {repo.url}")
            lines.append("")
            if repo.deployed_url:
                lines.append(f"Deployed URL: {repo.deployed_url}")
                lines.append("")
        elif fn.source_upload_url:
            lines.append("Source Type: Upload URL")
            lines.append(f"Upload URL: {fn.source_upload_url}")
            lines.append("")
        else:
            lines.append("Source: Not available")
            lines.append("")

        lines.append("Configuration:")
        lines.append(f"  Memory: {fn.available_memory_mb} MB")
        lines.append(f"  Timeout: {_seconds(fn.timeout)}s")
        if fn.max_instances:
            lines.append(f"  Max Instances: {fn.max_instances}")
        if fn.min_instances:
            lines.append(f"  Min Instances: {fn.min_instances}")
        lines.append("")

        if fn.environment_variables:
            lines.append("Environment Variables:")
            for key, value in sorted(fn.environment_variables.items()):
                lines.append(f"  {key}: {value}")
            lines.append("")

        if fn.vpc_connector:
            lines.append(f"VPC Connector: {fn.vpc_connector}")
            lines.append("")

        lines.append("To download source code:")
        if fn.source_archive_url:
            lines.append(f"1. Use gsutil: gsutil cp {fn.source_archive_url} .")
        lines.append(f"2. Use gcloud CLI: gcloud functions describe {name} --region={self.location}")
        lines.append("3. Download from GCP Console > Cloud Functions")
        if repo:
            lines.append("4. Clone from Cloud Source Repository using the URL above")
        return "\n".join(lines)

    def download_function_code(self, name: str, destination: Path) -> None:
        fn = self._get_function(name)
        destination = Path(destination)
        logger.info(
            f"Source for {name}: archive={fn.source_archive_url!r} "
            f"upload={fn.source_upload_url!r}"
        )

        repo = fn.source_repository if fn.source_repository and fn.source_repository.url else None
        if fn.source_archive_url:
            self._download_from_gcs(name, fn.source_archive_url, destination)
        elif repo:
            self._write_clone_instructions(repo, destination)
        elif fn.source_upload_url:
            raise UnsupportedSourceError(
                name, "source upload URL type not supported for direct download"
            )
        else:
            raise UnsupportedSourceError(name, f"no downloadable source found for function {name}")

    def _download_from_gcs(self, name: str, url: str, destination: Path) -> None:
        try:
            bucket, obj = split_gs_url(url)
        except UnsupportedSourceError as e:
            raise UnsupportedSourceError(name, e.detail) from e

        logger.info(f"Downloading gs://{bucket}/{obj}")
        try:
            data = self.storage_client.bucket(bucket).blob(obj).download_as_bytes()
        except gapi_exceptions.GoogleAPICallError as e:
            raise ProviderError(f"download {url}", e) from e
        extract_zip(data, destination)

    def _write_clone_instructions(self, repo: Any, destination: Path) -> None:
        lines = ["To clone this Cloud Source Repository:", "", f"Repository URL: {repo.url}"]
        if repo.deployed_url:
            lines.append(f"Deployed URL: {repo.deployed_url}")
        lines += [
            "",
            "Commands to clone:",
            "1. Install Google Cloud SDK if not already installed",
            "2. Authenticate: gcloud auth login",
            f"3. Clone: gcloud source repos clone [REPO_NAME] --project={self.project_id}",
        ]
        path = destination / "clone_instructions.txt"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info(f"Wrote clone instructions to {path}")

    def _log_filter(self, name: str, since: datetime) -> str:
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        stamp = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        return (
            'resource.type="cloud_function"\n'
            f'resource.labels.function_name="{name}"\n'
            f'timestamp>="{stamp}"'
        )

    def _entry(self, entry: Any) -> LogEntry:
        timestamp = entry.timestamp or datetime.now(timezone.utc)
        return LogEntry(
            timestamp=timestamp,
            severity=str(entry.severity or "DEFAULT"),
            message=_payload_text(entry.payload),
            labels=dict(entry.labels or {}),
        )

    def _list_entries(self, name: str, since: datetime, max_results: int, order_by: str) -> List[LogEntry]:
        try:
            entries = self.logging_client.list_entries(
                resource_names=[f"projects/{self.project_id}"],
                filter_=self._log_filter(name, since),
                order_by=order_by,
                max_results=max_results,
            )
            return [self._entry(entry) for entry in entries]
        except gapi_exceptions.GoogleAPICallError as e:
            raise ProviderError(f"fetch logs for {name}", e) from e

    def get_function_logs(self, name: str, limit: int) -> List[str]:
        since = datetime.now(timezone.utc) - LOG_WINDOW
        entries = self._list_entries(
            name, since, limit if limit > 0 else MAX_STREAMED_ENTRIES, cloud_logging.DESCENDING
        )
        if not entries:
            return [f"No logs found for function: {name} (last 24 hours)"]
        return [entry.format_line() for entry in entries]

    def query_log_entries(self, name: str, since: datetime) -> List[LogEntry]:
        # Oldest first: a capped page leaves the remainder for the next poll.
        return self._list_entries(name, since, MAX_STREAMED_ENTRIES, cloud_logging.ASCENDING)

    def _fetch_series(
        self, metric_type: str, name: str, start: datetime, end: datetime, scale: float
    ) -> List[MetricPoint]:
        interval = monitoring_v3.TimeInterval(
            {
                "start_time": {"seconds": int(start.timestamp())},
                "end_time": {"seconds": int(end.timestamp())},
            }
        )
        results = self.monitoring_client.list_time_series(
            request={
                "name": f"projects/{self.project_id}",
                "filter": (
                    'resource.type="cloud_function" AND '
                    f'resource.labels.function_name="{name}" AND '
                    f'metric.type="{metric_type}"'
                ),
                "interval": interval,
                "view": monitoring_v3.ListTimeSeriesRequest.TimeSeriesView.FULL,
            }
        )

        points = []
        for series in results:
            for point in series.points:
                kind = monitoring_v3.TypedValue.pb(point.value).WhichOneof("value")
                if kind == "double_value":
                    value = point.value.double_value
                elif kind == "int64_value":
                    value = float(point.value.int64_value)
                elif kind == "distribution_value":
                    value = point.value.distribution_value.mean
                else:
                    continue
                points.append(MetricPoint(timestamp=point.interval.end_time, value=value * scale))
        return points

    def get_function_metrics(self, name: str, start: datetime, end: datetime) -> FunctionMetrics:
        try:
            self.monitoring_client
        except auth_exceptions.DefaultCredentialsError as e:
            logger.warning(f"Monitoring client unavailable ({e}); using sample metrics")
            return sample_metrics(name, start, end)

        fields = {}
        has_data = False
        for metric_type, (field, metric, unit, description, scale) in _METRIC_TYPES.items():
            try:
                points = self._fetch_series(metric_type, name, start, end, scale)
            except gapi_exceptions.GoogleAPICallError as e:
                logger.warning(f"Error fetching metric {metric_type}: {e}")
                points = []
            has_data = has_data or bool(points)
            fields[field] = MetricSeries(name=metric, unit=unit, description=description, points=points)

        if not has_data:
            logger.info(f"No metrics data found for {name}; using sample data")
            return sample_metrics(name, start, end)

        return FunctionMetrics(function_name=name, start=start, end=end, **fields)

