"""
Where: f6n/tests/test_gcp_provider.py
What: Tests for GCPProvider with mocked Google Cloud clients.
Why: Verifies Cloud Functions / Logging / Monitoring / Storage mapping without credentials.
"""

import io
import zipfile
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gapi_exceptions
from google.cloud import functions_v1, monitoring_v3
from google.cloud import logging as cloud_logging

from f6n.core.exceptions import (
    FunctionNotFoundError,
    ProviderConfigError,
    ProviderError,
    UnsupportedSourceError,
)
from f6n.providers.gcp import GCPProvider, split_gs_url
from f6n.services.streaming import select_new_entries

NOW = datetime(2024, 9, 25, 12, 0, tzinfo=timezone.utc)
PARENT = "projects/demo/locations/us-central1"


def cloud_function(name="hello", **kwargs):
    values = dict(
        name=f"{PARENT}/functions/{name}",
        runtime="python312",
        entry_point="main",
        available_memory_mb=256,
        timeout=timedelta(seconds=60),
        description="Says hello",
        service_account_email="sa@demo.iam.gserviceaccount.com",
        environment_variables={"MODE": "prod"},
    )
    values.update(kwargs)
    return functions_v1.CloudFunction(**values)


def time_series(*values):
    points = [
        monitoring_v3.Point(
            interval=monitoring_v3.TimeInterval(end_time=NOW - timedelta(minutes=i)),
            value=monitoring_v3.TypedValue(double_value=v),
        )
        for i, v in enumerate(values)
    ]
    return monitoring_v3.TimeSeries(points=points)


@pytest.fixture
def clients():
    return SimpleNamespace(
        functions=MagicMock(name="functions"),
        logging=MagicMock(name="logging"),
        monitoring=MagicMock(name="monitoring"),
        storage=MagicMock(name="storage"),
    )


@pytest.fixture
def provider(clients):
    return GCPProvider(
        "demo",
        "us-central1",
        functions_client=clients.functions,
        logging_client=clients.logging,
        monitoring_client=clients.monitoring,
        storage_client=clients.storage,
    )


def test_project_is_required():
    with pytest.raises(ProviderConfigError, match="project ID is required"):
        GCPProvider("", functions_client=MagicMock())


@pytest.mark.parametrize(
    "url,expected",
    [
        ("gs://bucket/src/fn.zip", ("bucket", "src/fn.zip")),
        ("gs://b/o", ("b", "o")),
    ],
)
def test_split_gs_url(url, expected):
    assert split_gs_url(url) == expected


@pytest.mark.parametrize("url", ["https://bucket/o", "gs://bucket", "gs:///object"])
def test_split_gs_url_invalid(url):
    with pytest.raises(UnsupportedSourceError):
        split_gs_url(url)


class TestGCPFunctions:
    def test_list_functions(self, provider, clients):
        clients.functions.list_functions.return_value = [cloud_function(), cloud_function("bye")]

        functions = provider.list_functions()

        assert [f.name for f in functions] == ["hello", "bye"]
        hello = functions[0]
        assert hello.timeout == 60
        assert hello.memory == 256
        assert hello.handler == "main"
        assert hello.environment == {"MODE": "prod"}
        assert hello.resource_id == f"{PARENT}/functions/hello"
        clients.functions.list_functions.assert_called_once_with(request={"parent": PARENT})

    def test_list_error(self, provider, clients):
        clients.functions.list_functions.side_effect = gapi_exceptions.PermissionDenied("denied")
        with pytest.raises(ProviderError, match="list Cloud Functions failed"):
            provider.list_functions()

    def test_not_found(self, provider, clients):
        clients.functions.get_function.side_effect = gapi_exceptions.NotFound("missing")
        with pytest.raises(FunctionNotFoundError):
            provider.get_function("ghost")

    def test_account_is_project(self, provider):
        assert provider.get_account_id() == "demo"
        assert provider.get_region() == "us-central1"


class TestGCPCode:
    def test_archive_report(self, provider, clients):
        clients.functions.get_function.return_value = cloud_function(
            source_archive_url="gs://sources/hello.zip", max_instances=3
        )

        report = provider.get_function_code("hello")

        assert "Source Type: Cloud Storage Archive" in report
        assert "Bucket: sources" in report
        assert "Object: hello.zip" in report
        assert "  Max Instances: 3" in report
        assert "1. Use gsutil: gsutil cp gs://sources/hello.zip ." in report

    def test_download_archive(self, provider, clients, tmp_path):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("main.py", "def main(request): return 'hi'\n")
        clients.functions.get_function.return_value = cloud_function(source_archive_url="gs://sources/hello.zip")
        blob = clients.storage.bucket.return_value.blob.return_value
        blob.download_as_bytes.return_value = buffer.getvalue()

        provider.download_function_code("hello", tmp_path)

        clients.storage.bucket.assert_called_once_with("sources")
        clients.storage.bucket.return_value.blob.assert_called_once_with("hello.zip")
        assert (tmp_path / "main.py").exists()

    def test_repository_writes_instructions(self, provider, clients, tmp_path):
        clients.functions.get_function.return_value = cloud_function(
            source_repository=functions_v1.SourceRepository(url="https://source.developers.google.com/p/demo")
        )

        provider.download_function_code("hello", tmp_path)

        text = (tmp_path / "clone_instructions.txt").read_text()
        assert "Repository URL: https://source.developers.google.com/p/demo" in text
        assert "--project=demo" in text

    def test_upload_url_is_unsupported(self, provider, clients, tmp_path):
        clients.functions.get_function.return_value = cloud_function(source_upload_url="https://upload")
        with pytest.raises(UnsupportedSourceError, match="upload URL"):
            provider.download_function_code("hello", tmp_path)

    def test_no_source(self, provider, clients, tmp_path):
        clients.functions.get_function.return_value = cloud_function()
        with pytest.raises(UnsupportedSourceError, match="no downloadable source"):
            provider.download_function_code("hello", tmp_path)


class TestGCPLogs:
    def test_logs(self, provider, clients):
        clients.logging.list_entries.return_value = [
            SimpleNamespace(timestamp=NOW, severity="ERROR", payload={"message": "boom"}, labels={}),
            SimpleNamespace(timestamp=NOW, severity=None, payload="plain", labels=None),
        ]

        lines = provider.get_function_logs("hello", 50)

        assert lines == ["[2024-09-25 12:00:00] ERROR: boom", "[2024-09-25 12:00:00] DEFAULT: plain"]
        kwargs = clients.logging.list_entries.call_args.kwargs
        assert kwargs["resource_names"] == ["projects/demo"]
        assert kwargs["max_results"] == 50
        assert 'resource.labels.function_name="hello"' in kwargs["filter_"]

    def test_no_logs(self, provider, clients):
        clients.logging.list_entries.return_value = []
        assert provider.get_function_logs("hello", 50) == ["No logs found for function: hello (last 24 hours)"]

    def test_query_since(self, provider, clients):
        clients.logging.list_entries.return_value = []

        provider.query_log_entries("hello", NOW)

        assert 'timestamp>="2024-09-25T12:00:00.000000Z"' in clients.logging.list_entries.call_args.kwargs["filter_"]

    def test_capped_stream_query_loses_nothing(self, provider, clients):
        stored = [
            SimpleNamespace(timestamp=NOW + timedelta(milliseconds=i), severity="INFO", payload=f"m{i}", labels={})
            for i in range(1, 1501)
        ]

        def list_entries(resource_names, filter_, order_by, max_results):
            stamp = filter_.rsplit('timestamp>="', 1)[1].rstrip('"')
            since = datetime.strptime(stamp, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)
            matching = sorted(
                (e for e in stored if e.timestamp >= since),
                key=lambda e: e.timestamp,
                reverse=order_by == cloud_logging.DESCENDING,
            )
            return matching[:max_results]

        clients.logging.list_entries.side_effect = list_entries

        mark = NOW
        delivered = []
        for _ in range(3):
            fresh = select_new_entries(provider.query_log_entries("hello", mark), mark)
            if fresh:
                mark = fresh[-1].timestamp
            delivered.extend(fresh)

        assert [e.message for e in delivered] == [f"m{i}" for i in range(1, 1501)]
        assert clients.logging.list_entries.call_args_list[0].kwargs["order_by"] == cloud_logging.ASCENDING

    def test_recent_logs_are_newest_first(self, provider, clients):
        clients.logging.list_entries.return_value = []

        provider.get_function_logs("hello", 10)

        assert clients.logging.list_entries.call_args.kwargs["order_by"] == cloud_logging.DESCENDING


class TestGCPMetrics:
    def test_metrics_from_monitoring(self, provider, clients):
        def list_time_series(request):
            if request["filter"].endswith('"cloudfunctions.googleapis.com/function/executions"'):
                return [time_series(3.0, 5.0)]
            if "execution_times" in request["filter"]:
                return [time_series(2_000_000.0)]
            return []

        clients.monitoring.list_time_series.side_effect = list_time_series

        metrics = provider.get_function_metrics("hello", NOW - timedelta(hours=1), NOW)

        assert metrics.invocations.values == [5.0, 3.0]
        assert metrics.duration.values == [pytest.approx(2.0)]
        assert metrics.memory.is_empty

    def test_falls_back_to_sample_data(self, provider, clients):
        clients.monitoring.list_time_series.return_value = []

        metrics = provider.get_function_metrics("hello", NOW - timedelta(hours=1), NOW)

        assert len(metrics.invocations.points) == 12
        assert metrics.invocations.description.endswith("(sample data)")
