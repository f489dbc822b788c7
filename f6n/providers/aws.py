"""
AWS Lambda provider.

Lambda for function metadata and code location, STS for the account id,
CloudWatch Logs for logs and CloudWatch for metrics. Deployment packages are
fetched from the pre-signed S3 URL returned by GetFunction.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError, ProfileNotFound

from ..core.exceptions import (
    FunctionNotFoundError,
    ProviderConfigError,
    ProviderError,
    UnsupportedSourceError,
)
from ..models import FunctionMetrics, FunctionSummary, LogEntry, MetricPoint, MetricSeries
from ..services.archive import extract_zip
from .base import Provider, ProviderName

logger = logging.getLogger("f6n.providers.aws")

DOWNLOAD_TIMEOUT = 60.0
LOG_STREAM_SCAN = 5
MAX_STREAMED_EVENTS = 1000

_ERROR_MARKERS = ("ERROR", "Task timed out", "Traceback")
_WARNING_MARKERS = ("WARN",)

# query id -> (CloudWatch metric, statistic, FunctionMetrics field, unit, description)
_METRIC_QUERIES = {
    "invocations": ("Invocations", "Sum", "invocations", "count", "Number of function invocations"),
    "duration": ("Duration", "Average", "duration", "ms", "Average function execution duration"),
    "errors": ("Errors", "Sum", "errors", "count", "Invocations that resulted in a function error"),
    "throttles": ("Throttles", "Sum", "throttles", "count", "Throttled invocation requests"),
    "concurrent": (
        "ConcurrentExecutions",
        "Maximum",
        "concurrent_executions",
        "count",
        "Concurrently running instances",
    ),
}


def _severity(message: str) -> str:
    if any(marker in message for marker in _ERROR_MARKERS):
        return "ERROR"
    if any(marker in message for marker in _WARNING_MARKERS):
        return "WARNING"
    return "INFO"


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ResourceNotFoundException"


class AWSProvider(Provider):
    """Provider for AWS Lambda in a single region."""

    def __init__(
        self,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        session: Any = None,
        http_client: Optional[httpx.Client] = None,
    ):
        try:
            self.session = session or boto3.Session(profile_name=profile, region_name=region)
        except ProfileNotFound as e:
            raise ProviderConfigError(f"AWS profile not found: {profile}") from e
        self.region = region
        try:
            self.lambda_client = self.session.client("lambda", region_name=region)
            self.logs_client = self.session.client("logs", region_name=region)
            self.cloudwatch = self.session.client("cloudwatch", region_name=region)
            self.sts = self.session.client("sts", region_name=region)
        except BotoCoreError as e:
            raise ProviderConfigError(f"unable to create AWS clients: {e}") from e
        self.http = http_client or httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)

    def get_provider_name(self) -> ProviderName:
        return ProviderName.AWS

    def get_region(self) -> str:
        return self.region

    def get_account_id(self) -> str:
        try:
            return self.sts.get_caller_identity()["Account"]
        except (ClientError, BotoCoreError) as e:
            raise ProviderError("get caller identity", e) from e

    def _summary(self, config: Dict[str, Any]) -> FunctionSummary:
        return FunctionSummary(
            name=config.get("FunctionName", ""),
            runtime=config.get("Runtime", "") or config.get("PackageType", ""),
            memory=config.get("MemorySize") or 0,
            timeout=config.get("Timeout") or 0,
            handler=config.get("Handler", ""),
            last_modified=config.get("LastModified", ""),
            resource_id=config.get("FunctionArn", ""),
            description=config.get("Description", ""),
            role=config.get("Role", ""),
            environment=(config.get("Environment") or {}).get("Variables") or {},
            region=self.region,
        )

    def list_functions(self) -> List[FunctionSummary]:
        functions = []
        try:
            paginator = self.lambda_client.get_paginator("list_functions")
            for page in paginator.paginate():
                functions.extend(self._summary(c) for c in page.get("Functions", []))
        except (ClientError, BotoCoreError) as e:
            raise ProviderError("list functions", e) from e
        logger.debug(f"Listed {len(functions)} Lambda functions in {self.region}")
        return functions

    def get_function(self, name: str) -> FunctionSummary:
        try:
            config = self.lambda_client.get_function_configuration(FunctionName=name)
        except ClientError as e:
            if _is_not_found(e):
                raise FunctionNotFoundError(name) from e
            raise ProviderError(f"get function {name}", e) from e
        except BotoCoreError as e:
            raise ProviderError(f"get function {name}", e) from e
        return self._summary(config)

    def _get_function(self, name: str) -> Dict[str, Any]:
        try:
            return self.lambda_client.get_function(FunctionName=name)
        except ClientError as e:
            if _is_not_found(e):
                raise FunctionNotFoundError(name) from e
            raise ProviderError(f"get function {name}", e) from e
        except BotoCoreError as e:
            raise ProviderError(f"get function {name}", e) from e

    def get_function_code(self, name: str) -> str:
        output = self._get_function(name)
        config = output.get("Configuration", {})
        code = output.get("Code", {})

        lines = ["━━━ Code Information ━━━", ""]
        lines.append(f"Runtime: {config.get('Runtime', 'n/a')}")
        lines.append(f"Handler: {config.get('Handler', 'n/a')}")
        lines.append(f"Package Type: {config.get('PackageType', 'Zip')}")
        lines.append(f"Code Size: {config.get('CodeSize', 0)} bytes")
        if config.get("CodeSha256"):
            lines.append(f"Code SHA256: {config['CodeSha256']}")
        lines.append("")

        if code.get("RepositoryType") == "ECR":
            lines.append("Source Type: Container Image")
            lines.append(f"Image URI: {code.get('ImageUri', 'n/a')}")
            lines.append("")
            lines.append("Container image functions cannot be downloaded here.")
        elif code.get("Location"):
            lines.append("Source Type: S3 deployment package")
            lines.append(f"Code location: {code['Location']}")
            lines.append("")
            lines.append("To download source code:")
            lines.append("1. Press 'esc' then 'w' in the function list, then 'c' and 'v' to browse")
            lines.append(f"2. Use AWS CLI: aws lambda get-function --function-name {name}")
        else:
            lines.append("Code location not available")

        layers = config.get("Layers") or []
        if layers:
            lines.append("")
            lines.append("Layers:")
            lines.extend(f"  {layer.get('Arn', '')}" for layer in layers)

        return "\n".join(lines)

    def download_function_code(self, name: str, destination: Path) -> None:
        code = self._get_function(name).get("Code", {})
        if code.get("RepositoryType") == "ECR":
            raise UnsupportedSourceError(
                name, f"function {name} is packaged as a container image; code download is not supported"
            )
        location = code.get("Location")
        if not location:
            raise UnsupportedSourceError(name, f"no downloadable source found for function {name}")

        logger.info(f"Downloading deployment package for {name}")
        try:
            response = self.http.get(location)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"download code for {name}", e) from e

        extract_zip(response.content, Path(destination))

    def _log_group(self, name: str) -> str:
        return f"/aws/lambda/{name}"

    def _entry(self, event: Dict[str, Any], name: str, stream: str = "") -> LogEntry:
        message = event.get("message", "")
        labels = {"function": name}
        if stream or event.get("logStreamName"):
            labels["log_stream"] = stream or event["logStreamName"]
        return LogEntry(
            timestamp=_from_millis(event.get("timestamp", 0)),
            severity=_severity(message),
            message=message,
            labels=labels,
        )

    def get_function_logs(self, name: str, limit: int) -> List[str]:
        group = self._log_group(name)
        entries: List[LogEntry] = []
        try:
            streams = self.logs_client.describe_log_streams(
                logGroupName=group,
                orderBy="LastEventTime",
                descending=True,
                limit=LOG_STREAM_SCAN,
            ).get("logStreams", [])
            for stream in streams:
                stream_name = stream["logStreamName"]
                events = self.logs_client.get_log_events(
                    logGroupName=group,
                    logStreamName=stream_name,
                    limit=limit,
                    startFromHead=False,
                ).get("events", [])
                entries.extend(self._entry(ev, name, stream_name) for ev in events)
        except ClientError as e:
            if _is_not_found(e):
                return [f"No logs found for function: {name} (log group {group} does not exist)"]
            raise ProviderError(f"get logs for {name}", e) from e
        except BotoCoreError as e:
            raise ProviderError(f"get logs for {name}", e) from e

        if not entries:
            return [f"No logs found for function: {name}"]

        entries.sort(key=lambda e: e.timestamp, reverse=True)
        if limit > 0:
            entries = entries[:limit]
        return [e.format_line() for e in entries]

    def query_log_entries(self, name: str, since: datetime) -> List[LogEntry]:
        try:
            paginator = self.logs_client.get_paginator("filter_log_events")
            pages = paginator.paginate(
                logGroupName=self._log_group(name),
                startTime=_to_millis(since),
                PaginationConfig={"MaxItems": MAX_STREAMED_EVENTS},
            )
            return [self._entry(ev, name) for page in pages for ev in page.get("events", [])]
        except ClientError as e:
            if _is_not_found(e):
                return []
            raise ProviderError(f"stream logs for {name}", e) from e
        except BotoCoreError as e:
            raise ProviderError(f"stream logs for {name}", e) from e

    def get_function_metrics(self, name: str, start: datetime, end: datetime) -> FunctionMetrics:
        window = max((end - start).total_seconds(), 60)
        period = max(60, int(window // 60) // 60 * 60)

        queries = [
            {
                "Id": query_id,
                "MetricStat": {
                    "Metric": {
                        "Namespace": "AWS/Lambda",
                        "MetricName": metric,
                        "Dimensions": [{"Name": "FunctionName", "Value": name}],
                    },
                    "Period": period,
                    "Stat": stat,
                },
                "ReturnData": True,
            }
            for query_id, (metric, stat, *_rest) in _METRIC_QUERIES.items()
        ]

        points: Dict[str, List[MetricPoint]] = {query_id: [] for query_id in _METRIC_QUERIES}
        try:
            paginator = self.cloudwatch.get_paginator("get_metric_data")
            for page in paginator.paginate(
                MetricDataQueries=queries,
                StartTime=start,
                EndTime=end,
                ScanBy="TimestampAscending",
            ):
                for result in page.get("MetricDataResults", []):
                    bucket = points.setdefault(result["Id"], [])
                    bucket.extend(
                        MetricPoint(timestamp=ts, value=value)
                        for ts, value in zip(result.get("Timestamps", []), result.get("Values", []))
                    )
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"get metrics for {name}", e) from e

        fields = {}
        for query_id, (metric, _stat, field, unit, description) in _METRIC_QUERIES.items():
            fields[field] = MetricSeries(
                name=metric, unit=unit, description=description, points=points[query_id]
            )
        return FunctionMetrics(function_name=name, start=start, end=end, **fields)
