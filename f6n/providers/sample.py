"""
Offline provider backed by fixed demo data.

Used with ``--provider sample`` and throughout the test suite. Logs and
metrics are synthesized from the clock so streaming behaves like a live
function emitting a line every few seconds.
"""

import io
import json
import logging
import zipfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List

from ..core.exceptions import FunctionNotFoundError, UnsupportedSourceError
from ..models import FunctionMetrics, FunctionSummary, LogEntry, MetricPoint, MetricSeries
from ..services.archive import extract_zip
from .base import Provider, ProviderName

logger = logging.getLogger("f6n.providers.sample")

SAMPLE_ACCOUNT_ID = "123456789012"
LOG_STEP_SECONDS = 5

_FUNCTIONS = [
    dict(
        name="user-authentication-service",
        runtime="nodejs20.x",
        memory=512,
        timeout=30,
        handler="index.handler",
        last_modified="2024-09-15T10:30:00.000+0000",
        resource_id="arn:aws:lambda:us-east-1:123456789012:function:user-authentication-service",
        description="Handles user authentication and JWT token generation",
        role="arn:aws:iam::123456789012:role/lambda-exec-role",
        environment={"TOKEN_TTL": "3600"},
    ),
    dict(
        name="payment-processor",
        runtime="python3.12",
        memory=1024,
        timeout=60,
        handler="app.lambda_handler",
        last_modified="2024-09-20T14:22:00.000+0000",
        resource_id="arn:aws:lambda:us-east-1:123456789012:function:payment-processor",
        description="Processes payment transactions via Stripe API",
        role="arn:aws:iam::123456789012:role/payment-lambda-role",
        environment={"STRIPE_MODE": "test"},
    ),
    dict(
        name="email-notification-sender",
        runtime="nodejs18.x",
        memory=256,
        timeout=15,
        handler="index.sendEmail",
        last_modified="2024-09-18T08:45:00.000+0000",
        resource_id="arn:aws:lambda:us-east-1:123456789012:function:email-notification-sender",
        description="Sends email notifications using SES",
        role="arn:aws:iam::123456789012:role/email-lambda-role",
    ),
    dict(
        name="data-analytics-processor",
        runtime="python3.12",
        memory=2048,
        timeout=300,
        handler="analytics.process",
        last_modified="2024-09-22T16:10:00.000+0000",
        resource_id="arn:aws:lambda:us-east-1:123456789012:function:data-analytics-processor",
        description="Processes large datasets for analytics dashboard",
        role="arn:aws:iam::123456789012:role/analytics-lambda-role",
    ),
    dict(
        name="image-resizer",
        runtime="nodejs20.x",
        memory=1536,
        timeout=45,
        handler="resize.handler",
        last_modified="2024-09-10T12:00:00.000+0000",
        resource_id="arn:aws:lambda:us-east-1:123456789012:function:image-resizer",
        description="Resizes and optimizes images for S3 storage",
        role="arn:aws:iam::123456789012:role/image-lambda-role",
    ),
]

# Packaged as a container image; download is unsupported.
IMAGE_FUNCTIONS = {"image-resizer"}

_LOG_MESSAGES = [
    ("INFO", "START RequestId: {rid} Version: $LATEST"),
    ("INFO", "Processing request {rid}"),
    ("DEBUG", "Cache hit ratio 0.{n}"),
    ("WARNING", "Slow downstream response ({n}00 ms)"),
    ("INFO", "END RequestId: {rid}"),
    ("ERROR", "Upstream call failed, will be retried by caller ({rid})"),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _handler_source(summary: FunctionSummary) -> Dict[str, str]:
    module, _, func = summary.handler.partition(".")
    if summary.runtime.startswith("python"):
        return {
            f"{module}.py": (
                "import json\n\n\n"
                f"def {func}(event, context):\n"
                f"    return {{\"statusCode\": 200, \"body\": json.dumps(\"{summary.name}\")}}\n"
            ),
            "requirements.txt": "boto3\n",
        }
    return {
        f"{module}.js": (
            f"exports.{func} = async (event) => {{\n"
            f"  return {{ statusCode: 200, body: JSON.stringify('{summary.name}') }};\n"
            "};\n"
        ),
        "package.json": json.dumps({"name": summary.name, "version": "1.0.0"}, indent=2) + "\n",
    }


class SampleProvider(Provider):
    """In-memory demo backend."""

    def __init__(
        self,
        region: str = "us-east-1",
        functions: List[FunctionSummary] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.region = region
        self.clock = clock
        if functions is None:
            functions = [FunctionSummary(region=region, **fields) for fields in _FUNCTIONS]
        self._functions = {f.name: f for f in functions}

    def get_provider_name(self) -> ProviderName:
        return ProviderName.SAMPLE

    def get_region(self) -> str:
        return self.region

    def get_account_id(self) -> str:
        return SAMPLE_ACCOUNT_ID

    def list_functions(self) -> List[FunctionSummary]:
        return list(self._functions.values())

    def get_function(self, name: str) -> FunctionSummary:
        try:
            return self._functions[name]
        except KeyError:
            raise FunctionNotFoundError(name) from None

    def get_function_code(self, name: str) -> str:
        fn = self.get_function(name)
        lines = ["━━━ Code Information ━━━", ""]
        lines.append(f"Runtime: {fn.runtime}")
        lines.append(f"Handler: {fn.handler}")
        lines.append("")
        if name in IMAGE_FUNCTIONS:
            lines.append("Package Type: Image")
            lines.append(f"Image URI: {SAMPLE_ACCOUNT_ID}.dkr.ecr.{self.region}.amazonaws.com/{name}:latest")
            lines.append("")
            lines.append("Container image functions cannot be downloaded.")
        else:
            lines.append("Package Type: Zip")
            lines.append(f"Files: {', '.join(sorted(_handler_source(fn)))}")
            lines.append("")
            lines.append("Press 'esc' then 'w' in the function list to download the code,")
            lines.append("then 'c' and 'v' to browse the files.")
        return "\n".join(lines)

    def build_archive(self, name: str) -> bytes:
        fn = self.get_function(name)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for filename, content in _handler_source(fn).items():
                zf.writestr(filename, content)
            zf.writestr("README.md", f"# {fn.name}\n\n{fn.description}\n")
        return buffer.getvalue()

    def download_function_code(self, name: str, destination: Path) -> None:
        self.get_function(name)
        if name in IMAGE_FUNCTIONS:
            raise UnsupportedSourceError(
                name,
                f"function {name} is packaged as a container image; code download is not supported",
            )
        extract_zip(self.build_archive(name), Path(destination))

    def _entries_between(self, name: str, start: datetime, end: datetime) -> List[LogEntry]:
        first = int(start.timestamp()) // LOG_STEP_SECONDS * LOG_STEP_SECONDS
        entries = []
        for epoch in range(first, int(end.timestamp()) + 1, LOG_STEP_SECONDS):
            ts = datetime.fromtimestamp(epoch, tz=timezone.utc)
            if ts < start or ts > end:
                continue
            severity, template = _LOG_MESSAGES[(epoch // LOG_STEP_SECONDS) % len(_LOG_MESSAGES)]
            message = template.format(rid=f"{epoch:x}", n=epoch % 10)
            entries.append(
                LogEntry(timestamp=ts, severity=severity, message=message, labels={"function": name})
            )
        return entries

    def get_function_logs(self, name: str, limit: int) -> List[str]:
        self.get_function(name)
        now = self.clock()
        entries = self._entries_between(name, now - timedelta(minutes=10), now)
        entries.reverse()
        if limit > 0:
            entries = entries[:limit]
        if not entries:
            return [f"No logs found for function: {name}"]
        return [e.format_line() for e in entries]

    def query_log_entries(self, name: str, since: datetime) -> List[LogEntry]:
        self.get_function(name)
        return self._entries_between(name, since, self.clock())

    def get_function_metrics(self, name: str, start: datetime, end: datetime) -> FunctionMetrics:
        self.get_function(name)
        return sample_metrics(name, start, end)


def sample_metrics(function_name: str, start: datetime, end: datetime) -> FunctionMetrics:
    """Twelve evenly spaced synthetic points per series over ``[start, end]``."""
    step = (end - start) / 12

    def series(metric: str, unit: str, description: str, value: Callable[[int], float]):
        points = [MetricPoint(timestamp=start + step * i, value=value(i)) for i in range(12)]
        return MetricSeries(
            name=metric, unit=unit, description=f"{description} (sample data)", points=points
        )

    return FunctionMetrics(
        function_name=function_name,
        start=start,
        end=end,
        invocations=series(
            "Invocations", "count", "Number of function invocations", lambda i: 5 + i % 8 + (i * 3) % 5
        ),
        duration=series(
            "Duration", "ms", "Average function execution duration", lambda i: 200 + (i * 37) % 150
        ),
        errors=series("Errors", "count", "Invocations that failed", lambda i: float(i % 5 == 3)),
        throttles=series("Throttles", "count", "Throttled invocations", lambda i: 0.0),
        memory=series(
            "Memory Usage", "bytes", "Memory used during execution",
            lambda i: 50_000_000 + (i * 1_000_000) % 30_000_000,
        ),
        concurrent_executions=series(
            "ConcurrentExecutions", "count", "Concurrent executions", lambda i: 1 + i % 3
        ),
    )
