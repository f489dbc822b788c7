from .function import FunctionSummary
from .logs import LogEntry
from .metrics import FunctionMetrics, MetricPoint, MetricSeries

__all__ = [
    "FunctionSummary",
    "LogEntry",
    "FunctionMetrics",
    "MetricPoint",
    "MetricSeries",
]
