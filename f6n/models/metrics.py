import math
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetricPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: float


class MetricSeries(BaseModel):
    """
    Time series for one metric.

    Points are kept time-ascending; non-finite values are dropped on construction.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Metric name")
    unit: str = Field(default="", description="Unit label (Count, ms, MB...)")
    description: str = Field(default="", description="Human readable description")
    points: List[MetricPoint] = Field(default_factory=list, description="Ordered data points")

    @field_validator("points")
    @classmethod
    def _finite_and_sorted(cls, points: List[MetricPoint]) -> List[MetricPoint]:
        kept = [p for p in points if math.isfinite(p.value)]
        return sorted(kept, key=lambda p: p.timestamp)

    @property
    def values(self) -> List[float]:
        return [p.value for p in self.points]

    @property
    def is_empty(self) -> bool:
        return not self.points


class FunctionMetrics(BaseModel):
    """All metric series for one function over one time range."""

    model_config = ConfigDict(frozen=True)

    function_name: str
    start: datetime
    end: datetime
    invocations: MetricSeries = Field(default_factory=lambda: MetricSeries(name="Invocations"))
    duration: MetricSeries = Field(default_factory=lambda: MetricSeries(name="Duration"))
    errors: MetricSeries = Field(default_factory=lambda: MetricSeries(name="Errors"))
    throttles: MetricSeries = Field(default_factory=lambda: MetricSeries(name="Throttles"))
    memory: MetricSeries = Field(default_factory=lambda: MetricSeries(name="Memory"))
    concurrent_executions: MetricSeries = Field(
        default_factory=lambda: MetricSeries(name="ConcurrentExecutions")
    )

    def series(self) -> List[MetricSeries]:
        """Series in display order."""
        return [
            self.invocations,
            self.duration,
            self.errors,
            self.throttles,
            self.memory,
            self.concurrent_executions,
        ]
