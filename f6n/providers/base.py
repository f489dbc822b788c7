"""
Provider interface shared by every cloud backend.

All methods except ``stream_function_logs`` are blocking; the task
dispatcher runs them in worker threads. Failures are raised as
``f6n.core.exceptions`` errors.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List

from ..models import FunctionMetrics, FunctionSummary, LogEntry
from ..services.streaming import poll_log_entries


class ProviderName(str, Enum):
    AWS = "aws"
    GCP = "gcp"
    SAMPLE = "sample"

    @property
    def label(self) -> str:
        return {"aws": "AWS", "gcp": "GCP", "sample": "Sample"}[self.value]


class Provider(ABC):
    @abstractmethod
    def get_provider_name(self) -> ProviderName: ...

    @abstractmethod
    def get_region(self) -> str: ...

    @abstractmethod
    def get_account_id(self) -> str: ...

    @abstractmethod
    def list_functions(self) -> List[FunctionSummary]: ...

    @abstractmethod
    def get_function(self, name: str) -> FunctionSummary: ...

    @abstractmethod
    def get_function_code(self, name: str) -> str:
        """Human readable report on where the function's code lives."""

    @abstractmethod
    def download_function_code(self, name: str, destination: Path) -> None:
        """
        Fetch the function's source into ``destination`` (already created).

        Raises:
            UnsupportedSourceError: The source type cannot be downloaded.
            ArchiveIntegrityError: The archive is corrupt or unsafe.
        """

    @abstractmethod
    def get_function_logs(self, name: str, limit: int) -> List[str]:
        """Most recent log lines, already formatted for display."""

    @abstractmethod
    def query_log_entries(self, name: str, since: datetime) -> List[LogEntry]:
        """Entries at or after ``since``, in any order."""

    @abstractmethod
    def get_function_metrics(
        self, name: str, start: datetime, end: datetime
    ) -> FunctionMetrics: ...

    def stream_function_logs(
        self, name: str, *, interval: float = 2.0, lookback: float = 60.0
    ) -> AsyncIterator[List[LogEntry]]:
        """Poll ``query_log_entries`` and yield batches of new entries, oldest first."""
        return poll_log_entries(
            self.query_log_entries, name, interval=interval, lookback=lookback
        )
