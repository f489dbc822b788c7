"""
Task result model.

Standardizes the output of every background operation so failures travel
back to the state machine as data.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class TaskResult:
    """
    Tagged success/failure value.

    Exactly one of ``value`` (on success) or ``error`` (on failure) is
    meaningful.
    """

    success: bool
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, value: Any = None) -> "TaskResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: BaseException) -> "TaskResult":
        return cls(success=False, error=error)

    @property
    def error_message(self) -> str:
        if self.error is None:
            return ""
        return str(self.error) or type(self.error).__name__
