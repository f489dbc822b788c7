"""
Messages exchanged between the state machine and the background workers.

Inbound events flow into ``StateMachine.handle``; outbound commands are what
it returns. Both are immutable so they can cross task boundaries safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union

from .core.result import TaskResult
from .models import LogEntry


class TaskKind(str, Enum):
    LIST_FUNCTIONS = "list_functions"
    ACCOUNT_ID = "account_id"
    FUNCTION_LOGS = "function_logs"
    FUNCTION_CODE = "function_code"
    FUNCTION_METRICS = "function_metrics"
    DOWNLOAD_CODE = "download_code"
    CODE_FILES = "code_files"


class Action(str, Enum):
    """Logical key actions. Printable keys arrive as CHAR with the character attached."""

    CHAR = "char"
    ENTER = "enter"
    ESCAPE = "escape"
    BACKSPACE = "backspace"
    UP = "up"
    DOWN = "down"
    PAGE_UP = "pageup"
    PAGE_DOWN = "pagedown"
    HOME = "home"
    END = "end"
    SAVE = "ctrl+s"
    INTERRUPT = "ctrl+c"


TaskKey = Tuple[TaskKind, str]


# =============================================================================
# Inbound events
# =============================================================================


@dataclass(frozen=True)
class KeyPressed:
    action: Action
    char: str = ""


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True)
class TaskCompleted:
    kind: TaskKind
    target: str
    token: int
    result: TaskResult

    @property
    def key(self) -> TaskKey:
        return (self.kind, self.target)


@dataclass(frozen=True)
class LogEntriesReceived:
    session_id: int
    entries: Tuple[LogEntry, ...]


@dataclass(frozen=True)
class LogStreamFailed:
    session_id: int
    message: str


Event = Union[KeyPressed, Resized, TaskCompleted, LogEntriesReceived, LogStreamFailed]


# =============================================================================
# Outbound commands
# =============================================================================


@dataclass(frozen=True)
class TaskRequest:
    kind: TaskKind
    target: str
    token: int
    limit: int = 0
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def key(self) -> TaskKey:
        return (self.kind, self.target)


@dataclass(frozen=True)
class CancelTask:
    kind: TaskKind
    target: str

    @property
    def key(self) -> TaskKey:
        return (self.kind, self.target)


@dataclass(frozen=True)
class StartStream:
    session_id: int
    function_name: str


@dataclass(frozen=True)
class StopStream:
    session_id: int


@dataclass(frozen=True)
class Quit:
    reason: str = field(default="user")


Command = Union[TaskRequest, CancelTask, StartStream, StopStream, Quit]
