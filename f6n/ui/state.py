"""
Application state owned by the state machine.

Nothing outside ``StateMachine`` mutates these objects; the renderer only
reads them.
"""

import getpass
import os
import platform
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set, Tuple

from ..events import TaskKey
from ..models import FunctionMetrics, FunctionSummary
from .filtering import filter_functions
from .views import InputMode, View

COLUMN_FRACTIONS = (0.35, 0.15, 0.12, 0.12, 0.26)


@dataclass(frozen=True)
class Layout:
    """Sizes derived from the terminal dimensions."""

    columns: Tuple[int, ...] = (0, 0, 0, 0, 0)
    table_height: int = 5
    viewport_height: int = 16
    edit_height: int = 14

    @classmethod
    def for_size(cls, width: int, height: int) -> "Layout":
        usable = max(width - 4, 0)
        return cls(
            columns=tuple(int(usable * fraction) for fraction in COLUMN_FRACTIONS),
            table_height=max(5, height - 22),
            viewport_height=max(1, height - 8),
            edit_height=max(1, height - 10),
        )


@dataclass(frozen=True)
class HostInfo:
    cpu: str = ""
    memory: str = ""
    os: str = ""
    user: str = ""

    @classmethod
    def collect(cls) -> "HostInfo":
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = "unknown"
        return cls(
            cpu=platform.machine() or "unknown",
            memory=f"{os.cpu_count() or 1} cores",
            os=platform.system().lower() or "unknown",
            user=user,
        )


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    region: str
    environment: str = "dev"

    @property
    def account_label(self) -> str:
        return "Project" if self.name == "gcp" else "Account"


class FunctionRegistry:
    """
    Full function list plus the filtered view derived from it.

    The filtered list is recomputed whenever the full list or the filter
    changes, and ``generation`` increments on every replacement.
    """

    def __init__(self):
        self.all: List[FunctionSummary] = []
        self.filtered: List[FunctionSummary] = []
        self.generation = 0

    def replace(self, functions: List[FunctionSummary], filter_text: Optional[str] = None) -> None:
        self.all = list(functions)
        self.generation += 1
        self.refilter(filter_text)

    def refilter(self, filter_text: Optional[str]) -> None:
        self.filtered = filter_functions(self.all, filter_text)

    def find(self, name: Optional[str]) -> Optional[FunctionSummary]:
        if name is None:
            return None
        for fn in self.all:
            if fn.name == name:
                return fn
        return None


@dataclass
class ApplicationState:
    provider: ProviderInfo
    host: HostInfo = field(default_factory=HostInfo)

    view: View = View.LIST
    mode: InputMode = InputMode.NORMAL
    registry: FunctionRegistry = field(default_factory=FunctionRegistry)
    cursor: int = 0
    selected_name: Optional[str] = None
    filter_text: Optional[str] = None
    input_buffer: str = ""

    loading: bool = True
    error: Optional[str] = None
    status: Optional[str] = None
    account_id: str = ""

    content: str = ""
    code_text: str = ""
    metrics: Optional[FunctionMetrics] = None
    scroll: int = 0

    stream_session: Optional[int] = None
    log_buffer: Deque[str] = field(default_factory=lambda: deque(maxlen=1000))

    edit_mode: bool = False
    edit_buffer: str = ""

    downloaded: Set[str] = field(default_factory=set)
    pending: Dict[TaskKey, int] = field(default_factory=dict)

    width: int = 80
    height: int = 24
    layout: Layout = field(default_factory=lambda: Layout.for_size(80, 24))

    @property
    def selected(self) -> Optional[FunctionSummary]:
        return self.registry.find(self.selected_name)

    @property
    def highlighted(self) -> Optional[FunctionSummary]:
        """Function under the list cursor."""
        if 0 <= self.cursor < len(self.registry.filtered):
            return self.registry.filtered[self.cursor]
        return None

    @property
    def is_streaming(self) -> bool:
        return self.stream_session is not None
