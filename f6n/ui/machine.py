"""
Application state machine.

Where: f6n/ui/machine.py
What: Single owner of ApplicationState. ``handle(event)`` applies one event
      and returns the commands (task requests, cancellations, stream
      start/stop, quit) for the dispatcher to execute.
Why: All mutation happens here, one event at a time, so view transitions,
     stale results and stream sessions are reconciled in a single place.
"""

import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from ..core.exceptions import CodeNotDownloadedError
from ..core.result import TaskResult
from ..events import (
    Action,
    CancelTask,
    KeyPressed,
    LogEntriesReceived,
    LogStreamFailed,
    Quit,
    Resized,
    StartStream,
    StopStream,
    TaskCompleted,
    TaskKind,
    TaskRequest,
)
from .filtering import LineCommand, parse_command
from .render import max_scroll
from .state import ApplicationState, HostInfo, Layout, ProviderInfo
from .views import InputMode, View

logger = logging.getLogger("f6n.machine")

STREAM_STOPPED = "⏹️  Log streaming stopped"

# Tasks that belong to a view and die with it.
VIEW_TASKS = {
    View.LOGS: (TaskKind.FUNCTION_LOGS,),
    View.CODE: (TaskKind.FUNCTION_CODE,),
    View.CODE_FILES: (TaskKind.CODE_FILES, TaskKind.FUNCTION_CODE),
    View.METRICS: (TaskKind.FUNCTION_METRICS,),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateMachine:
    """
    Pure-ish reducer over ApplicationState.

    No handler blocks or performs I/O; everything slow is expressed as a
    command. Results carrying a token or session id that is no longer
    current are dropped.
    """

    def __init__(
        self,
        provider: ProviderInfo,
        host: Optional[HostInfo] = None,
        *,
        log_limit: int = 200,
        metrics_window: timedelta = timedelta(minutes=60),
        buffer_size: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.state = ApplicationState(provider=provider, host=host or HostInfo())
        self.state.log_buffer = deque(maxlen=buffer_size)
        self.log_limit = log_limit
        self.metrics_window = metrics_window
        self.clock = clock
        self._last_token = 0
        self._last_session = 0

    # =========================================================================
    # Entry points
    # =========================================================================

    def start(self) -> List[object]:
        """Initial commands: list functions and resolve the account id concurrently."""
        self.state.loading = True
        return [
            self._request(TaskKind.LIST_FUNCTIONS, ""),
            self._request(TaskKind.ACCOUNT_ID, ""),
        ]

    def handle(self, event: object) -> List[object]:
        if isinstance(event, KeyPressed):
            return self._on_key(event)
        if isinstance(event, TaskCompleted):
            return self._on_task_completed(event)
        if isinstance(event, LogEntriesReceived):
            return self._on_log_entries(event)
        if isinstance(event, LogStreamFailed):
            return self._on_stream_failed(event)
        if isinstance(event, Resized):
            return self._on_resize(event)
        logger.warning(f"Unhandled event: {event!r}")
        return []

    # =========================================================================
    # Command helpers
    # =========================================================================

    def _request(self, kind: TaskKind, target: str, **params) -> TaskRequest:
        self._last_token += 1
        self.state.pending[(kind, target)] = self._last_token
        return TaskRequest(kind=kind, target=target, token=self._last_token, **params)

    def _cancel_kinds(self, kinds) -> List[object]:
        commands: List[object] = []
        for key in list(self.state.pending):
            if key[0] in kinds:
                del self.state.pending[key]
                commands.append(CancelTask(*key))
        return commands

    def _stop_stream(self, marker: bool = False) -> List[object]:
        session = self.state.stream_session
        if session is None:
            return []
        self.state.stream_session = None
        if marker:
            self._append_log_lines([STREAM_STOPPED])
        logger.info(f"Stopping log stream {session}")
        return [StopStream(session)]

    def _leave_view(self) -> List[object]:
        """Cancel everything owned by the current view."""
        commands = self._stop_stream()
        commands += self._cancel_kinds(VIEW_TASKS.get(self.state.view, ()))
        return commands

    def _enter_view(self, view: View, name: str, placeholder: str) -> List[object]:
        commands = self._leave_view()
        state = self.state
        state.view = view
        state.selected_name = name
        state.content = placeholder
        state.scroll = 0
        state.error = None
        state.status = None
        state.metrics = None
        state.edit_mode = False
        state.edit_buffer = ""
        state.code_text = ""
        state.log_buffer.clear()
        return commands

    def _return_to_list(self) -> List[object]:
        commands = self._leave_view()
        state = self.state
        state.view = View.LIST
        state.selected_name = None
        state.content = ""
        state.code_text = ""
        state.metrics = None
        state.scroll = 0
        state.edit_mode = False
        state.edit_buffer = ""
        state.log_buffer.clear()
        return commands

    # =========================================================================
    # Keys
    # =========================================================================

    def _on_key(self, event: KeyPressed) -> List[object]:
        if event.action is Action.INTERRUPT:
            return [Quit("interrupt")]
        if self.state.edit_mode:
            return self._on_edit_key(event)
        if self.state.mode is InputMode.FILTER:
            return self._on_filter_key(event)
        if self.state.mode is InputMode.COMMAND:
            return self._on_command_key(event)
        return self._on_normal_key(event)

    def _on_normal_key(self, event: KeyPressed) -> List[object]:
        state = self.state
        action = event.action

        if action is Action.ESCAPE:
            return self._escape()
        if action is Action.ENTER:
            if state.view is View.LIST:
                return self._open_detail()
            return []
        if action in (Action.UP, Action.DOWN, Action.PAGE_UP, Action.PAGE_DOWN, Action.HOME, Action.END):
            self._navigate(action)
            return []
        if action is not Action.CHAR:
            return []

        char = event.char
        if char == "k":
            self._navigate(Action.UP)
            return []
        if char == "j":
            self._navigate(Action.DOWN)
            return []

        handler = {
            "q": self._quit,
            "l": self._logs,
            "c": self._code,
            "v": self._code_files,
            "m": self._metrics,
            "s": self._toggle_stream,
            "w": self._download,
            "e": self._start_edit,
            "r": self._refresh_key,
            "\\": self._begin_filter,
            ":": self._begin_command,
        }.get(char)
        if handler is None:
            return []
        return handler()

    def _escape(self) -> List[object]:
        state = self.state
        if state.view is View.CODE_FILES:
            commands = self._cancel_kinds((TaskKind.CODE_FILES,))
            state.view = View.CODE
            state.content = state.code_text
            state.scroll = 0
            state.error = None
            return commands
        if state.view is not View.LIST:
            return self._return_to_list()
        if state.filter_text:
            state.filter_text = None
            state.registry.refilter(None)
            state.cursor = 0
            return []
        state.error = None
        state.status = None
        return []

    def _quit(self) -> List[object]:
        if self.state.view is View.LIST:
            return [Quit("user")]
        return []

    def _open_detail(self) -> List[object]:
        fn = self.state.highlighted
        if fn is None:
            return []
        return self._enter_view(View.DETAIL, fn.name, "")

    def _logs(self) -> List[object]:
        state = self.state
        if state.view is View.LIST:
            fn = state.highlighted
            if fn is None:
                return []
            commands = self._enter_view(View.LOGS, fn.name, f"Loading logs for {fn.name}...")
        elif state.view is View.LOGS and state.selected_name:
            commands = self._stop_stream()
            commands += self._cancel_kinds((TaskKind.FUNCTION_LOGS,))
            state.log_buffer.clear()
            state.content = f"Loading logs for {state.selected_name}..."
            state.scroll = 0
        else:
            return []
        commands.append(
            self._request(TaskKind.FUNCTION_LOGS, state.selected_name, limit=self.log_limit)
        )
        return commands

    def _code(self) -> List[object]:
        state = self.state
        if state.view is not View.LIST:
            return []
        fn = state.highlighted
        if fn is None:
            return []
        commands = self._enter_view(View.CODE, fn.name, f"Loading code information for {fn.name}...")
        commands.append(self._request(TaskKind.FUNCTION_CODE, fn.name))
        return commands

    def _code_files(self) -> List[object]:
        state = self.state
        if state.view is not View.CODE or not state.selected_name:
            return []
        name = state.selected_name
        if name not in state.downloaded:
            state.error = str(CodeNotDownloadedError(name))
            return []
        commands = self._cancel_kinds((TaskKind.FUNCTION_CODE,))
        state.view = View.CODE_FILES
        state.content = f"Loading code files for {name}..."
        state.scroll = 0
        state.error = None
        commands.append(self._request(TaskKind.CODE_FILES, name))
        return commands

    def _metrics(self) -> List[object]:
        state = self.state
        if state.view is View.LIST:
            fn = state.highlighted
            if fn is None:
                return []
            commands = self._enter_view(View.METRICS, fn.name, f"Loading metrics for {fn.name}...")
        elif state.view is View.METRICS and state.selected_name:
            commands = self._cancel_kinds((TaskKind.FUNCTION_METRICS,))
            state.metrics = None
            state.content = f"Loading metrics for {state.selected_name}..."
            state.scroll = 0
        else:
            return []
        end = self.clock()
        commands.append(
            self._request(
                TaskKind.FUNCTION_METRICS,
                state.selected_name,
                start=end - self.metrics_window,
                end=end,
            )
        )
        return commands

    def _toggle_stream(self) -> List[object]:
        state = self.state
        if state.view is not View.LOGS or not state.selected_name:
            return []
        if state.stream_session is not None:
            return self._stop_stream(marker=True)

        commands = self._cancel_kinds((TaskKind.FUNCTION_LOGS,))
        self._last_session += 1
        state.stream_session = self._last_session
        state.log_buffer.clear()
        self._append_log_lines(
            [
                f"🔴 Streaming logs for {state.selected_name} (real-time) - Press 's' to stop",
                "═" * 60,
            ]
        )
        commands.append(StartStream(self._last_session, state.selected_name))
        return commands

    def _download(self) -> List[object]:
        state = self.state
        if state.view is not View.LIST:
            return []
        fn = state.highlighted
        if fn is None:
            return []
        state.error = None
        state.status = f"Downloading code for {fn.name}..."
        return [self._request(TaskKind.DOWNLOAD_CODE, fn.name)]

    def _start_edit(self) -> List[object]:
        state = self.state
        if state.view is not View.CODE or (TaskKind.FUNCTION_CODE, state.selected_name) in state.pending:
            return []
        state.edit_mode = True
        state.edit_buffer = state.code_text or state.content
        state.status = None
        state.error = None
        state.scroll = 0
        return []

    def _refresh_key(self) -> List[object]:
        if self.state.view is not View.LIST:
            return []
        return self._refresh()

    def _refresh(self) -> List[object]:
        state = self.state
        state.loading = True
        state.error = None
        state.status = "Refreshing functions..."
        return [self._request(TaskKind.LIST_FUNCTIONS, "")]

    def _begin_filter(self) -> List[object]:
        if self.state.view is View.LIST:
            self.state.mode = InputMode.FILTER
            self.state.input_buffer = ""
        return []

    def _begin_command(self) -> List[object]:
        if self.state.view is View.LIST:
            self.state.mode = InputMode.COMMAND
            self.state.input_buffer = ""
        return []

    def _navigate(self, action: Action) -> None:
        state = self.state
        if state.view is View.LIST:
            count = len(state.registry.filtered)
            page = state.layout.table_height
            position = {
                Action.UP: state.cursor - 1,
                Action.DOWN: state.cursor + 1,
                Action.PAGE_UP: state.cursor - page,
                Action.PAGE_DOWN: state.cursor + page,
                Action.HOME: 0,
                Action.END: count - 1,
            }[action]
            state.cursor = max(0, min(position, count - 1))
            return

        page = state.layout.viewport_height
        limit = max_scroll(state)
        position = {
            Action.UP: state.scroll - 1,
            Action.DOWN: state.scroll + 1,
            Action.PAGE_UP: state.scroll - page,
            Action.PAGE_DOWN: state.scroll + page,
            Action.HOME: 0,
            Action.END: limit,
        }[action]
        state.scroll = max(0, min(position, limit))

    # =========================================================================
    # Input modes
    # =========================================================================

    def _on_filter_key(self, event: KeyPressed) -> List[object]:
        state = self.state
        if event.action is Action.ESCAPE:
            state.mode = InputMode.NORMAL
            state.input_buffer = ""
            state.filter_text = None
        elif event.action is Action.ENTER:
            state.mode = InputMode.NORMAL
            text = state.input_buffer.strip()
            state.filter_text = text or None
            state.input_buffer = ""
        elif event.action is Action.BACKSPACE:
            state.input_buffer = state.input_buffer[:-1]
        elif event.action is Action.CHAR:
            state.input_buffer += event.char
        else:
            return []

        live = state.input_buffer if state.mode is InputMode.FILTER else state.filter_text
        state.registry.refilter(live)
        state.cursor = 0
        return []

    def _on_command_key(self, event: KeyPressed) -> List[object]:
        state = self.state
        if event.action is Action.ESCAPE:
            state.mode = InputMode.NORMAL
            state.input_buffer = ""
        elif event.action is Action.BACKSPACE:
            state.input_buffer = state.input_buffer[:-1]
        elif event.action is Action.CHAR:
            state.input_buffer += event.char
        elif event.action is Action.ENTER:
            command = parse_command(state.input_buffer)
            state.mode = InputMode.NORMAL
            state.input_buffer = ""
            if command is LineCommand.QUIT:
                return [Quit("command")]
            if command is LineCommand.REFRESH:
                return self._refresh()
        return []

    def _on_edit_key(self, event: KeyPressed) -> List[object]:
        state = self.state
        action = event.action
        if action is Action.ESCAPE:
            state.edit_mode = False
            state.edit_buffer = ""
            state.content = state.code_text
            state.status = "Edit discarded"
        elif action is Action.SAVE:
            state.code_text = state.edit_buffer
            state.content = state.edit_buffer
            state.edit_mode = False
            state.edit_buffer = ""
            state.status = "✅ Changes saved"
        elif action is Action.BACKSPACE:
            state.edit_buffer = state.edit_buffer[:-1]
        elif action is Action.ENTER:
            state.edit_buffer += "\n"
        elif action is Action.CHAR:
            state.edit_buffer += event.char
        else:
            return []
        state.scroll = max_scroll(state) if state.edit_mode else 0
        return []

    # =========================================================================
    # Background results
    # =========================================================================

    def _on_task_completed(self, event: TaskCompleted) -> List[object]:
        state = self.state
        if state.pending.get(event.key) != event.token:
            logger.debug(f"Dropping stale result {event.kind.value} {event.target!r} token={event.token}")
            return []
        del state.pending[event.key]

        handler = {
            TaskKind.LIST_FUNCTIONS: self._functions_loaded,
            TaskKind.ACCOUNT_ID: self._account_loaded,
            TaskKind.FUNCTION_LOGS: self._logs_loaded,
            TaskKind.FUNCTION_CODE: self._code_loaded,
            TaskKind.CODE_FILES: self._code_files_loaded,
            TaskKind.FUNCTION_METRICS: self._metrics_loaded,
            TaskKind.DOWNLOAD_CODE: self._download_finished,
        }[event.kind]
        return handler(event.target, event.result)

    def _functions_loaded(self, target: str, result: TaskResult) -> List[object]:
        state = self.state
        state.loading = False
        if not result.success:
            state.status = None
            state.error = f"Failed to load functions: {result.error_message}"
            return []

        live = state.input_buffer if state.mode is InputMode.FILTER else state.filter_text
        state.registry.replace(result.value, live)
        state.cursor = max(0, min(state.cursor, len(state.registry.filtered) - 1))
        state.status = f"Loaded {len(state.registry.all)} functions"
        state.error = None

        if state.view is View.LIST or state.selected_name is None:
            return []
        if state.registry.find(state.selected_name) is None:
            missing = state.selected_name
            commands = self._return_to_list()
            state.status = f"Function {missing} no longer exists"
            return commands
        return []

    def _account_loaded(self, target: str, result: TaskResult) -> List[object]:
        if result.success:
            self.state.account_id = str(result.value)
        else:
            self.state.account_id = "unknown"
            logger.warning(f"Account id lookup failed: {result.error_message}")
        return []

    def _matches(self, view: View, target: str) -> bool:
        return self.state.view is view and self.state.selected_name == target

    def _logs_loaded(self, target: str, result: TaskResult) -> List[object]:
        if not self._matches(View.LOGS, target):
            return []
        state = self.state
        if result.success:
            state.content = "\n".join(result.value) if result.value else "No logs available"
        else:
            state.content = f"Error loading logs: {result.error_message}"
        state.scroll = 0
        return []

    def _code_loaded(self, target: str, result: TaskResult) -> List[object]:
        if not self._matches(View.CODE, target):
            return []
        state = self.state
        if result.success:
            state.code_text = result.value
            state.content = result.value
        else:
            state.code_text = ""
            state.content = f"Error loading code: {result.error_message}"
        state.scroll = 0
        return []

    def _code_files_loaded(self, target: str, result: TaskResult) -> List[object]:
        if not self._matches(View.CODE_FILES, target):
            return []
        state = self.state
        if result.success:
            state.content = result.value
        else:
            state.content = (
                f"Error loading code files: {result.error_message}\n\nPress 'esc' to go back."
            )
            state.error = result.error_message
        state.scroll = 0
        return []

    def _metrics_loaded(self, target: str, result: TaskResult) -> List[object]:
        if not self._matches(View.METRICS, target):
            return []
        state = self.state
        if result.success:
            state.metrics = result.value
        else:
            state.metrics = None
            state.content = f"Error loading metrics: {result.error_message}"
        state.scroll = 0
        return []

    def _download_finished(self, target: str, result: TaskResult) -> List[object]:
        state = self.state
        if result.success:
            state.downloaded.add(target)
            state.error = None
            state.status = f"✅ Code for {target} downloaded to {result.value}"
        else:
            state.downloaded.discard(target)
            state.status = None
            state.error = f"Download failed for {target}: {result.error_message}"
        return []

    # =========================================================================
    # Streaming
    # =========================================================================

    def _append_log_lines(self, lines: List[str]) -> None:
        state = self.state
        state.log_buffer.extend(lines)
        state.content = "\n".join(state.log_buffer)
        state.scroll = max_scroll(state)

    def _on_log_entries(self, event: LogEntriesReceived) -> List[object]:
        if event.session_id != self.state.stream_session:
            logger.debug(f"Dropping batch from stale stream session {event.session_id}")
            return []
        self._append_log_lines([entry.format_line() for entry in event.entries])
        return []

    def _on_stream_failed(self, event: LogStreamFailed) -> List[object]:
        if event.session_id != self.state.stream_session:
            return []
        self.state.stream_session = None
        self._append_log_lines([f"❌ Stream error: {event.message}"])
        return []

    # =========================================================================
    # Resize
    # =========================================================================

    def _on_resize(self, event: Resized) -> List[object]:
        state = self.state
        state.width = event.width
        state.height = event.height
        state.layout = Layout.for_size(event.width, event.height)
        state.scroll = min(state.scroll, max_scroll(state))
        return []
