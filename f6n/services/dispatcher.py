"""
Task Dispatcher

Where: f6n/services/dispatcher.py
What: Executes the commands returned by the state machine. Provider calls
      run in worker threads; each live request produces exactly one
      TaskCompleted event.
Why: Keeps every blocking SDK call off the UI loop while the state machine
     stays a plain synchronous reducer.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable

from ..core.result import TaskResult
from ..events import (
    CancelTask,
    Quit,
    StartStream,
    StopStream,
    TaskCompleted,
    TaskKey,
    TaskKind,
    TaskRequest,
)

if TYPE_CHECKING:
    from ..providers.base import Provider
    from .archive import CodeArchiveManager
    from .streaming import StreamSessionManager

logger = logging.getLogger("f6n.dispatcher")


class TaskDispatcher:
    """
    Runs background work for the UI.

    At most one task per (kind, target) key is alive; a newer request for the
    same key cancels the older one.
    """

    def __init__(
        self,
        provider: "Provider",
        archives: "CodeArchiveManager",
        sink: Callable[[object], None],
        streams: "StreamSessionManager",
        on_quit: Callable[[], None] | None = None,
    ):
        self.provider = provider
        self.archives = archives
        self.sink = sink
        self.streams = streams
        self.on_quit = on_quit
        self._tasks: Dict[TaskKey, asyncio.Task] = {}

    @property
    def pending(self) -> Dict[TaskKey, asyncio.Task]:
        return dict(self._tasks)

    def execute(self, commands: Iterable[Any]) -> None:
        """Apply commands in order. Must be called from the event loop."""
        for command in commands:
            if isinstance(command, TaskRequest):
                self.submit(command)
            elif isinstance(command, CancelTask):
                self.cancel(command.key)
            elif isinstance(command, StartStream):
                self.streams.start(command.session_id, command.function_name)
            elif isinstance(command, StopStream):
                self.streams.stop(command.session_id)
            elif isinstance(command, Quit):
                if self.on_quit:
                    self.on_quit()
            else:
                logger.warning(f"Unknown command ignored: {command!r}")

    def submit(self, request: TaskRequest) -> asyncio.Task:
        self.cancel(request.key)
        task = asyncio.create_task(
            self._run(request), name=f"{request.kind.value}:{request.target}:{request.token}"
        )
        self._tasks[request.key] = task
        logger.debug(f"Task submitted: {request.kind.value} {request.target!r} token={request.token}")
        return task

    def cancel(self, key: TaskKey) -> bool:
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Task cancelled: {key[0].value} {key[1]!r}")
        return True

    async def join(self) -> None:
        """Wait for every outstanding task to finish (tests, shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        self._tasks.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.streams.shutdown()

    async def _run(self, request: TaskRequest) -> None:
        try:
            value = await asyncio.to_thread(self._call, request)
            result = TaskResult.ok(value)
        except asyncio.CancelledError:
            logger.debug(f"Task {request.kind.value} {request.target!r} cancelled")
            raise
        except Exception as e:
            logger.error(f"Task {request.kind.value} {request.target!r} failed: {e}")
            result = TaskResult.fail(e)
        finally:
            if self._tasks.get(request.key) is asyncio.current_task():
                del self._tasks[request.key]

        self.sink(TaskCompleted(request.kind, request.target, request.token, result))

    def _call(self, request: TaskRequest) -> Any:
        """Blocking body of a request; runs in a worker thread."""
        provider = self.provider
        kind = request.kind
        name = request.target

        if kind is TaskKind.LIST_FUNCTIONS:
            return provider.list_functions()
        if kind is TaskKind.ACCOUNT_ID:
            return provider.get_account_id()
        if kind is TaskKind.FUNCTION_LOGS:
            return provider.get_function_logs(name, request.limit)
        if kind is TaskKind.FUNCTION_CODE:
            return provider.get_function_code(name)
        if kind is TaskKind.FUNCTION_METRICS:
            end = request.end or datetime.now(timezone.utc)
            start = request.start or end - timedelta(hours=1)
            return provider.get_function_metrics(name, start, end)
        if kind is TaskKind.DOWNLOAD_CODE:
            return self.archives.download(name)
        if kind is TaskKind.CODE_FILES:
            return self.archives.read_code_files(name)
        raise ValueError(f"unknown task kind: {kind}")
