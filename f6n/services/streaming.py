"""
Log streaming.

Where: f6n/services/streaming.py
What: Polling log stream built on Provider.query_log_entries, plus the
      session manager that keeps at most one stream alive.
Why: Neither Cloud Logging nor CloudWatch Logs offer a cheap push tail, so
     "real-time" means polling every few seconds past a high-water mark.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, AsyncIterator, Callable, List, Optional

from ..core.exceptions import StreamEndedError
from ..events import LogEntriesReceived, LogStreamFailed
from ..models import LogEntry

if TYPE_CHECKING:
    from ..providers.base import Provider

logger = logging.getLogger("f6n.streaming")

QueryFn = Callable[[str, datetime], List[LogEntry]]


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def select_new_entries(entries: List[LogEntry], high_water: datetime) -> List[LogEntry]:
    """
    Keep entries strictly newer than ``high_water``, oldest first.

    Providers are free to return entries in any order and to repeat entries
    at the boundary timestamp.
    """
    fresh = [e for e in entries if _utc(e.timestamp) > high_water]
    fresh.sort(key=lambda e: _utc(e.timestamp))
    return fresh


async def poll_log_entries(
    query: QueryFn,
    function_name: str,
    *,
    interval: float = 2.0,
    lookback: float = 60.0,
    clock: Callable[[], datetime] = _utcnow,
) -> AsyncIterator[List[LogEntry]]:
    """
    Yield batches of new log entries for ``function_name`` forever.

    Args:
        query: Blocking pull primitive ``(name, since) -> entries``; runs in a worker thread.
        function_name: Function to follow.
        interval: Seconds between polls.
        lookback: Initial high-water mark is ``now - lookback`` seconds.
        clock: Time source.

    Yields:
        Non-empty, time-ascending batches. Empty polls yield nothing.
    """
    high_water = _utc(clock()) - timedelta(seconds=lookback)
    logger.debug(f"Polling logs for {function_name} since {high_water.isoformat()}")

    while True:
        await asyncio.sleep(interval)
        entries = await asyncio.to_thread(query, function_name, high_water)
        batch = select_new_entries(entries, high_water)
        if not batch:
            continue
        high_water = _utc(batch[-1].timestamp)
        yield batch


class StreamSessionManager:
    """
    Owns the single active log stream session.

    Batches and failures are pushed to ``sink`` tagged with the session id;
    anything produced after the session was stopped or replaced is dropped.
    """

    def __init__(
        self,
        provider: "Provider",
        sink: Callable[[object], None],
        interval: float = 2.0,
        lookback: float = 60.0,
    ):
        self.provider = provider
        self.sink = sink
        self.interval = interval
        self.lookback = lookback
        self._session_id: Optional[int] = None
        self._task: asyncio.Task | None = None

    @property
    def active_session(self) -> Optional[int]:
        return self._session_id

    def start(self, session_id: int, function_name: str) -> None:
        """Start a new session, cancelling the current one first."""
        self.stop()
        self._session_id = session_id
        self._task = asyncio.create_task(
            self._run(session_id, function_name), name=f"log-stream-{session_id}"
        )
        logger.info(f"Log stream {session_id} started for {function_name}")

    def stop(self, session_id: Optional[int] = None) -> None:
        """
        Cancel the active session.

        With ``session_id`` given, only that session is stopped; stopping an
        already replaced session is a no-op.
        """
        if self._session_id is None:
            return
        if session_id is not None and session_id != self._session_id:
            return
        stopped = self._session_id
        self._session_id = None
        if self._task and not self._task.done():
            self._task.cancel()
        logger.info(f"Log stream {stopped} stopped")

    async def shutdown(self) -> None:
        """Stop the session and wait for its task to unwind."""
        task = self._task
        self.stop()
        if task:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None

    def _emit(self, session_id: int, event: object) -> None:
        if self._session_id != session_id:
            logger.debug(f"Dropping event from superseded stream {session_id}")
            return
        self.sink(event)

    async def _run(self, session_id: int, function_name: str) -> None:
        try:
            stream = self.provider.stream_function_logs(
                function_name, interval=self.interval, lookback=self.lookback
            )
            async for batch in stream:
                self._emit(session_id, LogEntriesReceived(session_id, tuple(batch)))
            self._emit(session_id, LogStreamFailed(session_id, str(StreamEndedError())))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Log stream {session_id} for {function_name} failed: {e}")
            self._emit(session_id, LogStreamFailed(session_id, str(e) or type(e).__name__))
        finally:
            if self._session_id == session_id:
                self._session_id = None
