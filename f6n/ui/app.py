"""
Textual host for the state machine.

The app owns no application state of its own: keys, resizes and background
results are turned into machine events, the returned commands go to the
dispatcher and the whole screen is re-rendered into one Static widget.
"""

import logging
from typing import Iterable

from textual import events
from textual.app import App, ComposeResult
from textual.css.query import NoMatches
from textual.message import Message
from textual.widgets import Static

from ..events import Resized
from ..providers.base import Provider
from ..services.archive import CodeArchiveManager
from ..services.dispatcher import TaskDispatcher
from ..services.streaming import StreamSessionManager
from .keys import normalize_key
from .machine import StateMachine
from .render import render

logger = logging.getLogger("f6n.app")


class MachineEvent(Message, bubble=False):
    """Bridge: background task -> app message pump."""

    def __init__(self, event: object) -> None:
        self.event = event
        super().__init__()


class F6nApp(App):
    """Terminal dashboard for serverless functions."""

    CSS = """
    Screen {
        overflow: hidden;
    }
    #view {
        width: 100%;
        height: 100%;
    }
    """

    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        machine: StateMachine,
        provider: Provider,
        archives: CodeArchiveManager,
        stream_interval: float = 2.0,
        stream_lookback: float = 60.0,
    ):
        super().__init__()
        self.machine = machine
        self.streams = StreamSessionManager(
            provider, self._post, interval=stream_interval, lookback=stream_lookback
        )
        self.dispatcher = TaskDispatcher(
            provider, archives, self._post, self.streams, on_quit=self.exit
        )

    def compose(self) -> ComposeResult:
        yield Static("", id="view", markup=False)

    def on_mount(self) -> None:
        self._apply(Resized(self.size.width, self.size.height))
        self._execute(self.machine.start())
        self._refresh_view()

    async def on_unmount(self) -> None:
        await self.dispatcher.shutdown()

    def _post(self, event: object) -> None:
        self.post_message(MachineEvent(event))

    def on_machine_event(self, message: MachineEvent) -> None:
        self._apply(message.event)

    async def on_key(self, event: events.Key) -> None:
        key = normalize_key(event.key, event.character)
        if key is None:
            return
        event.prevent_default()
        event.stop()
        self._apply(key)

    def on_resize(self, event: events.Resize) -> None:
        self._apply(Resized(event.size.width, event.size.height))

    def _apply(self, event: object) -> None:
        try:
            commands = self.machine.handle(event)
        except Exception as e:
            logger.exception(f"Failed to handle {type(event).__name__}: {e}")
            self.machine.state.error = f"Internal error: {e}"
            commands = []
        self._execute(commands)
        self._refresh_view()

    def _execute(self, commands: Iterable[object]) -> None:
        self.dispatcher.execute(commands)

    def _refresh_view(self) -> None:
        try:
            view = self.query_one("#view", Static)
        except NoMatches:
            return
        view.update(render(self.machine.state))
