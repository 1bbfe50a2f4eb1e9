"""Page agent.

The Agent composes the control connection, the telemetry interceptors and
the command handlers for one page context.

Architecture:
    ┌──────────────────────────────────────────────┐
    │                    Agent                     │
    ├──────────────────────────────────────────────┤
    │  Interceptors ──emit()──┐                    │
    │  (console, fetch,       ▼                    │
    │   error hooks)     ┌────────────┐  frames    │
    │                    │ Connection │◄──────────►│ server /__lr
    │  CommandHandlers ◄─┤            │            │
    │        │ respond() └────────────┘            │
    │        └──────────────▲                      │
    └──────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

import structlog

from hotplate.agent.connection import Connection, ConnectionState
from hotplate.agent.handlers import CommandHandlers
from hotplate.agent.interceptors import ErrorHooks, InterceptedConsole, InterceptedFetch
from hotplate.core.config import AgentConfig
from hotplate.protocol.commands import (
    Command,
    CssSwap,
    DomQuery,
    Eval,
    InjectScript,
    InjectStyle,
    Reload,
    Screenshot,
    decode_command,
)
from hotplate.protocol.events import CommandResponse, TelemetryEvent, make_connect

if TYPE_CHECKING:
    from hotplate.core.page import Page


log = structlog.get_logger()


class Agent:
    """Telemetry uplink and remote-control surface for one page.

    Example:
        agent = Agent(page)
        await agent.start()
        ...
        await agent.stop()  # page unload
    """

    def __init__(self, page: Page, config: AgentConfig | None = None) -> None:
        """Initialize the agent.

        Args:
            page: Page the agent runs in
            config: Agent configuration
        """
        self._page = page
        self._config = config or AgentConfig()

        self._connection = Connection(
            page.location.control_url(self._config.endpoint_path),
            reconnect_delay=self._config.reconnect_delay,
            on_open=self._on_open,
            on_message=self._on_message,
            on_close=self._on_close,
        )
        self._handlers = CommandHandlers(page, self._config)
        self._hooks = ErrorHooks(self.emit)

        self._console: InterceptedConsole | None = None
        self._fetch: InterceptedFetch | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._identified = False
        self._running = False

    @property
    def page(self) -> Page:
        """The page this agent runs in."""
        return self._page

    @property
    def connection(self) -> Connection:
        """The control connection."""
        return self._connection

    @property
    def state(self) -> ConnectionState:
        """Control channel state."""
        return self._connection.state

    @property
    def identified(self) -> bool:
        """Whether the connect identity was sent on the current socket."""
        return self._identified and self.state is ConnectionState.CONNECTED

    @property
    def is_running(self) -> bool:
        """Whether the agent is started and not stopped."""
        return self._running

    @property
    def pending_commands(self) -> int:
        """Number of correlated commands still executing."""
        return len(self._tasks)

    def emit(self, event: TelemetryEvent) -> None:
        """Send a telemetry event, dropping it if the channel is down."""
        self._connection.send(event.to_json())

    def respond(self, response: CommandResponse) -> None:
        """Send a command response, dropping it if the channel is down."""
        self._connection.send(response.to_json())

    def install(self) -> None:
        """Register interceptors on the page's console, fetch and error hooks."""
        if self._console is None:
            self._console = InterceptedConsole(
                self._page.console,
                self.emit,
                (level.value for level in self._config.console_levels),
            )
            self._page.console = self._console

        if self._fetch is None:
            self._fetch = InterceptedFetch(self._page.fetch, self.emit)
            self._page.fetch = self._fetch

        self._hooks.install()

    def uninstall(self) -> None:
        """Restore the page's original capabilities."""
        if self._console is not None:
            if self._page.console is self._console:
                self._page.console = self._console.original
            self._console = None

        if self._fetch is not None:
            if self._page.fetch is self._fetch:
                self._page.fetch = self._fetch.original
            self._fetch = None

        self._hooks.uninstall()

    async def start(self) -> None:
        """Install interceptors and open the control channel."""
        if self._running:
            return
        self._running = True
        self.install()
        self._connection.start()
        log.info("Agent started", url=self._page.location.href, endpoint=self._connection.url)

    async def stop(self) -> None:
        """End the page context: close the channel and drop outstanding commands."""
        if not self._running:
            return
        self._running = False

        await self._connection.stop()

        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        self.uninstall()
        self._identified = False
        log.info("Agent stopped", url=self._page.location.href)

    def dispatch(self, command: Command) -> asyncio.Task[None] | None:
        """Execute a decoded command.

        Screenshot and eval run as tasks so their responses may be sent out
        of order; the task is returned. Everything else completes before
        this returns.
        """
        match command:
            case Reload():
                self._handlers.reload()
            case CssSwap(path=path):
                self._handlers.css_swap(path)
            case InjectScript(source=source):
                self._handlers.inject("script", source)
            case InjectStyle(source=source):
                self._handlers.inject("style", source)
            case DomQuery(request_id=request_id, selector=selector):
                self.respond(self._handlers.dom_query(request_id, selector))
            case Screenshot(request_id=request_id, width=width, height=height):
                return self._spawn(self._handlers.screenshot(request_id, width, height))
            case Eval(request_id=request_id, code=code):
                return self._spawn(self._handlers.eval(request_id, code))
        return None

    def _spawn(self, handler: Coroutine[Any, Any, CommandResponse]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(self._respond_when_done(handler))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _respond_when_done(self, handler: Coroutine[Any, Any, CommandResponse]) -> None:
        self.respond(await handler)

    def _on_open(self) -> None:
        page = self._page
        viewport = page.viewport
        self.emit(
            make_connect(page.location.href, page.user_agent, viewport.width, viewport.height)
        )
        self._identified = True

    def _on_close(self) -> None:
        self._identified = False

    def _on_message(self, frame: str) -> None:
        command = decode_command(frame)
        if command is None:
            log.debug("Ignoring unrecognized frame", frame=frame[:80])
            return
        log.debug("Received command", command=type(command).__name__)
        self.dispatch(command)
