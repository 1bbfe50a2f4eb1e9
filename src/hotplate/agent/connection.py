"""Control channel to the Hotplate server.

One Connection owns at most one live WebSocket and at most one pending
reconnect timer. Every close or transport error ends in a single call to
_schedule_reconnect, which cancels any pending timer before arming a new
one after a fixed delay. There is no backoff and no jitter.

State machine:
    DISCONNECTED --(socket open)--> CONNECTED
    CONNECTED --(close/error)--> DISCONNECTED --(delay)--> connect attempt
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from enum import Enum

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException
from websockets.protocol import State

log = structlog.get_logger()


class ConnectionState(str, Enum):
    """Control channel states."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class Connection:
    """Self-healing control connection.

    Sends are best-effort: when the socket is not open the payload is
    dropped, never queued.

    Example:
        conn = Connection("ws://localhost:5500/__lr", on_message=print)
        conn.start()
        conn.send('{"kind": "console", "level": "warn", "msg": "hi"}')
    """

    def __init__(
        self,
        url: str,
        *,
        reconnect_delay: float = 1.0,
        on_open: Callable[[], None] | None = None,
        on_message: Callable[[str], None] | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the connection.

        Args:
            url: WebSocket URL of the control endpoint
            reconnect_delay: Seconds to wait before reconnecting
            on_open: Called once each time a socket opens, before any frame is read
            on_message: Called with every inbound text frame
            on_close: Called when an open socket goes away, before the reconnect is armed
        """
        self._url = url
        self._reconnect_delay = reconnect_delay
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close

        self._loop: asyncio.AbstractEventLoop | None = None
        self._ws: ClientConnection | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._sends: set[asyncio.Task[None]] = set()
        self._running = False
        self._attempts = 0

    @property
    def url(self) -> str:
        """Control endpoint URL."""
        return self._url

    @property
    def state(self) -> ConnectionState:
        """Current channel state."""
        if self._ws is not None and self._ws.state is State.OPEN:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    @property
    def is_running(self) -> bool:
        """Whether the connection is started and not stopped."""
        return self._running

    @property
    def reconnect_pending(self) -> bool:
        """Whether a reconnect attempt is scheduled."""
        return self._timer is not None

    @property
    def attempts(self) -> int:
        """Number of connection attempts made since start()."""
        return self._attempts

    def start(self) -> None:
        """Open the first connection. Must be called from the event loop."""
        self._loop = asyncio.get_running_loop()
        self._running = True
        self._connect()

    async def stop(self) -> None:
        """Close the channel and cancel any pending reconnect."""
        self._running = False

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        for task in list(self._sends):
            task.cancel()
        self._sends.clear()
        self._ws = None

        log.debug("Control channel stopped", url=self._url)

    def send(self, payload: str) -> None:
        """Send a text frame if the channel is open, otherwise drop it.

        Safe to call from any thread and from synchronous code; never raises.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._send_now(payload)
        else:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(self._send_now, payload)

    def _send_now(self, payload: str) -> None:
        ws = self._ws
        if ws is None or ws.state is not State.OPEN:
            log.debug("Dropping frame, control channel not open", size=len(payload))
            return

        task = asyncio.ensure_future(ws.send(payload))
        self._sends.add(task)
        task.add_done_callback(self._send_done)

    def _send_done(self, task: asyncio.Task[None]) -> None:
        self._sends.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.debug("Dropped frame after send failure", error=str(task.exception()))

    def _connect(self) -> None:
        """Start a connection attempt, superseding any previous one."""
        self._timer = None
        if not self._running or self._loop is None:
            return

        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._attempts += 1
        self._task = self._loop.create_task(self._run())

    async def _run(self) -> None:
        log.debug("Connecting", url=self._url, attempt=self._attempts)
        try:
            # Command frames carry inject sources verbatim, with no size cap
            async with connect(self._url, max_size=None) as ws:
                self._ws = ws
                log.info("Control channel open", url=self._url)

                if self._on_open is not None:
                    self._on_open()

                async for message in ws:
                    if isinstance(message, str):
                        if self._on_message is not None:
                            self._on_message(message)
                    else:
                        log.debug("Ignoring binary frame", size=len(message))

            log.info("Control channel closed", url=self._url)

        except (OSError, TimeoutError, WebSocketException) as e:
            log.info("Control channel error", url=self._url, error=str(e))
        except Exception as e:
            log.error("Control channel handler error", url=self._url, error=str(e))
        finally:
            was_open = self._ws is not None
            self._ws = None
            if was_open and self._on_close is not None:
                self._on_close()

        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """Arm the single reconnect timer."""
        if not self._running or self._loop is None:
            return

        if self._timer is not None:
            self._timer.cancel()

        self._timer = self._loop.call_later(self._reconnect_delay, self._connect)
        log.debug("Reconnect scheduled", url=self._url, delay=self._reconnect_delay)
