"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from hotplate.core.page import Location, Viewport
from hotplate.page.document import Document

DEFAULT_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Test</title>
  <link rel="stylesheet" href="/app.css">
  <link rel="stylesheet" href="/static/css/theme.css?v=3">
</head>
<body>
  <div id="main" class="card wide">Hello <b>world</b></div>
</body>
</html>
"""


class RecordingConsole:
    """Console that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def log(self, *args: Any) -> None:
        self.calls.append(("log", args))

    def info(self, *args: Any) -> None:
        self.calls.append(("info", args))

    def warn(self, *args: Any) -> None:
        self.calls.append(("warn", args))

    def error(self, *args: Any) -> None:
        self.calls.append(("error", args))


class FakePage:
    """In-memory page for testing.

    fetch outcomes are configured per URL in ``outcomes``: an int status
    code or an exception to raise. Unknown URLs answer 200.
    """

    def __init__(
        self,
        url: str = "http://127.0.0.1:5500/index.html",
        html: str = DEFAULT_HTML,
        width: int = 1024,
        height: int = 768,
    ) -> None:
        self._location = Location.from_url(url)
        self._viewport = Viewport(width, height)
        self._document = Document(html)
        self.console: Any = RecordingConsole()
        self.fetch: Any = self._fetch
        self.rasterizer: Any = None
        self.outcomes: dict[str, int | Exception] = {}
        self.fetched: list[tuple[str, str]] = []
        self.reloads = 0

    @property
    def location(self) -> Location:
        return self._location

    @property
    def user_agent(self) -> str:
        return "TestAgent/1.0"

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def document(self) -> Document:
        return self._document

    def reload(self) -> None:
        self.reloads += 1

    async def _fetch(self, url: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        self.fetched.append((method, url))
        outcome = self.outcomes.get(url, 200)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, request=httpx.Request(method, url))


class ControlServer:
    """Minimal /__lr endpoint recording inbound JSON frames."""

    def __init__(self) -> None:
        self.frames: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.clients: list[ServerConnection] = []
        self.paths: list[str] = []
        self.connections = 0
        self._server: Server | None = None

    @property
    def port(self) -> int:
        assert self._server is not None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await serve(self._handle, "127.0.0.1", 0)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _handle(self, ws: ServerConnection) -> None:
        self.clients.append(ws)
        self.paths.append(ws.request.path if ws.request is not None else "")
        self.connections += 1
        try:
            async for message in ws:
                await self.frames.put(json.loads(message))
        except ConnectionClosed:
            pass
        finally:
            self.clients.remove(ws)

    async def send(self, frame: str) -> None:
        await asyncio.gather(*(ws.send(frame) for ws in self.clients))

    async def next_frame(self, timeout: float = 2.0) -> dict[str, Any]:
        return await asyncio.wait_for(self.frames.get(), timeout=timeout)

    async def next_of(self, kind: str, timeout: float = 2.0) -> dict[str, Any]:
        """Skip frames until one of the given kind arrives."""
        while True:
            frame = await self.next_frame(timeout)
            if frame["kind"] == kind:
                return frame

    async def drop_clients(self) -> None:
        for ws in list(self.clients):
            await ws.close()

    async def wait_for_clients(self, count: int = 1, timeout: float = 2.0) -> None:
        async def _poll() -> None:
            while len(self.clients) < count:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def page_factory() -> Callable[..., FakePage]:
    """Factory for in-memory pages."""
    return FakePage


@pytest.fixture
def page() -> FakePage:
    """In-memory page with two stylesheets and one div."""
    return FakePage()


@pytest.fixture
def events() -> list[Any]:
    """List used as a telemetry sink via events.append."""
    return []


@pytest.fixture
async def control_server() -> ControlServer:
    """Running control endpoint on a random port."""
    server = ControlServer()
    await server.start()

    yield server

    await server.stop()
