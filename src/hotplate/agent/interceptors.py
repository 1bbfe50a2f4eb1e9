"""Telemetry interception.

Each interceptor wraps one page capability, forwards a telemetry event to
a sink, and leaves the capability's observable behavior unchanged:

    InterceptedConsole  console.warn/error (configurable levels)
    InterceptedFetch    page.fetch; net_request always, net_error on failure
    ErrorHooks          sys.excepthook and the asyncio loop exception handler

The sink is a plain callable; the agent passes a best-effort sender, so an
interception point can never fail because the channel is down.
"""

from __future__ import annotations

import asyncio
import sys
import time
import traceback
from collections.abc import Callable, Iterable
from types import TracebackType
from typing import TYPE_CHECKING, Any

from hotplate.protocol.events import (
    TelemetryEvent,
    make_console,
    make_js_error,
    make_net_error,
    make_net_request,
)

if TYPE_CHECKING:
    import httpx

    from hotplate.core.page import Console, Fetcher

TelemetrySink = Callable[[TelemetryEvent], None]


class InterceptedConsole:
    """Console that mirrors selected levels to telemetry.

    Every call is forwarded to the wrapped console with the same arguments,
    after the telemetry event has been handed to the sink.
    """

    def __init__(self, original: Console, sink: TelemetrySink, levels: Iterable[str]) -> None:
        self._original = original
        self._sink = sink
        self._levels = frozenset(levels)

    @property
    def original(self) -> Console:
        """The wrapped console."""
        return self._original

    def _forward(self, level: str, args: tuple[Any, ...]) -> None:
        if level in self._levels:
            self._sink(make_console(level, " ".join(str(a) for a in args)))

    def log(self, *args: Any) -> None:
        self._forward("log", args)
        self._original.log(*args)

    def info(self, *args: Any) -> None:
        self._forward("info", args)
        self._original.info(*args)

    def warn(self, *args: Any) -> None:
        self._forward("warn", args)
        self._original.warn(*args)

    def error(self, *args: Any) -> None:
        self._forward("error", args)
        self._original.error(*args)


def _elapsed_ms(start: float) -> int:
    return max(0, round((time.perf_counter() - start) * 1000))


def _failure_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class InterceptedFetch:
    """Fetcher that measures and reports every request.

    On success: one net_request, plus one net_error if the status is not
    2xx. On transport failure: net_request with status 0, net_error with
    status 0, then the original exception is re-raised unchanged.
    """

    def __init__(self, original: Fetcher, sink: TelemetrySink) -> None:
        self._original = original
        self._sink = sink

    @property
    def original(self) -> Fetcher:
        """The wrapped fetcher."""
        return self._original

    async def __call__(self, url: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        target = str(url)
        verb = (method or "GET").upper()
        start = time.perf_counter()

        try:
            response = await self._original(url, method, **kwargs)
        except Exception as e:
            self._sink(make_net_request(target, verb, 0, _elapsed_ms(start)))
            self._sink(make_net_error(target, verb, 0, _failure_message(e)))
            raise

        status = response.status_code
        self._sink(make_net_request(target, verb, status, _elapsed_ms(start)))
        if not response.is_success:
            self._sink(make_net_error(target, verb, status, response.reason_phrase))
        return response


def _describe(reason: object) -> str:
    if isinstance(reason, BaseException):
        text = str(reason)
        return f"{type(reason).__name__}: {text}" if text else type(reason).__name__
    return str(reason)


def _format_stack(reason: object) -> str:
    if isinstance(reason, BaseException) and reason.__traceback__ is not None:
        return "".join(traceback.format_exception(reason))
    return ""


class ErrorHooks:
    """Uncaught error and unhandled rejection reporting.

    install() chains onto sys.excepthook and the running loop's exception
    handler. The previous hook is always invoked afterwards, so the fault
    surfaces exactly as it would without the agent.
    """

    def __init__(self, sink: TelemetrySink) -> None:
        self._sink = sink
        self._previous_excepthook: Callable[..., Any] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_loop_handler: Callable[..., Any] | None = None
        self._installed = False

    @property
    def installed(self) -> bool:
        """Whether the hooks are currently installed."""
        return self._installed

    def report_error(
        self,
        exc: BaseException,
        source: str = "",
        line: int = 0,
        col: int = 0,
    ) -> None:
        """Forward an uncaught synchronous error.

        Source position defaults to the innermost traceback frame.
        """
        if not source and exc.__traceback__ is not None:
            frames = traceback.extract_tb(exc.__traceback__)
            if frames:
                last = frames[-1]
                source = last.filename
                line = last.lineno or 0
                col = getattr(last, "colno", None) or 0

        self._sink(make_js_error(_describe(exc), source, line, col, _format_stack(exc)))

    def report_rejection(self, reason: object) -> None:
        """Forward an unhandled asynchronous failure."""
        self._sink(make_js_error(_describe(reason), stack=_format_stack(reason)))

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Install the hooks.

        Args:
            loop: Loop whose exception handler to chain; defaults to the running loop
        """
        if self._installed:
            return

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is not None:
            self._loop = loop
            self._previous_loop_handler = loop.get_exception_handler()
            loop.set_exception_handler(self._loop_exception_handler)

        self._installed = True

    def uninstall(self) -> None:
        """Restore the previous hooks."""
        if not self._installed:
            return

        if sys.excepthook == self._excepthook and self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
        self._previous_excepthook = None

        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(self._previous_loop_handler)
        self._loop = None
        self._previous_loop_handler = None

        self._installed = False

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if exc.__traceback__ is None and tb is not None:
            exc = exc.with_traceback(tb)
        self.report_error(exc)

        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)

    def _loop_exception_handler(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        self.report_rejection(context.get("exception", context.get("message", "")))

        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)
