"""Client → server frames.

This module defines the JSON frames the agent sends over the control
channel: telemetry events observed in the page and responses to
correlated commands.

Message Types:
    Telemetry:
        - connect: Page identity, sent once per connection
        - console: Intercepted console output
        - js_error: Uncaught error or unhandled rejection
        - net_error: Failed or non-success request
        - net_request: Every settled request with its duration

    Responses:
        - screenshot_response: Base64 PNG or empty string
        - dom_response: JSON array of elements or JSON error object
        - eval_response: JSON result, string form, or "undefined"

Response frames carry the request id in the ``url`` field and the
payload in the ``msg`` field. Only ``CommandResponse.to_json`` knows
about that naming.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    """Kinds of telemetry events."""

    CONNECT = "connect"
    CONSOLE = "console"
    JS_ERROR = "js_error"
    NET_ERROR = "net_error"
    NET_REQUEST = "net_request"


class ResponseKind(str, Enum):
    """Kinds of correlated command responses."""

    SCREENSHOT = "screenshot_response"
    DOM = "dom_response"
    EVAL = "eval_response"


@dataclass
class TelemetryEvent:
    """Something observed in the page.

    Attributes:
        kind: Event kind
        payload: Kind-specific fields
    """

    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize event to a JSON text frame."""
        return json.dumps({"kind": self.kind.value, **self.payload})


@dataclass
class CommandResponse:
    """Result of a correlated command.

    Attributes:
        kind: Response kind, derived from the originating command
        request_id: Correlation id echoed verbatim from the command
        body: Serialized result or error object
    """

    kind: ResponseKind
    request_id: str
    body: str

    def to_json(self) -> str:
        """Serialize response to a JSON text frame."""
        return json.dumps({"kind": self.kind.value, "url": self.request_id, "msg": self.body})


# Factory functions for telemetry events


def make_connect(url: str, user_agent: str, width: int, height: int) -> TelemetryEvent:
    """Create the page identity event.

    Args:
        url: Current page URL
        user_agent: Host user-agent string
        width: Viewport width
        height: Viewport height
    """
    return TelemetryEvent(
        kind=EventKind.CONNECT,
        payload={"url": url, "ua": user_agent, "vw": width, "vh": height},
    )


def make_console(level: str, message: str) -> TelemetryEvent:
    """Create a console output event."""
    return TelemetryEvent(kind=EventKind.CONSOLE, payload={"level": level, "msg": message})


def make_js_error(
    message: str,
    source: str = "",
    line: int = 0,
    col: int = 0,
    stack: str = "",
) -> TelemetryEvent:
    """Create an uncaught error event.

    Rejections leave source, line and col at their empty defaults.
    """
    return TelemetryEvent(
        kind=EventKind.JS_ERROR,
        payload={"msg": message, "src": source, "line": line, "col": col, "stack": stack},
    )


def make_net_error(url: str, method: str, status: int, error: str) -> TelemetryEvent:
    """Create a network error event.

    Args:
        url: Request URL
        method: Request method
        status: HTTP status, or 0 for a transport failure
        error: Status text or failure message
    """
    return TelemetryEvent(
        kind=EventKind.NET_ERROR,
        payload={"url": url, "method": method, "status": status, "error": error},
    )


def make_net_request(url: str, method: str, status: int, duration: int) -> TelemetryEvent:
    """Create a settled request event.

    Args:
        url: Request URL
        method: Request method
        status: HTTP status, or 0 for a transport failure
        duration: Elapsed whole milliseconds
    """
    return TelemetryEvent(
        kind=EventKind.NET_REQUEST,
        payload={"url": url, "method": method, "status": status, "duration": duration},
    )


# Factory functions for responses


def make_screenshot_response(request_id: str, data: str) -> CommandResponse:
    """Create a screenshot response; data is base64 PNG or empty."""
    return CommandResponse(kind=ResponseKind.SCREENSHOT, request_id=request_id, body=data)


def make_dom_response(
    request_id: str, result: list[dict[str, Any]] | dict[str, Any]
) -> CommandResponse:
    """Create a dom_query response from an element list or error object."""
    return CommandResponse(kind=ResponseKind.DOM, request_id=request_id, body=json.dumps(result))


def make_eval_response(request_id: str, body: str) -> CommandResponse:
    """Create an eval response from an already serialized result."""
    return CommandResponse(kind=ResponseKind.EVAL, request_id=request_id, body=body)
