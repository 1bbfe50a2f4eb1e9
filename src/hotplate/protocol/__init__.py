"""Wire protocol for the control channel.

Outbound frames (telemetry and responses) are JSON; inbound command frames
are prefix-matched text.
"""

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
from hotplate.protocol.events import (
    CommandResponse,
    EventKind,
    ResponseKind,
    TelemetryEvent,
    make_connect,
    make_console,
    make_dom_response,
    make_eval_response,
    make_js_error,
    make_net_error,
    make_net_request,
    make_screenshot_response,
)

__all__ = [
    # Commands
    "Command",
    "CssSwap",
    "DomQuery",
    "Eval",
    "InjectScript",
    "InjectStyle",
    "Reload",
    "Screenshot",
    "decode_command",
    # Events and responses
    "CommandResponse",
    "EventKind",
    "ResponseKind",
    "TelemetryEvent",
    "make_connect",
    "make_console",
    "make_dom_response",
    "make_eval_response",
    "make_js_error",
    "make_net_error",
    "make_net_request",
    "make_screenshot_response",
]
