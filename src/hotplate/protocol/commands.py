"""Server → client frames.

Commands arrive as raw text frames, not JSON, and are matched by prefix.
decode_command turns one frame into exactly one typed command; the first
matching prefix wins, in this order:

    reload
    css:<path>
    inject:js:<source>
    inject:css:<source>
    screenshot:<id>:<width>x<height>
    dom_query:<id>:<selector>
    eval:<id>:<code>

Anything else decodes to None and is ignored by the agent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Reload:
    """Full page reload."""


@dataclass(frozen=True)
class CssSwap:
    """Hot-swap the stylesheet at path."""

    path: str


@dataclass(frozen=True)
class InjectScript:
    """Append a script element with the given source."""

    source: str


@dataclass(frozen=True)
class InjectStyle:
    """Append a style element with the given source."""

    source: str


@dataclass(frozen=True)
class Screenshot:
    """Capture the page.

    Attributes:
        request_id: Correlation id
        width: Requested width; None means the viewport width at capture time
        height: Requested height; None means the viewport height at capture time
    """

    request_id: str
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True)
class DomQuery:
    """Run a CSS selector against the document."""

    request_id: str
    selector: str


@dataclass(frozen=True)
class Eval:
    """Run code as the body of an async function."""

    request_id: str
    code: str


Command = Reload | CssSwap | InjectScript | InjectStyle | Screenshot | DomQuery | Eval

_LEADING_DIGITS = re.compile(r"\d+")


def _split_id(rest: str) -> tuple[str, str]:
    """Split '<id>:<tail>' at the first colon; a missing colon gives an empty tail."""
    request_id, _, tail = rest.partition(":")
    return request_id, tail


def _parse_dimension(text: str) -> int | None:
    """Parse leading digits; missing, non-numeric and zero mean 'use the viewport'."""
    match = _LEADING_DIGITS.match(text.strip())
    if match is None:
        return None
    return int(match.group()) or None


def _decode_screenshot(rest: str) -> Screenshot:
    request_id, size = _split_id(rest)
    width_text, _, height_text = size.partition("x")
    return Screenshot(
        request_id=request_id,
        width=_parse_dimension(width_text),
        height=_parse_dimension(height_text),
    )


def decode_command(frame: str) -> Command | None:
    """Decode one inbound text frame.

    Args:
        frame: Raw text frame from the server

    Returns:
        The decoded command, or None if the frame is not recognized
    """
    if frame == "reload":
        return Reload()
    if frame.startswith("css:"):
        return CssSwap(path=frame[len("css:") :])
    if frame.startswith("inject:js:"):
        return InjectScript(source=frame[len("inject:js:") :])
    if frame.startswith("inject:css:"):
        return InjectStyle(source=frame[len("inject:css:") :])
    if frame.startswith("screenshot:"):
        return _decode_screenshot(frame[len("screenshot:") :])
    if frame.startswith("dom_query:"):
        request_id, selector = _split_id(frame[len("dom_query:") :])
        return DomQuery(request_id=request_id, selector=selector)
    if frame.startswith("eval:"):
        request_id, code = _split_id(frame[len("eval:") :])
        return Eval(request_id=request_id, code=code)
    return None
