"""Command handlers.

Handlers never raise into the dispatcher. Correlated commands always
produce exactly one response; failures are encoded in that response:

    screenshot  empty payload on any failure
    dom_query   {"error": ...} object instead of the element array
    eval        {"error": ..., "stack": ...} object

reload, css-swap and inject produce no response.
"""

from __future__ import annotations

import ast
import asyncio
import base64
import json
import textwrap
import time
import traceback
from io import BytesIO
from typing import TYPE_CHECKING, Any

import structlog
from PIL import Image

from hotplate.page.document import element_record
from hotplate.protocol.events import (
    CommandResponse,
    make_dom_response,
    make_eval_response,
    make_screenshot_response,
)

if TYPE_CHECKING:
    from hotplate.core.config import AgentConfig
    from hotplate.core.page import Page


log = structlog.get_logger()

SVG_TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}">'
    '<foreignObject width="100%" height="100%">'
    '<div xmlns="http://www.w3.org/1999/xhtml">{markup}</div>'
    "</foreignObject>"
    "</svg>"
)

_EVAL_FUNCTION = "__hotplate_eval__"


def render_svg(markup: str, width: int, height: int) -> str:
    """Embed document markup in an SVG foreignObject of the given size."""
    return SVG_TEMPLATE.format(width=width, height=height, markup=markup)


def encode_png(image: Image.Image, width: int, height: int) -> str:
    """Draw image onto a width x height canvas and return it as base64 PNG."""
    canvas = Image.new("RGBA", (width, height))
    canvas.paste(image.convert("RGBA"), (0, 0))

    buffer = BytesIO()
    canvas.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def compile_eval(code: str) -> Any:
    """Compile code as the body of an async function.

    The function takes (page, document, console). The code is parsed on its
    own and grafted into the function node, so string literals spanning
    several lines keep their exact content.

    Raises:
        SyntaxError: If the code is not a valid function body
    """
    statements = compile(
        textwrap.dedent(code),
        "<eval>",
        "exec",
        flags=ast.PyCF_ONLY_AST | ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
        dont_inherit=True,
    ).body

    module = ast.parse(f"async def {_EVAL_FUNCTION}(page, document, console):\n    pass\n")
    if statements:
        module.body[0].body = statements
    ast.fix_missing_locations(module)

    namespace: dict[str, Any] = {}
    exec(compile(module, "<eval>", "exec"), namespace)
    return namespace[_EVAL_FUNCTION]


def serialize_result(result: Any) -> str:
    """JSON text of result, its string form if not valid JSON, or "undefined"."""
    if result is None:
        return "undefined"
    try:
        text = json.dumps(result, allow_nan=False)
    except (TypeError, ValueError):
        return str(result)
    return text or "undefined"


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class CommandHandlers:
    """Executes decoded commands against a page.

    Example:
        handlers = CommandHandlers(page, AgentConfig())
        response = handlers.dom_query("q1", "div.card")
        connection.send(response.to_json())
    """

    def __init__(self, page: Page, config: AgentConfig) -> None:
        """Initialize handlers.

        Args:
            page: Page to act on
            config: Agent configuration (cache-bust parameter, dom_query limits)
        """
        self._page = page
        self._config = config

    def reload(self) -> None:
        """Reload the page unconditionally."""
        log.info("Reloading page", url=self._page.location.href)
        self._page.reload()

    def css_swap(self, path: str) -> bool:
        """Hot-swap every stylesheet link that points at path.

        A link matches when its href, without query string, equals path,
        equals "/" + path, or ends with "/" + path. Matching links get a
        fresh cache-busting query. With no match the page is reloaded.

        Returns:
            True if at least one link was swapped
        """
        stamp = int(time.time() * 1000)
        param = self._config.cache_bust_param
        found = False

        for link in self._page.document.stylesheet_links():
            href = link.get("href")
            if not href:
                continue
            clean = str(href).split("?")[0]
            if clean == path or clean == "/" + path or clean.endswith("/" + path):
                link["href"] = f"{clean}?{param}={stamp}"
                found = True

        if found:
            log.debug("Stylesheet swapped", path=path)
        else:
            log.info("No stylesheet matched, reloading", path=path)
            self._page.reload()
        return found

    def inject(self, tag_name: str, source: str) -> None:
        """Append a script or style element to <head>.

        Failures are logged and swallowed so later commands still run.
        """
        try:
            self._page.document.append_to_head(tag_name, source)
            log.debug("Injected element", tag=tag_name, size=len(source))
        except Exception as e:
            log.warning("Inject failed", tag=tag_name, error=str(e))

    async def screenshot(
        self, request_id: str, width: int | None = None, height: int | None = None
    ) -> CommandResponse:
        """Render the document through SVG and respond with a base64 PNG.

        Missing dimensions use the viewport at capture time. Any failure in
        serialization, decoding or rasterization yields an empty payload.
        """
        viewport = self._page.viewport
        width = width or viewport.width
        height = height or viewport.height

        try:
            svg = render_svg(self._page.document.serialize(), width, height)
            rasterizer = self._page.rasterizer
            if rasterizer is None:
                raise RuntimeError("Page has no rasterizer")
            image = await rasterizer.rasterize(svg, width, height)
            data = encode_png(image, width, height)
        except Exception as e:
            log.warning("Screenshot failed", request_id=request_id, error=str(e))
            data = ""

        return make_screenshot_response(request_id, data)

    def dom_query(self, request_id: str, selector: str) -> CommandResponse:
        """Describe up to max_elements elements matching selector."""
        limits = self._config.dom_query
        try:
            matches = self._page.document.query_selector_all(selector)
            records = [
                element_record(tag, limits.max_text_length, limits.max_html_length)
                for tag in matches[: limits.max_elements]
            ]
        except Exception as e:
            log.debug("dom_query failed", request_id=request_id, selector=selector, error=str(e))
            return make_dom_response(request_id, {"error": _error_message(e)})

        return make_dom_response(request_id, records)

    async def eval(self, request_id: str, code: str) -> CommandResponse:
        """Run code as an async function body and respond with its result.

        Not sandboxed; intended for trusted development servers only. Code
        that raises SystemExit or KeyboardInterrupt gets an error response
        like any other failure; only cancellation propagates.
        """
        page = self._page
        try:
            function = compile_eval(code)
            result = await function(page, page.document, page.console)
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            log.warning("eval failed", request_id=request_id, error=str(e))
            body = json.dumps({"error": _error_message(e), "stack": traceback.format_exc()})
            return make_eval_response(request_id, body)

        return make_eval_response(request_id, serialize_result(result))
