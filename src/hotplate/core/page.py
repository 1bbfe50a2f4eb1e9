"""Host capability interfaces.

The agent never reaches into global state. Everything it observes or
mutates is reached through a Page, which exposes the capabilities the
agent wraps (console, fetch) and the ones it drives (document, reload,
rasterizer).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import urlsplit

if TYPE_CHECKING:
    import httpx
    from PIL import Image

    from hotplate.page.document import Document


@dataclass(frozen=True)
class Location:
    """Address of the loaded page.

    Attributes:
        href: Full page URL
        protocol: Scheme with trailing colon ("http:" or "https:")
        host: Host with optional port ("localhost:5500")
    """

    href: str
    protocol: str
    host: str

    @classmethod
    def from_url(cls, url: str) -> Location:
        """Build a location from an absolute URL.

        Raises:
            ValueError: If the URL has no scheme or host
        """
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Expected an absolute URL: {url}")
        return cls(href=url, protocol=f"{parts.scheme}:", host=parts.netloc)

    @property
    def is_secure(self) -> bool:
        """Whether the page was loaded over a secure transport."""
        return self.protocol == "https:"

    def control_url(self, path: str) -> str:
        """WebSocket URL for a path on this page's host."""
        scheme = "wss:" if self.is_secure else "ws:"
        return f"{scheme}//{self.host}{path}"


@dataclass(frozen=True)
class Viewport:
    """Viewport dimensions in CSS pixels."""

    width: int
    height: int


@runtime_checkable
class Console(Protocol):
    """Page logging entry points."""

    def log(self, *args: Any) -> None: ...

    def info(self, *args: Any) -> None: ...

    def warn(self, *args: Any) -> None: ...

    def error(self, *args: Any) -> None: ...


class Fetcher(Protocol):
    """Outbound request capability of the page."""

    async def __call__(self, url: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        """Perform a request and resolve once response headers arrive.

        Raises:
            Exception: Any transport-level failure
        """
        ...


class Rasterizer(Protocol):
    """Renders an SVG document to a bitmap."""

    async def rasterize(self, svg: str, width: int, height: int) -> Image.Image:
        """Decode and render svg at the given size.

        Raises:
            Exception: If the SVG cannot be decoded or rendered
        """
        ...


@runtime_checkable
class Page(Protocol):
    """Interface for the page an agent runs in.

    console and fetch are plain attributes so interceptor registration
    can replace them with wrapping implementations.
    """

    console: Console
    fetch: Fetcher
    rasterizer: Rasterizer | None

    @property
    def location(self) -> Location:
        """Current page address."""
        ...

    @property
    def user_agent(self) -> str:
        """User-agent string of the host."""
        ...

    @property
    def viewport(self) -> Viewport:
        """Current viewport dimensions."""
        ...

    @property
    def document(self) -> Document:
        """Currently loaded document."""
        ...

    def reload(self) -> None:
        """Request a full reload.

        Ends the current page context; the host decides when the new
        context starts.
        """
        ...
