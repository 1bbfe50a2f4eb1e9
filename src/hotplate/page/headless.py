"""Headless page host.

HeadlessPage loads a URL over httpx into a Document and implements the
Page interface, so an Agent can follow a Hotplate server without a
browser. Screenshots are rendered by a Playwright browser when enabled in
PageConfig and answer with an empty payload otherwise.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

import httpx
import structlog

from hotplate.core.config import PageConfig
from hotplate.core.page import Location, Viewport
from hotplate.page.document import Document
from hotplate.page.raster import BrowserRasterizer

if TYPE_CHECKING:
    from hotplate.core.page import Console, Fetcher, Rasterizer


log = structlog.get_logger()


class StructlogConsole:
    """Page console that writes to the structlog logger."""

    def __init__(self) -> None:
        self._log = structlog.get_logger().bind(source="page")

    @staticmethod
    def _join(args: tuple[Any, ...]) -> str:
        return " ".join(str(a) for a in args)

    def log(self, *args: Any) -> None:
        self._log.info("console.log", msg=self._join(args))

    def info(self, *args: Any) -> None:
        self._log.info("console.info", msg=self._join(args))

    def warn(self, *args: Any) -> None:
        self._log.warning("console.warn", msg=self._join(args))

    def error(self, *args: Any) -> None:
        self._log.error("console.error", msg=self._join(args))


class HeadlessPage:
    """Page backed by an HTTP client and a parsed Document.

    Example:
        page = HeadlessPage("http://localhost:5500/")
        await page.load()
        agent = Agent(page)
        await agent.start()
        await page.wait_for_navigation()  # until a reload is requested
    """

    def __init__(
        self,
        url: str,
        config: PageConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the page.

        Args:
            url: Absolute page URL
            config: Viewport, user-agent, timeout and screenshot settings
            client: HTTP client to use; one is created (and owned) if omitted

        Raises:
            ValueError: If url is not absolute
        """
        self._location = Location.from_url(url)
        self._config = config or PageConfig()
        self._viewport = Viewport(self._config.width, self._config.height)
        self._client = client
        self._owns_client = client is None
        self._document = Document()
        self._navigation = asyncio.Event()
        self._loads = 0

        self.console: Console = StructlogConsole()
        self.fetch: Fetcher = self._fetch
        self.rasterizer: Rasterizer | None = None
        self._raster: BrowserRasterizer | None = None
        if self._config.screenshots:
            self._raster = BrowserRasterizer(self._config.browser)
            self.rasterizer = self._raster

    @property
    def location(self) -> Location:
        return self._location

    @property
    def user_agent(self) -> str:
        return self._config.user_agent

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def document(self) -> Document:
        return self._document

    @property
    def loads(self) -> int:
        """Number of completed loads."""
        return self._loads

    @property
    def navigation_requested(self) -> bool:
        """Whether reload() was called since the last load."""
        return self._navigation.is_set()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._config.user_agent},
                timeout=self._config.timeout,
                follow_redirects=True,
            )
        return self._client

    async def _fetch(self, url: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        target = urljoin(self._location.href, str(url))
        return await self._ensure_client().request(method, target, **kwargs)

    async def load(self) -> None:
        """Fetch the page through page.fetch and replace the document.

        Raises:
            httpx.HTTPError: If the page cannot be fetched
        """
        self._navigation.clear()
        response = await self.fetch(self._location.href)
        self._document = Document(response.text)
        self._loads += 1
        log.info("Page loaded", url=self._location.href, status=response.status_code)

    def reload(self) -> None:
        """Request a reload; the host loop reloads on wait_for_navigation()."""
        log.info("Reload requested", url=self._location.href)
        self._navigation.set()

    async def wait_for_navigation(self) -> None:
        """Wait until reload() is called."""
        await self._navigation.wait()

    async def close(self) -> None:
        """Release the HTTP client if this page created it, and the screenshot browser."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        self._client = None

        if self._raster is not None:
            await self._raster.close()
