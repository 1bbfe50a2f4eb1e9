"""Browser-backed rasterizer.

Renders the SVG snapshot built by the screenshot handler in a headless
Playwright browser and returns the capture as a PIL image. The browser is
launched on first use and reused for every later capture.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from io import BytesIO
from typing import Any

import structlog
from PIL import Image
from playwright.async_api import async_playwright

log = structlog.get_logger()

BROWSERS = ("chromium", "firefox", "webkit")

_PAGE_TEMPLATE = '<!DOCTYPE html><html><body style="margin:0">{svg}</body></html>'


class BrowserRasterizer:
    """Rasterizer that draws SVG in a headless browser.

    Example:
        rasterizer = BrowserRasterizer()
        page.rasterizer = rasterizer
        ...
        await rasterizer.close()
    """

    def __init__(
        self,
        browser_name: str = "chromium",
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        """Initialize the rasterizer.

        Args:
            browser_name: Playwright browser type (chromium, firefox or webkit)
            playwright_factory: Returns a Playwright context manager; replaceable in tests

        Raises:
            ValueError: If browser_name is not a Playwright browser type
        """
        if browser_name not in BROWSERS:
            raise ValueError(f"Unknown browser: {browser_name}")
        self._browser_name = browser_name
        self._factory = playwright_factory
        self._playwright: Any = None
        self._browser: Any = None
        self._lock = asyncio.Lock()

    @property
    def is_started(self) -> bool:
        """Whether the browser is running."""
        return self._browser is not None

    async def start(self) -> None:
        """Launch the browser if it is not running yet.

        Raises:
            Exception: If Playwright or the browser binary is unavailable
        """
        async with self._lock:
            if self._browser is not None:
                return
            self._playwright = await self._factory().start()
            try:
                browser_type = getattr(self._playwright, self._browser_name)
                self._browser = await browser_type.launch(headless=True)
            except Exception:
                await self._playwright.stop()
                self._playwright = None
                raise
            log.info("Rasterizer browser launched", browser=self._browser_name)

    async def rasterize(self, svg: str, width: int, height: int) -> Image.Image:
        """Render svg in a width x height viewport and capture it."""
        await self.start()

        page = await self._browser.new_page(viewport={"width": width, "height": height})
        try:
            await page.set_content(_PAGE_TEMPLATE.format(svg=svg))
            data = await page.screenshot(
                type="png",
                clip={"x": 0, "y": 0, "width": width, "height": height},
            )
        finally:
            await page.close()

        image = Image.open(BytesIO(data))
        image.load()
        return image

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
