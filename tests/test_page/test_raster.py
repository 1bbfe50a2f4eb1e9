"""Tests for the browser-backed rasterizer."""

from __future__ import annotations

import asyncio
import base64
from io import BytesIO
from typing import Any

import pytest
from PIL import Image

from hotplate.agent.handlers import CommandHandlers, render_svg
from hotplate.core.config import AgentConfig, PageConfig
from hotplate.core.page import Rasterizer
from hotplate.page.headless import HeadlessPage
from hotplate.page.raster import BrowserRasterizer


class FakeBrowserPage:
    """Browser tab that captures a solid blue image of its viewport."""

    def __init__(self, viewport: dict[str, int]) -> None:
        self.viewport = viewport
        self.content = ""
        self.screenshot_kwargs: dict[str, Any] = {}
        self.closed = False

    async def set_content(self, html: str) -> None:
        self.content = html

    async def screenshot(self, **kwargs: Any) -> bytes:
        self.screenshot_kwargs = kwargs
        size = (self.viewport["width"], self.viewport["height"])
        buffer = BytesIO()
        Image.new("RGB", size, "blue").save(buffer, format="PNG")
        return buffer.getvalue()

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Browser that hands out recording tabs."""

    def __init__(self) -> None:
        self.pages: list[FakeBrowserPage] = []
        self.closed = False

    async def new_page(self, viewport: dict[str, int]) -> FakeBrowserPage:
        page = FakeBrowserPage(viewport)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakeBrowserType:
    """Browser type that records launches."""

    def __init__(self, fail: bool = False) -> None:
        self.launches: list[dict[str, Any]] = []
        self.browsers: list[FakeBrowser] = []
        self.fail = fail

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        self.launches.append(kwargs)
        if self.fail:
            raise RuntimeError("Executable doesn't exist")
        browser = FakeBrowser()
        self.browsers.append(browser)
        return browser


class FakePlaywright:
    """Stand-in for a started Playwright instance."""

    def __init__(self, fail: bool = False) -> None:
        self.chromium = FakeBrowserType(fail)
        self.firefox = FakeBrowserType(fail)
        self.webkit = FakeBrowserType(fail)
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


class FakeFactory:
    """Callable matching async_playwright(): returns an object with start()."""

    def __init__(self, fail: bool = False) -> None:
        self.instances: list[FakePlaywright] = []
        self.fail = fail

    def __call__(self) -> FakeFactory:
        return self

    async def start(self) -> FakePlaywright:
        playwright = FakePlaywright(self.fail)
        self.instances.append(playwright)
        return playwright


@pytest.fixture
def factory() -> FakeFactory:
    """Playwright factory with no real browser behind it."""
    return FakeFactory()


class TestBrowserRasterizer:
    """Tests for BrowserRasterizer."""

    def test_satisfies_rasterizer_protocol(self, factory: FakeFactory) -> None:
        """BrowserRasterizer has the rasterize signature the handlers call."""
        rasterizer: Rasterizer = BrowserRasterizer(playwright_factory=factory)
        assert callable(rasterizer.rasterize)

    def test_unknown_browser_rejected(self) -> None:
        """Only Playwright browser types are accepted."""
        with pytest.raises(ValueError, match="Unknown browser"):
            BrowserRasterizer("netscape")

    @pytest.mark.asyncio
    async def test_rasterize_renders_svg(self, factory: FakeFactory) -> None:
        """The SVG is loaded into a tab of the requested size and captured."""
        rasterizer = BrowserRasterizer(playwright_factory=factory)
        svg = render_svg("<p>hi</p>", 120, 80)

        image = await rasterizer.rasterize(svg, 120, 80)

        assert image.size == (120, 80)
        tab = factory.instances[0].chromium.browsers[0].pages[0]
        assert tab.viewport == {"width": 120, "height": 80}
        assert svg in tab.content
        assert tab.screenshot_kwargs["type"] == "png"
        assert tab.screenshot_kwargs["clip"] == {"x": 0, "y": 0, "width": 120, "height": 80}
        assert tab.closed

    @pytest.mark.asyncio
    async def test_browser_launched_once(self, factory: FakeFactory) -> None:
        """Concurrent captures share one headless browser."""
        rasterizer = BrowserRasterizer(playwright_factory=factory)

        await asyncio.gather(
            rasterizer.rasterize("<svg/>", 10, 10),
            rasterizer.rasterize("<svg/>", 20, 20),
        )

        assert len(factory.instances) == 1
        browser_type = factory.instances[0].chromium
        assert browser_type.launches == [{"headless": True}]
        assert len(browser_type.browsers[0].pages) == 2
        assert rasterizer.is_started

    @pytest.mark.asyncio
    async def test_selected_browser_type(self, factory: FakeFactory) -> None:
        """The configured browser type is the one launched."""
        rasterizer = BrowserRasterizer("firefox", playwright_factory=factory)
        await rasterizer.rasterize("<svg/>", 10, 10)

        assert factory.instances[0].firefox.launches
        assert not factory.instances[0].chromium.launches

    @pytest.mark.asyncio
    async def test_close_stops_browser(self, factory: FakeFactory) -> None:
        """close() shuts the browser and Playwright down."""
        rasterizer = BrowserRasterizer(playwright_factory=factory)
        await rasterizer.start()
        await rasterizer.close()

        playwright = factory.instances[0]
        assert playwright.chromium.browsers[0].closed
        assert playwright.stopped
        assert not rasterizer.is_started

    @pytest.mark.asyncio
    async def test_close_before_start(self, factory: FakeFactory) -> None:
        """Closing an unused rasterizer does nothing."""
        rasterizer = BrowserRasterizer(playwright_factory=factory)
        await rasterizer.close()
        assert factory.instances == []

    @pytest.mark.asyncio
    async def test_launch_failure_stops_playwright(self) -> None:
        """A missing browser binary raises and leaves nothing running."""
        factory = FakeFactory(fail=True)
        rasterizer = BrowserRasterizer(playwright_factory=factory)

        with pytest.raises(RuntimeError):
            await rasterizer.start()

        assert factory.instances[0].stopped
        assert not rasterizer.is_started


class TestScreenshotPipeline:
    """Tests for screenshots rendered through the browser rasterizer."""

    @pytest.mark.asyncio
    async def test_base64_png_payload(self, page: Any, factory: FakeFactory) -> None:
        """The handler answers with the browser capture as base64 PNG."""
        page.rasterizer = BrowserRasterizer(playwright_factory=factory)
        handlers = CommandHandlers(page, AgentConfig())

        response = await handlers.screenshot("s1", 64, 48)

        image = Image.open(BytesIO(base64.b64decode(response.body)))
        assert image.format == "PNG"
        assert image.size == (64, 48)
        assert image.convert("RGB").getpixel((5, 5)) == (0, 0, 255)

    @pytest.mark.asyncio
    async def test_launch_failure_gives_empty_payload(self, page: Any) -> None:
        """No browser installed means an empty payload, not an error."""
        page.rasterizer = BrowserRasterizer(playwright_factory=FakeFactory(fail=True))
        handlers = CommandHandlers(page, AgentConfig())

        response = await handlers.screenshot("s2", 10, 10)
        assert response.body == ""


class TestHeadlessPageScreenshots:
    """Tests for the headless host's screenshot setting."""

    def test_disabled_by_default(self) -> None:
        """Without the setting the page has no rasterizer."""
        assert HeadlessPage("http://localhost:5500/").rasterizer is None

    @pytest.mark.asyncio
    async def test_enabled_by_config(self) -> None:
        """The setting attaches a browser rasterizer, released on close."""
        page = HeadlessPage(
            "http://localhost:5500/", PageConfig(screenshots=True, browser="webkit")
        )

        assert isinstance(page.rasterizer, BrowserRasterizer)
        assert not page.rasterizer.is_started
        await page.close()


@pytest.mark.asyncio
async def test_real_browser_capture() -> None:
    """Renders through an installed Chromium; skipped when none is available."""
    rasterizer = BrowserRasterizer()
    try:
        try:
            await rasterizer.start()
        except Exception as e:
            pytest.skip(f"No Playwright browser available: {e}")

        svg = render_svg(
            '<div style="width:80px;height:60px;background:rgb(255,0,0)"></div>', 80, 60
        )
        image = await rasterizer.rasterize(svg, 80, 60)

        assert image.size == (80, 60)
        assert image.convert("RGB").getpixel((10, 10)) == (255, 0, 0)
    finally:
        await rasterizer.close()
