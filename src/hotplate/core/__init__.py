"""Core configuration and host interfaces."""

from hotplate.core.config import (
    AgentConfig,
    ConsoleLevel,
    DomQueryConfig,
    HotplateConfig,
    PageConfig,
)
from hotplate.core.page import Console, Fetcher, Location, Page, Rasterizer, Viewport

__all__ = [
    # Configuration
    "AgentConfig",
    "ConsoleLevel",
    "DomQueryConfig",
    "HotplateConfig",
    "PageConfig",
    # Host interfaces
    "Console",
    "Fetcher",
    "Location",
    "Page",
    "Rasterizer",
    "Viewport",
]
