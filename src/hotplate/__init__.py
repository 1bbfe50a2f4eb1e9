"""Hotplate - page agent for the Hotplate live-reload server.

Runs inside a loaded page and keeps a control channel to the development
server: telemetry (console, errors, requests) goes up, commands (reload,
stylesheet hot-swap, injection, DOM query, eval, screenshot) come down.
"""

__version__ = "0.1.0"

# Configuration
from hotplate.core.config import AgentConfig, HotplateConfig, PageConfig

# Host interfaces
from hotplate.core.page import Location, Page, Viewport

# Agent
from hotplate.agent import Agent, Connection, ConnectionState

# Pages
from hotplate.page import Document, HeadlessPage

# Protocol
from hotplate.protocol import CommandResponse, TelemetryEvent, decode_command

__all__ = [
    # Version
    "__version__",
    # Configuration
    "AgentConfig",
    "HotplateConfig",
    "PageConfig",
    # Host interfaces
    "Location",
    "Page",
    "Viewport",
    # Agent
    "Agent",
    "Connection",
    "ConnectionState",
    # Pages
    "Document",
    "HeadlessPage",
    # Protocol
    "CommandResponse",
    "TelemetryEvent",
    "decode_command",
]
