"""Configuration schema and loading for the Hotplate page agent.

This module defines the Pydantic models for YAML configuration files.
Every field has a default, so an empty file (or no file at all) yields the
behavior the Hotplate server expects from its injected client.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from hotplate import __version__


class ConsoleLevel(str, Enum):
    """Console entry points that can be intercepted."""

    LOG = "log"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DomQueryConfig(BaseModel):
    """Limits applied to dom_query responses."""

    max_elements: int = 200
    """Maximum number of matched elements reported."""

    max_text_length: int = 500
    """Text content is truncated to this many characters."""

    max_html_length: int = 1000
    """Inner markup is truncated to this many characters."""

    @field_validator("max_elements", "max_text_length", "max_html_length")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("dom_query limits must be positive")
        return v


class AgentConfig(BaseModel):
    """Control channel and interception settings."""

    endpoint_path: str = "/__lr"
    """WebSocket path on the page's own host."""

    reconnect_delay: float = 1.0
    """Fixed delay in seconds before reconnecting after a close or error."""

    console_levels: list[ConsoleLevel] = Field(
        default_factory=lambda: [ConsoleLevel.WARN, ConsoleLevel.ERROR]
    )
    """Console levels forwarded as telemetry."""

    cache_bust_param: str = "_lr"
    """Query parameter appended to hot-swapped stylesheet URLs."""

    dom_query: DomQueryConfig = Field(default_factory=DomQueryConfig)
    """Limits for dom_query responses."""

    @field_validator("endpoint_path")
    @classmethod
    def _validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"endpoint_path must start with '/': {v}")
        return v

    @field_validator("reconnect_delay")
    @classmethod
    def _validate_delay(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("reconnect_delay must be positive")
        return v

    @field_validator("cache_bust_param")
    @classmethod
    def _validate_param(cls, v: str) -> str:
        if not v or any(c in v for c in "?&=#"):
            raise ValueError(f"Invalid cache_bust_param: {v!r}")
        return v


class PageConfig(BaseModel):
    """Settings for the headless page host."""

    width: int = 1280
    """Viewport width reported in the connect identity."""

    height: int = 720
    """Viewport height reported in the connect identity."""

    user_agent: str = f"hotplate-agent/{__version__}"
    """User-agent string sent with page loads and the connect identity."""

    timeout: float = 10.0
    """HTTP timeout in seconds for page loads."""

    screenshots: bool = False
    """Render screenshots in a headless browser; without it they answer empty."""

    browser: str = "chromium"
    """Playwright browser type used for screenshots."""

    @field_validator("width", "height")
    @classmethod
    def _validate_dimension(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("viewport dimensions must be positive")
        return v

    @field_validator("browser")
    @classmethod
    def _validate_browser(cls, v: str) -> str:
        if v not in ("chromium", "firefox", "webkit"):
            raise ValueError("browser must be one of chromium, firefox, webkit")
        return v


class HotplateConfig(BaseModel):
    """Root agent configuration."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    """Control channel settings."""

    page: PageConfig = Field(default_factory=PageConfig)
    """Headless page settings."""

    @classmethod
    def from_yaml(cls, path: Path | str) -> HotplateConfig:
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Parsed configuration

        Raises:
            FileNotFoundError: If file doesn't exist
            pydantic.ValidationError: If configuration invalid
        """
        import yaml

        path = Path(path)
        with path.open() as f:
            data = yaml.safe_load(f)

        return cls.model_validate(data or {})
