"""Page agent: control connection, interceptors and command handlers.

This package provides the Agent that runs inside a page and:
- Keeps one self-healing WebSocket to the server's /__lr endpoint
- Mirrors console output, uncaught errors and requests as telemetry
- Executes reload, css-swap, inject, screenshot, dom_query and eval commands
"""

from hotplate.agent.agent import Agent
from hotplate.agent.connection import Connection, ConnectionState
from hotplate.agent.handlers import CommandHandlers
from hotplate.agent.interceptors import ErrorHooks, InterceptedConsole, InterceptedFetch

__all__ = [
    "Agent",
    "CommandHandlers",
    "Connection",
    "ConnectionState",
    "ErrorHooks",
    "InterceptedConsole",
    "InterceptedFetch",
]
