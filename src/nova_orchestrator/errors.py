"""Exception types raised by the orchestrator."""

from __future__ import annotations


class NovaError(Exception):
    """Base class for orchestrator errors."""


class ConfigError(NovaError):
    """Raised when configuration is missing or invalid."""


class ProviderError(NovaError):
    """Raised when the language-model or embedding provider fails.

    Fatal to a run: the stream terminates with an ``error`` event.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlanningError(NovaError):
    """Raised when a plan could not be produced. Recovered by direct execution."""


class ToolExecutionError(NovaError):
    """Raised when a tool handler fails and the run is configured to abort on it."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class RunCancelledError(NovaError):
    """Raised inside a run once its cancellation signal has been observed."""
