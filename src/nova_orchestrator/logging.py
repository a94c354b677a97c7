"""
Logging for the orchestrator.

Every module logs through a child of the ``nova_orchestrator`` logger.
Run-scoped messages go through ``run_logger`` so each line names the user
and project it belongs to, which keeps interleaved concurrent runs readable.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

_root_logger = logging.getLogger("nova_orchestrator")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Provider SDKs log every request at INFO.
NOISY_LIBRARIES = ("httpx", "httpcore", "anthropic", "openai")


def _to_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: str | int = "INFO",
    format: str | None = None,
    stream: TextIO | None = None,
    file: str | None = None,
    quiet_libraries: bool = True,
) -> None:
    """
    Configure logging for the orchestrator.

    Args:
        level: Log level name or number
        format: Custom log format string
        stream: Output stream (defaults to stderr)
        file: Optional file path to also write logs to
        quiet_libraries: Hold HTTP and provider SDK loggers at WARNING
            unless ``level`` is DEBUG

    Example:
        setup_logging("DEBUG")
        setup_logging("INFO", file="nova.log")
    """
    level = _to_level(level)
    _root_logger.setLevel(level)
    _root_logger.handlers.clear()

    formatter = logging.Formatter(format or DEFAULT_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if file:
        handlers.append(logging.FileHandler(file))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        _root_logger.addHandler(handler)

    if quiet_libraries:
        library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
        for name in NOISY_LIBRARIES:
            logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    """Child logger for a submodule, e.g. ``get_logger("tools.content")``."""
    if name.startswith("nova_orchestrator."):
        return logging.getLogger(name)
    return logging.getLogger(f"nova_orchestrator.{name}")


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefixes each message with ``[user/project]``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = self.extra or {}
        return f"[{extra['user_id']}/{extra['project_id']}] {msg}", kwargs


def run_logger(logger: logging.Logger, user_id: str, project_id: str) -> RunLoggerAdapter:
    return RunLoggerAdapter(logger, {"user_id": user_id, "project_id": project_id})


def set_level(level: str | int) -> None:
    """Set the log level for the orchestrator."""
    _root_logger.setLevel(_to_level(level))
