"""Shared pytest fixtures for nova-orchestrator tests."""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any

import pytest

from nova_orchestrator.config import OrchestratorConfig
from nova_orchestrator.content_store import LocalContentStore
from nova_orchestrator.llm.base import LLMClient, LLMResponse, TextBlock, ToolUseBlock
from nova_orchestrator.sse import SSEEvent, SSEWriter, parse_frames
from nova_orchestrator.storage import Storage
from nova_orchestrator.tools import create_default_registry
from nova_orchestrator.tools.registry import ToolContext, ToolRegistry

_tool_ids = itertools.count(1)


def text_response(text: str) -> LLMResponse:
    """A final model turn."""
    return LLMResponse(content=[TextBlock(text)], stop_reason="end_turn")


def tool_response(*calls: tuple[str, dict[str, Any]], text: str = "") -> LLMResponse:
    """A model turn requesting the given ``(name, input)`` tool calls."""
    content: list[Any] = [TextBlock(text)] if text else []
    for name, tool_input in calls:
        content.append(ToolUseBlock(id=f"toolu_{next(_tool_ids)}", name=name, input=tool_input))
    return LLMResponse(content=content, stop_reason="tool_use")


class ScriptedLLM(LLMClient):
    """LLM fake that replays a fixed script of responses (or raises exceptions)."""

    def __init__(self, script: list[LLMResponse | Exception] | None = None) -> None:
        self.script = list(script or [])
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        self.calls.append(
            {
                "system": system,
                "messages": list(messages),
                "tools": tools,
                "tool_choice": tool_choice,
            }
        )
        if not self.script:
            return text_response("Done.")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class RecordingSink:
    """SSE sink that keeps every frame written."""

    def __init__(self) -> None:
        self.frames: list[bytes] = []

    def __call__(self, frame: bytes) -> None:
        self.frames.append(frame)

    @property
    def events(self) -> list[SSEEvent]:
        return parse_frames(b"".join(self.frames).decode())

    @property
    def names(self) -> list[str]:
        return [e.event for e in self.events]


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    return Storage(tmp_path / "nova.db")


@pytest.fixture
def content_store(tmp_path: Path) -> LocalContentStore:
    return LocalContentStore(tmp_path / "content")


@pytest.fixture
def registry() -> ToolRegistry:
    return create_default_registry()


@pytest.fixture
def tool_ctx(storage: Storage, content_store: LocalContentStore) -> ToolContext:
    return ToolContext(
        user_id="user-1",
        project_id="proj-1",
        content=content_store,
        search=storage,
        brand=storage,
        blocks=storage,
        telemetry=storage,
        delivery=storage,
        history=storage,
    )


@pytest.fixture
def config(tmp_path: Path) -> OrchestratorConfig:
    return OrchestratorConfig(
        db_path=tmp_path / "nova.db",
        content_root=tmp_path / "content",
        llm_timeout_seconds=5.0,
        tool_timeout_seconds=5.0,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def writer(sink: RecordingSink) -> SSEWriter:
    return SSEWriter(sink=sink)
