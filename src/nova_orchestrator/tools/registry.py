"""Tool registry and the per-run context handed to tool handlers."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from nova_orchestrator.logging import get_logger

if TYPE_CHECKING:
    from nova_orchestrator.collaborators import (
        ActionHistoryStore,
        BlockLibraryStore,
        BrandStore,
        ContentStore,
        DeliveryConfigStore,
        Embedder,
        EmbedQueue,
        SearchIndex,
        TelemetryStore,
        VectorIndex,
    )
    from nova_orchestrator.llm.base import LLMClient

logger = get_logger("tools")

ToolHandler = Callable[[dict[str, Any], "ToolContext"], Awaitable[str]]


@dataclass
class ToolContext:
    """Collaborators and identity available to a tool handler for one run."""

    user_id: str
    project_id: str
    content: ContentStore | None = None
    search: SearchIndex | None = None
    vectors: VectorIndex | None = None
    embedder: Embedder | None = None
    brand: BrandStore | None = None
    blocks: BlockLibraryStore | None = None
    telemetry: TelemetryStore | None = None
    delivery: DeliveryConfigStore | None = None
    history: ActionHistoryStore | None = None
    embed_queue: EmbedQueue | None = None
    llm: LLMClient | None = None

    def require(self, attr: str) -> Any:
        """Return a collaborator or raise if the run was not given one."""
        value = getattr(self, attr)
        if value is None:
            raise RuntimeError(f"{attr} is not configured")
        return value

    async def log_action(
        self, action_type: str, description: str, input: dict[str, Any]
    ) -> None:
        """Record a tool-level action. Failures are logged, never raised."""
        if self.history is None:
            return
        try:
            await asyncio.to_thread(
                self.history.add_action,
                self.user_id,
                self.project_id,
                action_type,
                description,
                input,
            )
        except Exception as e:
            logger.warning("Failed to log %s action: %s", action_type, e)


@dataclass(frozen=True)
class ToolDefinition:
    """Tool definition for LLM tool use."""

    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler
    mutating: bool = False

    def to_api(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


def object_schema(
    properties: dict[str, dict[str, Any]], required: list[str] | None = None
) -> dict[str, Any]:
    """Build an ``{"type": "object"}`` input schema."""
    return {"type": "object", "properties": properties, "required": required or []}


class ToolRegistry:
    """Registry mapping tool names to definitions."""

    def __init__(self, tools: list[ToolDefinition] | None = None) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def is_mutating(self, name: str) -> bool:
        tool = self._tools.get(name)
        return bool(tool and tool.mutating)

    def definitions(self) -> list[dict[str, Any]]:
        """Tool catalog in Anthropic tool-use format."""
        return [t.to_api() for t in self._tools.values()]

    async def dispatch(self, name: str, input: dict[str, Any], ctx: ToolContext) -> str:
        """Run a tool by name. Handler exceptions propagate to the caller."""
        tool = self._tools.get(name)
        if tool is None:
            return f"Unknown tool: {name}"
        logger.debug("Dispatching %s", name)
        return await tool.handler(input, ctx)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
