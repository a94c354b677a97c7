"""
Base language-model client interface.

The orchestrator needs a single primitive: given a system prompt, a message
history and a tool catalog, return either final text or tool-use requests.
Messages use the Anthropic Messages wire shape (``role`` plus ``content``
that is a string or a list of typed blocks).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: str = "text"

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    input: dict[str, Any]
    type: str = "tool_use"

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


ContentBlock = TextBlock | ToolUseBlock


@dataclass
class LLMResponse:
    """One model turn."""

    content: list[ContentBlock] = field(default_factory=list)
    stop_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """All text blocks joined with newlines."""
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def is_final(self) -> bool:
        return self.stop_reason == "end_turn" or not self.tool_uses

    def to_message(self) -> dict[str, Any]:
        """The assistant message to append to history."""
        return {"role": "assistant", "content": [b.to_dict() for b in self.content]}


class LLMClient(ABC):
    """
    Abstract language-model client.

    Example implementation:

        class EchoClient(LLMClient):
            async def complete(self, system, messages, tools=None, **kwargs):
                return LLMResponse(content=[TextBlock(messages[-1]["content"])],
                                   stop_reason="end_turn")
    """

    @abstractmethod
    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Run one model turn.

        Args:
            system: System prompt
            messages: Conversation history
            tools: Tool catalog (name, description, input_schema)
            tool_choice: Optional forced tool selection
            max_tokens: Override for the response token limit

        Raises:
            ProviderError: If the provider call fails
        """
        ...
