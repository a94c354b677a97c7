"""Language-model clients."""

from nova_orchestrator.llm.base import (
    ContentBlock,
    LLMClient,
    LLMResponse,
    TextBlock,
    ToolUseBlock,
)

__all__ = [
    "ContentBlock",
    "LLMClient",
    "LLMResponse",
    "TextBlock",
    "ToolUseBlock",
]
