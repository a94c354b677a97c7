"""
Anthropic Messages API client.
"""

from __future__ import annotations

from typing import Any

import anthropic
import httpx
from anthropic import AsyncAnthropic

from nova_orchestrator.errors import ProviderError
from nova_orchestrator.llm.base import ContentBlock, LLMClient, LLMResponse, TextBlock, ToolUseBlock
from nova_orchestrator.logging import get_logger

logger = get_logger("llm.anthropic")


class AnthropicClient(LLMClient):
    """
    ``LLMClient`` backed by ``AsyncAnthropic``.

    Example:
        client = AnthropicClient(api_key="sk-ant-...")
        response = await client.complete(
            system="You are Nova.",
            messages=[{"role": "user", "content": "List pages under /en"}],
            tools=registry.definitions(),
        )
    """

    def __init__(
        self,
        client: AsyncAnthropic | None = None,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 4096,
        timeout: float = 120.0,
    ) -> None:
        self.client = client or AsyncAnthropic(
            api_key=api_key,
            timeout=httpx.Timeout(timeout, connect=30.0),
            max_retries=2,
        )
        self.model = model
        self.max_tokens = max_tokens

    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        request_kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": messages,
        }
        if system:
            request_kwargs["system"] = system
        if tools:
            request_kwargs["tools"] = tools
        if tool_choice:
            request_kwargs["tool_choice"] = tool_choice

        try:
            response = await self.client.messages.create(**request_kwargs)
        except anthropic.APIStatusError as e:
            raise ProviderError(
                f"Anthropic API error: {e.status_code} - {e.message}",
                status_code=e.status_code,
            ) from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic API error: {e}") from e

        content: list[ContentBlock] = []
        for block in response.content:
            if block.type == "text":
                content.append(TextBlock(text=block.text))
            elif block.type == "tool_use":
                content.append(
                    ToolUseBlock(id=block.id, name=block.name, input=dict(block.input or {}))
                )

        logger.debug(
            "Anthropic turn: stop_reason=%s blocks=%d", response.stop_reason, len(content)
        )
        return LLMResponse(
            content=content,
            stop_reason=response.stop_reason,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )
