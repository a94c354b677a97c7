"""Tests for the Anthropic client wrapper."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from nova_orchestrator.errors import ProviderError
from nova_orchestrator.llm.anthropic import AnthropicClient
from nova_orchestrator.llm.base import TextBlock, ToolUseBlock

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _sdk_client(response=None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=response, side_effect=error)
    return client


def _sdk_response(*blocks, stop_reason: str = "end_turn") -> SimpleNamespace:
    return SimpleNamespace(
        content=list(blocks),
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=12, output_tokens=5),
    )


class TestAnthropicClient:
    @pytest.mark.asyncio
    async def test_converts_blocks(self) -> None:
        sdk = _sdk_client(
            _sdk_response(
                SimpleNamespace(type="text", text="Listing pages"),
                SimpleNamespace(type="tool_use", id="toolu_1", name="list_pages", input={"path": "/en"}),
                stop_reason="tool_use",
            )
        )
        client = AnthropicClient(client=sdk, model="claude-test", max_tokens=256)

        response = await client.complete(
            system="You are Nova.",
            messages=[{"role": "user", "content": "list /en"}],
            tools=[{"name": "list_pages", "description": "", "input_schema": {}}],
        )

        assert response.content == [
            TextBlock("Listing pages"),
            ToolUseBlock("toolu_1", "list_pages", {"path": "/en"}),
        ]
        assert response.stop_reason == "tool_use"
        assert not response.is_final
        assert response.usage == {"input_tokens": 12, "output_tokens": 5}

        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 256
        assert kwargs["system"] == "You are Nova."
        assert "tool_choice" not in kwargs

    @pytest.mark.asyncio
    async def test_forced_tool_and_token_override(self) -> None:
        sdk = _sdk_client(_sdk_response(SimpleNamespace(type="text", text="ok")))
        client = AnthropicClient(client=sdk)

        await client.complete(
            system="",
            messages=[{"role": "user", "content": "plan"}],
            tool_choice={"type": "tool", "name": "create_plan"},
            max_tokens=1024,
        )

        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": "create_plan"}
        assert kwargs["max_tokens"] == 1024
        assert "system" not in kwargs
        assert "tools" not in kwargs

    @pytest.mark.asyncio
    async def test_status_error_becomes_provider_error(self) -> None:
        error = anthropic.APIStatusError(
            "overloaded", response=httpx.Response(529, request=_REQUEST), body=None
        )
        client = AnthropicClient(client=_sdk_client(error=error))

        with pytest.raises(ProviderError) as exc_info:
            await client.complete(system="s", messages=[{"role": "user", "content": "x"}])

        assert exc_info.value.status_code == 529

    @pytest.mark.asyncio
    async def test_connection_error_becomes_provider_error(self) -> None:
        client = AnthropicClient(
            client=_sdk_client(error=anthropic.APIConnectionError(request=_REQUEST))
        )

        with pytest.raises(ProviderError):
            await client.complete(system="s", messages=[{"role": "user", "content": "x"}])
