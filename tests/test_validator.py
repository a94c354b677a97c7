"""Tests for post-run validation."""

from __future__ import annotations

import pytest

from conftest import ScriptedLLM, text_response
from nova_orchestrator.errors import ProviderError
from nova_orchestrator.models import Plan, PlanStep, ToolCall
from nova_orchestrator.tools.registry import ToolRegistry
from nova_orchestrator.validator import Validator


def _call(name: str, status: str = "success", result: str = "ok") -> ToolCall:
    return ToolCall(name, {"path": "/a"}, result, status)  # type: ignore[arg-type]


class TestShouldValidate:
    def test_read_only_runs_skip_validation(self, registry: ToolRegistry) -> None:
        validator = Validator(registry)
        assert not validator.should_validate([_call("list_pages"), _call("read_page")])
        assert not validator.should_validate([])

    def test_any_mutation_triggers_validation(self, registry: ToolRegistry) -> None:
        validator = Validator(registry)
        assert validator.should_validate([_call("list_pages"), _call("create_page")])


class TestValidate:
    @pytest.mark.asyncio
    async def test_baseline_passes_without_errors(self, registry: ToolRegistry) -> None:
        result = await Validator(registry).validate("done", [_call("create_page")])
        assert result.passed
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_baseline_reports_failed_calls(self, registry: ToolRegistry) -> None:
        calls = [_call("create_page", "error", "Error: disk full"), _call("read_page")]
        result = await Validator(registry).validate("done", calls)
        assert not result.passed
        assert result.issues == ["create_page failed: Error: disk full"]

    @pytest.mark.asyncio
    async def test_small_runs_skip_model_review(self, registry: ToolRegistry) -> None:
        llm = ScriptedLLM()
        await Validator(registry, llm).validate("done", [_call("create_page")])
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_substantial_runs_get_model_review(self, registry: ToolRegistry) -> None:
        llm = ScriptedLLM([
            text_response(
                '```json\n{"passed": false, "issues": ["Missing nav link"], '
                '"suggestions": ["Add the page to the nav"]}\n```'
            )
        ])
        calls = [_call("create_page"), _call("copy_page"), _call("set_delivery_mode")]

        result = await Validator(registry, llm).validate("done", calls)

        assert len(llm.calls) == 1
        assert "create_page: success" in llm.calls[0]["messages"][0]["content"]
        assert not result.passed
        assert result.issues == ["Missing nav link"]
        assert result.suggestions == ["Add the page to the nav"]

    @pytest.mark.asyncio
    async def test_plan_flag_requests_model_review(self, registry: ToolRegistry) -> None:
        llm = ScriptedLLM([text_response('{"passed": true, "issues": [], "suggestions": []}')])
        plan = Plan("Publish", (PlanStep("1", "Create"),), requires_validation=True)

        result = await Validator(registry, llm).validate("done", [_call("create_page")], plan)

        assert result.passed
        assert "Plan: Publish" in llm.calls[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_tool_errors_survive_model_approval(self, registry: ToolRegistry) -> None:
        llm = ScriptedLLM([text_response('{"passed": true, "issues": []}')])
        calls = [_call("create_page", "error", "Error: boom"), _call("copy_page"), _call("move_page")]

        result = await Validator(registry, llm).validate("done", calls)

        assert not result.passed
        assert result.issues == ["create_page failed: Error: boom"]

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back_to_baseline(self, registry: ToolRegistry) -> None:
        llm = ScriptedLLM([ProviderError("overloaded")])
        calls = [_call("create_page"), _call("copy_page"), _call("move_page")]

        result = await Validator(registry, llm).validate("done", calls)

        assert result.passed
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_non_json_review_falls_back_to_baseline(self, registry: ToolRegistry) -> None:
        llm = ScriptedLLM([text_response("Looks fine to me.")])
        calls = [_call("create_page"), _call("copy_page"), _call("move_page")]

        result = await Validator(registry, llm).validate("done", calls)

        assert result.passed
        assert result.suggestions == []
