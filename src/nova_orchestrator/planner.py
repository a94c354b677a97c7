"""
Planner: decompose a multi-step prompt into an ordered plan.

The model is forced to call a ``create_plan`` tool so its output arrives as
structured input rather than free text.
"""

from __future__ import annotations

import asyncio
from typing import Any

from nova_orchestrator.context import RunContext
from nova_orchestrator.errors import PlanningError, ProviderError
from nova_orchestrator.llm.base import LLMClient
from nova_orchestrator.logging import get_logger
from nova_orchestrator.models import Plan, PlanStep
from nova_orchestrator.tools.registry import ToolDefinition
from nova_orchestrator.utils.json_parse import parse_json_list

logger = get_logger("planner")

FALLBACK_INTENT = "Execute the request directly"

PLAN_TOOL: dict[str, Any] = {
    "name": "create_plan",
    "description": "Create an execution plan for the user request.",
    "input_schema": {
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "description": "Brief description of what the plan accomplishes",
            },
            "steps": {
                "type": "string",
                "description": (
                    "JSON array of steps. Each step: "
                    "{ id: string, description: string, toolName?: string }"
                ),
            },
            "requiresValidation": {
                "type": "string",
                "description": (
                    '"true" or "false": whether results should be validated after execution'
                ),
            },
        },
        "required": ["intent", "steps", "requiresValidation"],
    },
}

PLANNER_SYSTEM_PROMPT = """You are a planning assistant for an AI CMS. Break down user requests into concrete steps.

Available tools:
{tool_summary}

Context:
- {project_info}
- Recent actions:
{recent_actions}

Create a plan using the create_plan tool. Each step should use one of the available tools or be a reasoning step (no toolName).
Keep plans concise and prefer fewer steps. Set requiresValidation to true only for plans with 3+ steps that create or modify content."""


def fallback_plan(prompt: str) -> Plan:
    """One-step plan used when planning fails."""
    return Plan(
        intent=FALLBACK_INTENT,
        steps=(PlanStep(id="1", description=prompt[:200]),),
        requires_validation=False,
    )


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


class Planner:
    """
    Produce a ``Plan`` through a forced ``create_plan`` tool call.

    Example:
        planner = Planner(llm)
        plan = await planner.create_plan(prompt, registry.list_tools(), run_context)
    """

    def __init__(self, llm: LLMClient, max_steps: int = 10, timeout: float | None = None) -> None:
        self.llm = llm
        self.max_steps = max_steps
        self.timeout = timeout

    def _system_prompt(self, tools: list[ToolDefinition], context: RunContext) -> str:
        tool_summary = "\n".join(
            f"- {t.name}: {t.description.splitlines()[0]}" for t in tools
        )
        return PLANNER_SYSTEM_PROMPT.format(
            tool_summary=tool_summary,
            project_info=context.project_info,
            recent_actions=context.recent_actions,
        )

    async def create_plan(
        self, prompt: str, tools: list[ToolDefinition], context: RunContext
    ) -> Plan:
        """
        Plan a prompt.

        Raises:
            PlanningError: If the provider fails or the plan cannot be parsed
        """
        try:
            response = await asyncio.wait_for(
                self.llm.complete(
                    system=self._system_prompt(tools, context),
                    messages=[{"role": "user", "content": prompt}],
                    tools=[PLAN_TOOL],
                    tool_choice={"type": "tool", "name": "create_plan"},
                ),
                timeout=self.timeout,
            )
        except (ProviderError, asyncio.TimeoutError) as e:
            raise PlanningError(f"Planning failed: {e}") from e

        tool_use = next((b for b in response.tool_uses if b.name == "create_plan"), None)
        if tool_use is None:
            raise PlanningError("Planning did not return a plan")
        return self.parse_plan(tool_use.input)

    def parse_plan(self, data: dict[str, Any]) -> Plan:
        raw_steps = parse_json_list(data.get("steps"))
        if raw_steps is None:
            raise PlanningError("Planning returned invalid steps JSON")
        if not raw_steps:
            raise PlanningError("Planning returned no steps")

        steps: list[PlanStep] = []
        for index, raw in enumerate(raw_steps[: self.max_steps], start=1):
            if isinstance(raw, str):
                steps.append(PlanStep(id=str(index), description=raw))
                continue
            if not isinstance(raw, dict):
                raise PlanningError(f"Plan step {index} is not an object")
            steps.append(
                PlanStep(
                    id=str(raw.get("id") or index),
                    description=str(raw.get("description") or ""),
                    tool_name=raw.get("toolName") or raw.get("tool_name") or None,
                )
            )
        if len(raw_steps) > self.max_steps:
            logger.warning("Plan truncated from %d to %d steps", len(raw_steps), self.max_steps)

        return Plan(
            intent=str(data.get("intent") or ""),
            steps=tuple(steps),
            requires_validation=_as_bool(data.get("requiresValidation", False)),
        )
