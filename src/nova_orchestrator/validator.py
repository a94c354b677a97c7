"""
Post-run validation of mutating runs.

Validation never undoes anything; it only reports issues and suggestions.
"""

from __future__ import annotations

import asyncio

from nova_orchestrator.errors import ProviderError
from nova_orchestrator.llm.base import LLMClient
from nova_orchestrator.logging import get_logger
from nova_orchestrator.models import Plan, ToolCall, ValidationResult
from nova_orchestrator.tools.registry import ToolRegistry
from nova_orchestrator.utils.json_parse import parse_json_object

logger = get_logger("validator")

VALIDATOR_SYSTEM_PROMPT = (
    "You validate AI execution results. Return a JSON object with: passed (boolean), "
    "issues (string array of problems found), suggestions (string array of improvements). "
    "Be concise."
)

# Runs with at least this many mutating calls get a model review.
SUBSTANTIAL_MUTATIONS = 3
RESULT_SUMMARY_CHARS = 300


class Validator:
    """
    Check a finished run for errors and inconsistencies.

    Example:
        validator = Validator(registry, llm)
        if validator.should_validate(tool_calls):
            result = await validator.validate(response, tool_calls, plan)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        llm: LLMClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.registry = registry
        self.llm = llm
        self.timeout = timeout

    def mutating_calls(self, tool_calls: list[ToolCall]) -> list[ToolCall]:
        return [tc for tc in tool_calls if self.registry.is_mutating(tc.name)]

    def should_validate(self, tool_calls: list[ToolCall]) -> bool:
        """Pure-read runs are never validated."""
        return bool(self.mutating_calls(tool_calls))

    @staticmethod
    def baseline(tool_calls: list[ToolCall]) -> ValidationResult:
        issues = [
            f"{tc.name} failed: {tc.result}" for tc in tool_calls if tc.status == "error"
        ]
        return ValidationResult(passed=not issues, issues=issues, suggestions=[])

    async def validate(
        self, response: str, tool_calls: list[ToolCall], plan: Plan | None = None
    ) -> ValidationResult:
        baseline = self.baseline(tool_calls)
        substantial = (plan is not None and plan.requires_validation) or (
            len(self.mutating_calls(tool_calls)) >= SUBSTANTIAL_MUTATIONS
        )
        if self.llm is None or not substantial:
            return baseline

        try:
            reviewed = await self._review(response, tool_calls, plan)
        except (ProviderError, asyncio.TimeoutError) as e:
            logger.warning("Model validation failed, using baseline: %s", e)
            return baseline
        if reviewed is None:
            logger.warning("Model validation returned no JSON, using baseline")
            return baseline

        # Tool errors are always reported, whatever the model concluded.
        issues = baseline.issues + [i for i in reviewed.issues if i not in baseline.issues]
        return ValidationResult(
            passed=reviewed.passed and baseline.passed,
            issues=issues,
            suggestions=reviewed.suggestions,
        )

    async def _review(
        self, response: str, tool_calls: list[ToolCall], plan: Plan | None
    ) -> ValidationResult | None:
        assert self.llm is not None
        sections = []
        if plan is not None:
            sections.append(plan.render())
        sections.append(
            "Results:\n"
            + "\n".join(
                f"- {tc.name}: {tc.status} - {tc.result[:RESULT_SUMMARY_CHARS]}"
                for tc in tool_calls
            )
        )
        sections.append(f"Final response:\n{response}")
        sections.append("Check for: errors, incomplete actions, inconsistencies. Return JSON.")

        llm_response = await asyncio.wait_for(
            self.llm.complete(
                system=VALIDATOR_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": "\n\n".join(sections)}],
                max_tokens=1024,
            ),
            timeout=self.timeout,
        )
        data = parse_json_object(llm_response.text)
        if data is None:
            return None
        issues = data.get("issues")
        suggestions = data.get("suggestions")
        return ValidationResult(
            passed=bool(data.get("passed", True)),
            issues=[str(i) for i in issues] if isinstance(issues, list) else [],
            suggestions=[str(s) for s in suggestions] if isinstance(suggestions, list) else [],
        )
