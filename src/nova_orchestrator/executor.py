"""
Bounded tool-use loop.

The loop alternates model turns and tool execution until the model answers
without requesting tools, or the iteration cap is reached::

    awaiting_model -> model_responded -> executing_tools -> awaiting_model
                                      \\-> terminal

Progress is reported through a ``StepTracker``, which maps tool calls onto
plan steps (multi mode) or synthesises one step per call (single mode).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from nova_orchestrator.config import MAX_TOOL_ITERATIONS, OrchestratorConfig
from nova_orchestrator.errors import ProviderError, RunCancelledError, ToolExecutionError
from nova_orchestrator.ids import CounterAllocator, IdAllocator
from nova_orchestrator.llm.base import LLMClient, LLMResponse, ToolUseBlock
from nova_orchestrator.logging import get_logger
from nova_orchestrator.models import Plan, PlanStep, StepResult, StepStatus, ToolCall
from nova_orchestrator.sse import STEP_COMPLETE, STEP_START, TOOL_CALL, SSEWriter
from nova_orchestrator.tools.registry import ToolContext, ToolRegistry

logger = get_logger("executor")

EXHAUSTED_RESPONSE = "Reached maximum tool-use iterations."

# step_complete frames carry at most this much of a tool result
STEP_RESULT_PREVIEW_CHARS = 500


@dataclass
class _ActiveStep:
    step_id: str
    description: str
    tool_name: str


class StepTracker:
    """
    Progress held by the caller for one run.

    Every reported step is a ``step_start -> tool_call -> step_complete``
    group. In multi mode, tool calls made after every plan step has
    completed are executed and recorded but produce no frames, so the
    number of completed steps never exceeds ``plan.step_count``.
    """

    def __init__(
        self,
        writer: SSEWriter | None = None,
        plan: Plan | None = None,
        ids: IdAllocator | None = None,
    ) -> None:
        self.writer = writer
        self.plan = plan
        self.ids = ids or CounterAllocator(prefix="call-")
        self._pending: list[PlanStep] = list(plan.steps) if plan else []
        self.results: list[StepResult] = []

    @property
    def completed_steps(self) -> int:
        return len(self.results)

    def _emit(self, event: str, data: dict[str, Any]) -> None:
        if self.writer is not None:
            self.writer.write(event, data)

    def _claim(self, tool_name: str) -> _ActiveStep | None:
        if self.plan is None:
            return _ActiveStep(self.ids.next_id(), f"Run {tool_name}", tool_name)
        if not self._pending:
            return None
        step = next((s for s in self._pending if s.tool_name == tool_name), self._pending[0])
        self._pending.remove(step)
        return _ActiveStep(step.id, step.description, tool_name)

    def start(self, tool_name: str, tool_input: dict[str, Any]) -> _ActiveStep | None:
        """Open a step for a tool call. Returns None when no frames are due."""
        step = self._claim(tool_name)
        if step is None:
            logger.debug("All plan steps complete; %s runs without a step", tool_name)
            return None
        self._emit(STEP_START, {"stepId": step.step_id, "description": step.description})
        self._emit(TOOL_CALL, {"stepId": step.step_id, "toolName": tool_name, "input": tool_input})
        return step

    def complete(
        self,
        step: _ActiveStep | None,
        status: StepStatus,
        result: str | None = None,
        error: str | None = None,
    ) -> None:
        if step is None:
            return
        step_result = StepResult(
            step_id=step.step_id,
            status=status,
            description=step.description,
            tool_name=step.tool_name,
            result=result[:STEP_RESULT_PREVIEW_CHARS] if result is not None else None,
            error=error,
        )
        self.results.append(step_result)
        self._emit(STEP_COMPLETE, step_result.to_event())


@dataclass
class LoopOutcome:
    response: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    iterations: int = 0
    exhausted: bool = False


class ToolUseLoop:
    """
    Drive the model through tool use for one run.

    Example:
        loop = ToolUseLoop(llm, registry, config)
        outcome = await loop.run(prompt, system_prompt, tool_ctx, StepTracker(writer))
    """

    def __init__(
        self,
        llm: LLMClient,
        registry: ToolRegistry,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.llm = llm
        self.registry = registry
        self.config = config or OrchestratorConfig()

    @property
    def max_iterations(self) -> int:
        return min(self.config.max_iterations, MAX_TOOL_ITERATIONS)

    @staticmethod
    def _check_cancel(cancel: asyncio.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            raise RunCancelledError("Run cancelled")

    async def _call_model(
        self, system_prompt: str, messages: list[dict[str, Any]]
    ) -> LLMResponse:
        try:
            return await asyncio.wait_for(
                self.llm.complete(
                    system=system_prompt,
                    messages=messages,
                    tools=self.registry.definitions(),
                ),
                timeout=self.config.llm_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Model call timed out after {self.config.llm_timeout_seconds}s"
            ) from e

    async def _execute_tool(
        self, block: ToolUseBlock, ctx: ToolContext
    ) -> tuple[str, StepStatus, str | None]:
        """Run one tool. Returns ``(result, status, error)``."""
        if block.name not in self.registry:
            message = f"Unknown tool: {block.name}"
            logger.warning("Model requested unknown tool %s", block.name)
            return message, "error", message
        try:
            result = await asyncio.wait_for(
                self.registry.dispatch(block.name, block.input, ctx),
                timeout=self.config.tool_timeout_seconds,
            )
        except asyncio.TimeoutError:
            message = f"Tool '{block.name}' timed out after {self.config.tool_timeout_seconds}s"
            return f"Error: {message}", "error", message
        except Exception as e:
            logger.warning("Tool %s failed: %s", block.name, e)
            message = str(e) or type(e).__name__
            return f"Error: {message}", "error", message
        return result, "success", None

    async def run(
        self,
        prompt: str,
        system_prompt: str,
        ctx: ToolContext,
        tracker: StepTracker | None = None,
        cancel: asyncio.Event | None = None,
    ) -> LoopOutcome:
        """
        Run the loop to a terminal state.

        Raises:
            ProviderError: If a model call fails or times out
            RunCancelledError: If ``cancel`` is set before an iteration or around a tool dispatch
            ToolExecutionError: If a tool fails and ``continue_on_tool_error`` is off
        """
        tracker = tracker or StepTracker()
        messages: list[dict[str, Any]] = [{"role": "user", "content": prompt}]
        tool_calls: list[ToolCall] = []

        for iteration in range(1, self.max_iterations + 1):
            self._check_cancel(cancel)
            logger.debug("Iteration %d/%d", iteration, self.max_iterations)

            response = await self._call_model(system_prompt, messages)

            if response.is_final:
                return LoopOutcome(
                    response=response.text, tool_calls=tool_calls, iterations=iteration
                )

            messages.append(response.to_message())
            tool_results: list[dict[str, Any]] = []

            for block in response.tool_uses:
                self._check_cancel(cancel)
                step = tracker.start(block.name, block.input)
                result, status, error = await self._execute_tool(block, ctx)
                tool_calls.append(ToolCall(block.name, block.input, result, status))
                # A run aborted mid-tool emits nothing after the abort.
                self._check_cancel(cancel)
                tracker.complete(step, status, result=result if error is None else None, error=error)

                if (
                    status == "error"
                    and not self.config.continue_on_tool_error
                    and block.name in self.registry
                ):
                    raise ToolExecutionError(block.name, error or result)

                tool_result: dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": result,
                }
                if status == "error":
                    tool_result["is_error"] = True
                tool_results.append(tool_result)

            messages.append({"role": "user", "content": tool_results})

        logger.info("Tool-use loop exhausted after %d iterations", self.max_iterations)
        return LoopOutcome(
            response=EXHAUSTED_RESPONSE,
            tool_calls=tool_calls,
            iterations=self.max_iterations,
            exhausted=True,
        )
