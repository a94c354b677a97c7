"""
Core data models for orchestrated runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Mode = Literal["single", "multi"]
StepStatus = Literal["success", "error"]
ExpertiseLevel = Literal["beginner", "intermediate", "advanced"]

EXPERTISE_LEVELS: tuple[str, ...] = ("beginner", "intermediate", "advanced")


@dataclass
class ToolCall:
    """One executed tool invocation, in execution order."""

    name: str
    input: dict[str, Any]
    result: str
    status: StepStatus = "success"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "input": self.input, "result": self.result}


@dataclass(frozen=True)
class PlanStep:
    """A single planned step. ``tool_name`` is only a hint for the executor."""

    id: str
    description: str
    tool_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "description": self.description}
        if self.tool_name:
            data["toolName"] = self.tool_name
        return data


@dataclass(frozen=True)
class Plan:
    """Ordered steps for a multi-step run, with a human-readable intent."""

    intent: str
    steps: tuple[PlanStep, ...] = ()
    requires_validation: bool = False

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def to_event(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "stepCount": self.step_count,
            "steps": [s.to_dict() for s in self.steps],
        }

    def render(self) -> str:
        """Render the plan for inclusion in a system prompt."""
        lines = [f"Plan: {self.intent}"]
        for step in self.steps:
            hint = f" (tool: {step.tool_name})" if step.tool_name else ""
            lines.append(f"{step.id}. {step.description}{hint}")
        return "\n".join(lines)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one step, appended as steps complete."""

    step_id: str
    status: StepStatus
    description: str = ""
    tool_name: str | None = None
    result: str | None = None
    error: str | None = None

    def to_event(self) -> dict[str, Any]:
        data: dict[str, Any] = {"stepId": self.step_id, "status": self.status}
        if self.description:
            data["description"] = self.description
        if self.tool_name:
            data["toolName"] = self.tool_name
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ValidationResult:
    passed: bool
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_event(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
        }


@dataclass
class RunResult:
    """Final outcome of an orchestrated run."""

    response: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    mode: Mode = "single"
    plan: Plan | None = None
    validation: ValidationResult | None = None
    iterations: int = 0
    exhausted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "toolCalls": [tc.to_dict() for tc in self.tool_calls],
        }


@dataclass
class UserContext:
    """Accumulated usage profile for one (user, project)."""

    tool_frequency: dict[str, int] = field(default_factory=dict)
    expertise_level: ExpertiseLevel | None = None
    active_paths: list[str] = field(default_factory=list)


@dataclass
class ActionHistoryRecord:
    id: str
    action_type: str
    description: str
    input: dict[str, Any] = field(default_factory=dict)
    output: dict[str, Any] | None = None
    status: str = "completed"
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action_type": self.action_type,
            "description": self.description,
            "input": self.input,
            "output": self.output,
            "status": self.status,
            "created_at": self.created_at,
        }
