"""
Per-run context assembled for the system prompt.

Gathers the user's most recent actions, their accumulated profile and the
project description so the model can resolve references like "that page"
or "the one I just created".
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from nova_orchestrator.logging import get_logger

if TYPE_CHECKING:
    from nova_orchestrator.storage import Storage

logger = get_logger("context")

RECENT_ACTIONS_LIMIT = 5

SYSTEM_PROMPT_TEMPLATE = """You are Nova, an AI assistant for content management on AEM Edge Delivery Services.
You help users manage website content through the content repository.

Current context:
- {project_info}
- Recent actions:
{recent_actions}
- User profile:
{user_context}

Use your tools to fulfill the user's request.
When creating pages, use clean HTML with EDS block markup.
Always confirm what you did after completing an action."""


@dataclass(frozen=True)
class RunContext:
    recent_actions: str
    user_context: str
    project_info: str

    def system_prompt(self, plan_text: str | None = None) -> str:
        prompt = SYSTEM_PROMPT_TEMPLATE.format(
            project_info=self.project_info,
            recent_actions=self.recent_actions,
            user_context=self.user_context,
        )
        if plan_text:
            prompt += f"\n\nFollow this plan, one step at a time:\n{plan_text}"
        return prompt


EMPTY_CONTEXT = RunContext(
    recent_actions="No recent actions.",
    user_context="No accumulated user context.",
    project_info="Unknown project",
)


def build_run_context(storage: Storage, user_id: str, project_id: str) -> RunContext:
    """Build the context for one run. Storage failures yield the empty context."""
    try:
        actions = storage.recent_actions(user_id, project_id, limit=RECENT_ACTIONS_LIMIT)
        profile = storage.get_user_context(user_id, project_id)
        project = storage.get_project(project_id)
    except Exception as e:
        logger.warning("Failed to build run context: %s", e)
        return EMPTY_CONTEXT

    recent = (
        "\n".join(
            f"- {a['action_type']}: {a['description']} ({a['created_at']})" for a in actions
        )
        if actions
        else EMPTY_CONTEXT.recent_actions
    )

    lines = []
    if profile.expertise_level:
        lines.append(f"expertise_level: {profile.expertise_level}")
    if profile.tool_frequency:
        lines.append(f"tool_frequency: {json.dumps(profile.tool_frequency)}")
    if profile.active_paths:
        lines.append(f"active_paths: {json.dumps(profile.active_paths)}")
    user_context = "\n".join(lines) if lines else EMPTY_CONTEXT.user_context

    project_info = (
        f"Project: {project['name']} ({project['slug']}), "
        f"DA: {project['da_org']}/{project['da_repo']}"
        if project
        else EMPTY_CONTEXT.project_info
    )
    return RunContext(recent_actions=recent, user_context=user_context, project_info=project_info)
