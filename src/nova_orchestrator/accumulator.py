"""
Context accumulation: learn a user's habits from finished runs.

No model calls; only pattern matching on the prompt and on tool names and
paths. Runs off the critical path and never raises.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Any

from nova_orchestrator.logging import get_logger
from nova_orchestrator.models import ExpertiseLevel, ToolCall

if TYPE_CHECKING:
    from nova_orchestrator.storage import Storage

logger = get_logger("accumulator")

ADVANCED_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"delivery mode",
        r"generative",
        r"config",
        r"telemetry",
        r"value score",
        r"cwv",
        r"lcp",
        r"conversion",
        r"semantic",
        r"brand profile",
        r"block library",
        r"section-metadata",
    )
]

INTERMEDIATE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"template",
        r"copy.*to",
        r"move.*to",
        r"rename",
        r"search",
        r"accordion",
        r"tabs",
        r"carousel",
    )
]

PATH_FIELDS = ("path", "source", "destination")


def score_expertise(prompt: str) -> ExpertiseLevel:
    advanced = sum(1 for p in ADVANCED_PATTERNS if p.search(prompt))
    intermediate = sum(1 for p in INTERMEDIATE_PATTERNS if p.search(prompt))
    if advanced >= 2:
        return "advanced"
    if advanced >= 1 or intermediate >= 2:
        return "intermediate"
    return "beginner"


def extract_paths(tool_calls: list[ToolCall]) -> list[str]:
    """Paths touched by the run, first occurrence order, without duplicates."""
    seen: dict[str, None] = {}
    for call in tool_calls:
        for name in PATH_FIELDS:
            value: Any = call.input.get(name)
            if isinstance(value, str) and value:
                seen.setdefault(value, None)
    return list(seen)


class ContextAccumulator:
    """
    Update the per-user profile after a run.

    The three updates are independent and each is atomic in storage, so
    concurrent runs for the same user never lose each other's writes.
    """

    def __init__(self, storage: Storage, active_paths_limit: int = 20) -> None:
        self.storage = storage
        self.active_paths_limit = active_paths_limit

    async def accumulate(
        self,
        user_id: str,
        project_id: str,
        prompt: str,
        tool_calls: list[ToolCall],
        cancel: asyncio.Event | None = None,
    ) -> None:
        if cancel is not None and cancel.is_set():
            logger.debug("Run cancelled; skipping context accumulation")
            return

        results = await asyncio.gather(
            self._update_tool_frequency(user_id, project_id, tool_calls),
            self._update_expertise(user_id, project_id, prompt),
            self._update_active_paths(user_id, project_id, tool_calls),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Context accumulation update failed: %s", result)

    async def _update_tool_frequency(
        self, user_id: str, project_id: str, tool_calls: list[ToolCall]
    ) -> None:
        if not tool_calls:
            return
        await asyncio.to_thread(
            self.storage.increment_tool_frequency,
            user_id,
            project_id,
            [tc.name for tc in tool_calls],
        )

    async def _update_expertise(self, user_id: str, project_id: str, prompt: str) -> None:
        level = score_expertise(prompt)
        raised = await asyncio.to_thread(
            self.storage.raise_expertise_level, user_id, project_id, level
        )
        if raised:
            logger.info("Expertise for %s/%s raised to %s", user_id, project_id, level)

    async def _update_active_paths(
        self, user_id: str, project_id: str, tool_calls: list[ToolCall]
    ) -> None:
        paths = extract_paths(tool_calls)
        if not paths:
            return
        await asyncio.to_thread(
            self.storage.touch_active_paths,
            user_id,
            project_id,
            paths,
            self.active_paths_limit,
        )
