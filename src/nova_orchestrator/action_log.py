"""Audit record of each orchestrated run."""

from __future__ import annotations

import asyncio
from typing import Literal

from nova_orchestrator.collaborators import ActionHistoryStore
from nova_orchestrator.logging import get_logger
from nova_orchestrator.models import ToolCall

logger = get_logger("action_log")

ACTION_TYPE = "ai_execute"

RunStatus = Literal["completed", "error", "cancelled"]


class ActionLogger:
    """Write one ``ai_execute`` history record per run. Never raises."""

    def __init__(
        self,
        store: ActionHistoryStore,
        prompt_chars: int = 100,
        response_chars: int = 500,
    ) -> None:
        self.store = store
        self.prompt_chars = prompt_chars
        self.response_chars = response_chars

    async def log_run(
        self,
        user_id: str,
        project_id: str,
        prompt: str,
        response: str,
        tool_calls: list[ToolCall],
        status: RunStatus = "completed",
    ) -> str | None:
        """Returns the record id, or None if the write failed."""
        try:
            return await asyncio.to_thread(
                self.store.add_action,
                user_id,
                project_id,
                ACTION_TYPE,
                f"AI: {prompt[: self.prompt_chars]}",
                {"prompt": prompt},
                {"response": response[: self.response_chars], "toolCalls": len(tool_calls)},
                status,
            )
        except Exception as e:
            logger.warning("Failed to write action log: %s", e)
            return None
