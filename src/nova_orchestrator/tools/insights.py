"""Action history, value score and telemetry tools."""
from __future__ import annotations

import asyncio
import json
from datetime import date, timedelta
from typing import Any

from nova_orchestrator.tools.registry import ToolContext, ToolDefinition, object_schema

HISTORY_DEFAULT_LIMIT = 10
TELEMETRY_DEFAULT_DAYS = 30


async def get_action_history(input: dict[str, Any], ctx: ToolContext) -> str:
    limit = int(input.get("limit") or HISTORY_DEFAULT_LIMIT)
    actions = await asyncio.to_thread(
        ctx.require("history").recent_actions, ctx.user_id, ctx.project_id, limit=limit
    )
    return json.dumps(
        [
            {
                "action_type": a["action_type"],
                "description": a["description"],
                "created_at": a["created_at"],
            }
            for a in actions
        ],
        indent=2,
    )


async def get_value_scores(input: dict[str, Any], ctx: ToolContext) -> str:
    scores = await asyncio.to_thread(
        ctx.require("telemetry").get_value_scores,
        ctx.project_id, path=input.get("path") or None, limit=50
    )
    return json.dumps(scores, indent=2)


async def get_telemetry(input: dict[str, Any], ctx: ToolContext) -> str:
    days = int(input.get("days") or TELEMETRY_DEFAULT_DAYS)
    since = (date.today() - timedelta(days=days)).isoformat()
    rows = await asyncio.to_thread(
        ctx.require("telemetry").get_telemetry,
        ctx.project_id,
        since, path=input.get("path") or None, limit=100
    )
    return json.dumps(rows, indent=2)


def create_insight_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="get_action_history",
            description=(
                "Get recent user actions. Useful for understanding context of what "
                "the user has been doing."
            ),
            input_schema=object_schema(
                {
                    "limit": {
                        "type": "string",
                        "description": (
                            f"Number of recent actions to return (default {HISTORY_DEFAULT_LIMIT})"
                        ),
                    }
                }
            ),
            handler=get_action_history,
        ),
        ToolDefinition(
            name="get_value_scores",
            description=(
                "Get content value scores for pages. Scores include engagement, "
                "conversion, CWV, SEO, and composite."
            ),
            input_schema=object_schema(
                {
                    "path": {
                        "type": "string",
                        "description": "Optional page path to filter by. Omit for all pages.",
                    }
                }
            ),
            handler=get_value_scores,
        ),
        ToolDefinition(
            name="get_telemetry",
            description=(
                "Get page telemetry data including page views and Core Web Vitals "
                "(LCP, INP, CLS)."
            ),
            input_schema=object_schema(
                {
                    "path": {"type": "string", "description": "Page path to get telemetry for"},
                    "days": {
                        "type": "string",
                        "description": (
                            f"Number of days to look back (default {TELEMETRY_DEFAULT_DAYS})"
                        ),
                    },
                }
            ),
            handler=get_telemetry,
        ),
    ]
