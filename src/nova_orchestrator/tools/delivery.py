"""Page properties, delivery mode and generative config tools."""
from __future__ import annotations

import asyncio
import json
from typing import Any

from nova_orchestrator.tools.registry import ToolContext, ToolDefinition, object_schema

DELIVERY_MODES = ["static", "generative", "hybrid"]
DEFAULT_DELIVERY_MODE = "static"


async def get_page_properties(input: dict[str, Any], ctx: ToolContext) -> str:
    path = input["path"]
    mode = await asyncio.to_thread(
        ctx.require("delivery").get_delivery_mode, ctx.project_id, path
    )
    annotations = (
        await asyncio.to_thread(ctx.telemetry.get_value_annotations, ctx.project_id, path)
        if ctx.telemetry
        else []
    )
    return json.dumps(
        {
            "path": path,
            "deliveryMode": mode or DEFAULT_DELIVERY_MODE,
            "annotations": annotations,
        },
        indent=2,
    )


async def set_delivery_mode(input: dict[str, Any], ctx: ToolContext) -> str:
    path, mode = input["path"], input["mode"]
    if mode not in DELIVERY_MODES:
        raise ValueError(f"Invalid delivery mode '{mode}', expected one of {DELIVERY_MODES}")
    await asyncio.to_thread(ctx.require("delivery").set_delivery_mode, ctx.project_id, path, mode)
    await ctx.log_action(
        "set_delivery_mode", f"AI set {path} to {mode}", {"path": path, "mode": mode}
    )
    return f"Delivery mode for {path} set to {mode}"


async def update_generative_config(input: dict[str, Any], ctx: ToolContext) -> str:
    pattern = input["path_pattern"]
    mode = input.get("delivery_mode") or None
    if mode is not None and mode not in DELIVERY_MODES:
        raise ValueError(f"Invalid delivery mode '{mode}', expected one of {DELIVERY_MODES}")
    await asyncio.to_thread(
        ctx.require("delivery").upsert_generative_config,
        ctx.project_id,
        pattern,
        delivery_mode=mode,
        intent_config=input.get("intent_config") or None,
        confidence_thresholds=input.get("confidence_thresholds") or None,
    )
    await ctx.log_action(
        "update_generative_config", f"AI updated generative config for {pattern}", dict(input)
    )
    return f"Generative config updated for {pattern}"


def create_delivery_tools() -> list[ToolDefinition]:
    mode_schema = {"type": "string", "description": "Delivery mode", "enum": DELIVERY_MODES}
    return [
        ToolDefinition(
            name="get_page_properties",
            description=(
                "Get page properties including delivery mode (static/generative/hybrid) "
                "and value annotations."
            ),
            input_schema=object_schema(
                {"path": {"type": "string", "description": "Page path"}}, ["path"]
            ),
            handler=get_page_properties,
        ),
        ToolDefinition(
            name="set_delivery_mode",
            description=(
                "Set the delivery mode for a page path. Controls whether content is "
                "served statically, generated dynamically, or hybrid."
            ),
            input_schema=object_schema(
                {
                    "path": {
                        "type": "string",
                        "description": 'Page path or glob pattern (e.g. "/products/*")',
                    },
                    "mode": mode_schema,
                },
                ["path", "mode"],
            ),
            handler=set_delivery_mode,
            mutating=True,
        ),
        ToolDefinition(
            name="update_generative_config",
            description=(
                "Update generative config for a path pattern: delivery mode, intent "
                "types, confidence thresholds. Omitted fields keep their current value."
            ),
            input_schema=object_schema(
                {
                    "path_pattern": {
                        "type": "string",
                        "description": 'Path or glob pattern (e.g. "/products/*")',
                    },
                    "delivery_mode": mode_schema,
                    "intent_config": {
                        "type": "string",
                        "description": "JSON string of intent configuration",
                    },
                    "confidence_thresholds": {
                        "type": "string",
                        "description": "JSON string of confidence thresholds",
                    },
                },
                ["path_pattern"],
            ),
            handler=update_generative_config,
            mutating=True,
        ),
    ]
