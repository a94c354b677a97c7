"""Brand profile, block library and block generation tools."""
from __future__ import annotations

import asyncio
import json
from typing import Any

from nova_orchestrator.llm.base import LLMClient
from nova_orchestrator.logging import get_logger
from nova_orchestrator.tools.registry import ToolContext, ToolDefinition, object_schema
from nova_orchestrator.utils.json_parse import parse_json_object

logger = get_logger("tools.brand")

BLOCK_MAX_TOKENS = 16384

BLOCK_SYSTEM_PROMPT = """You are an expert EDS (Edge Delivery Services) block developer. You generate production-quality block code.

EDS block conventions:
- Blocks are authored as tables in documents and rendered as <div class="block-name"> wrappers.
- Block JS lives in /blocks/{name}/{name}.js and exports a default async function decorate(block).
- Block CSS lives in /blocks/{name}/{name}.css, scoped with .block-name selectors.
- Each direct child <div> of the block is a row; each direct child <div> of a row is a cell.
- Use semantic HTML, modern CSS (custom properties, grid, flexbox) and vanilla JS.
- Ensure accessibility: ARIA roles, keyboard navigation, focus management.
- Mobile-first responsive design.

Respond with a JSON object:
{
  "name": "block-name",
  "description": "What this block does",
  "category": "Content|Structure|Media|Navigation|Configuration",
  "variants": ["variant1"],
  "structureHtml": "<div class=\\"block-name\\"><div>...</div></div>",
  "css": ".block-name { ... }",
  "js": "export default async function decorate(block) { ... }"
}"""


class BlockGenerationError(Exception):
    """Raised when the model response cannot be turned into a block."""


def _normalize_block(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": data.get("name") or "unnamed-block",
        "description": data.get("description") or "",
        "category": data.get("category") or "Content",
        "structureHtml": data.get("structureHtml") or "",
        "css": data.get("css") or "",
        "js": data.get("js") or "",
        "variants": list(data.get("variants") or []),
    }


async def _call_block_model(llm: LLMClient, user_prompt: str) -> dict[str, Any]:
    response = await llm.complete(
        system=BLOCK_SYSTEM_PROMPT,
        messages=[{"role": "user", "content": user_prompt}],
        max_tokens=BLOCK_MAX_TOKENS,
    )
    data = parse_json_object(response.text)
    if data is None:
        raise BlockGenerationError(
            "AI response was not valid block JSON. Try a simpler description."
        )
    return _normalize_block(data)


async def generate_block_spec(
    llm: LLMClient,
    intent: str,
    existing_blocks: list[dict[str, Any]],
    brand_profile: dict[str, Any] | None,
) -> dict[str, Any]:
    """Ask the model for a new block definition."""
    prompt = f"Generate an EDS block for this requirement:\n\n{intent}"
    if existing_blocks:
        listing = "\n".join(
            f"- {b['name']} ({b.get('category') or 'Content'}): {b.get('description') or ''}"
            for b in existing_blocks
        )
        prompt += f"\n\nExisting blocks in this project:\n{listing}"
    if brand_profile:
        prompt += f"\n\nBrand profile:\n{json.dumps(brand_profile, indent=2)}"
    prompt += "\n\nRespond with ONLY the JSON object, no markdown fences."
    return await _call_block_model(llm, prompt)


async def iterate_block_spec(
    llm: LLMClient, block: dict[str, Any], feedback: str
) -> dict[str, Any]:
    """Ask the model to revise an existing block according to feedback."""
    prompt = (
        "Current block state:\n\n"
        f"Name: {block['name']}\nCSS:\n{block['css']}\n\nJS:\n{block['js']}\n\n"
        f"HTML Structure:\n{block['structureHtml']}\n\n"
        f"User feedback: {feedback}\n\n"
        "Update the block based on this feedback. "
        "Respond with ONLY the complete updated JSON object."
    )
    return await _call_block_model(llm, prompt)


async def get_brand_profile(input: dict[str, Any], ctx: ToolContext) -> str:
    profile = await asyncio.to_thread(ctx.require("brand").get_brand_profile, ctx.project_id)
    if profile is None:
        return json.dumps({"message": "No brand profile configured for this project."})
    return json.dumps(profile, indent=2)


async def get_block_library(input: dict[str, Any], ctx: ToolContext) -> str:
    blocks = await asyncio.to_thread(ctx.require("blocks").list_blocks, ctx.project_id)
    return json.dumps(blocks, indent=2)


async def generate_block(input: dict[str, Any], ctx: ToolContext) -> str:
    intent = input["intent"]
    blocks = ctx.require("blocks")
    brand = (
        await asyncio.to_thread(ctx.brand.get_brand_profile, ctx.project_id) if ctx.brand else None
    )
    library = await asyncio.to_thread(blocks.list_blocks, ctx.project_id)
    generated = await generate_block_spec(ctx.require("llm"), intent, library, brand)
    await asyncio.to_thread(blocks.save_block, ctx.project_id, generated, status="draft")
    await ctx.log_action(
        "generate_block", f"AI generated block: {generated['name']}", {"intent": intent}
    )
    return (
        f'Generated block "{generated["name"]}" ({generated["category"]}): '
        f"{generated['description']}. CSS: {len(generated['css'])} chars, "
        f"JS: {len(generated['js'])} chars. Saved as draft."
    )


async def update_block(input: dict[str, Any], ctx: ToolContext) -> str:
    name, feedback = input["block_name"], input["feedback"]
    blocks = ctx.require("blocks")
    existing = await asyncio.to_thread(blocks.get_block, ctx.project_id, name)
    if existing is None:
        return f'Block "{name}" not found in library.'

    updated = await iterate_block_spec(ctx.require("llm"), existing, feedback)
    # The block keeps its name, category and status; only its content changes.
    merged = {
        **existing,
        "description": updated["description"],
        "structureHtml": updated["structureHtml"],
        "css": updated["css"],
        "js": updated["js"],
    }
    await asyncio.to_thread(
        blocks.save_block, ctx.project_id, merged, status=existing.get("status") or "draft"
    )
    await ctx.log_action("update_block", f"AI updated block: {name}", {"feedback": feedback})
    return f'Updated block "{name}": {updated["description"]}'


def create_brand_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="get_brand_profile",
            description=(
                "Get the brand profile for the project including voice, visual, "
                "and content rules."
            ),
            input_schema=object_schema({}),
            handler=get_brand_profile,
        ),
        ToolDefinition(
            name="get_block_library",
            description=(
                "Get the EDS block catalog. Use this to understand what blocks are "
                "available when creating or editing pages."
            ),
            input_schema=object_schema({}),
            handler=get_block_library,
        ),
        ToolDefinition(
            name="generate_block",
            description=(
                "Generate a new EDS block using AI. Produces HTML structure, CSS, and JS "
                "for the block based on a description. The block is saved as a draft "
                "in the block library."
            ),
            input_schema=object_schema(
                {
                    "intent": {
                        "type": "string",
                        "description": (
                            'Description of the block to generate (e.g. "a pricing table '
                            'with 3 tiers and a toggle for monthly/annual")'
                        ),
                    }
                },
                ["intent"],
            ),
            handler=generate_block,
            mutating=True,
        ),
        ToolDefinition(
            name="update_block",
            description=(
                "Update an existing block in the library with AI-generated changes. "
                "Provide feedback to iterate on the block design."
            ),
            input_schema=object_schema(
                {
                    "block_name": {"type": "string", "description": "Name of the block to update"},
                    "feedback": {
                        "type": "string",
                        "description": "Description of changes to make",
                    },
                },
                ["block_name", "feedback"],
            ),
            handler=update_block,
            mutating=True,
        ),
    ]
