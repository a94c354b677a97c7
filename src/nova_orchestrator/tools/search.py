"""Keyword and semantic search tools."""
from __future__ import annotations

import asyncio
import json
from typing import Any

from nova_orchestrator.errors import ProviderError
from nova_orchestrator.tools.registry import ToolContext, ToolDefinition, object_schema

SEARCH_LIMIT = 10
SEMANTIC_DEFAULT_LIMIT = 5


async def search_content(input: dict[str, Any], ctx: ToolContext) -> str:
    keywords = [w for w in input.get("query", "").lower().split() if len(w) > 2]
    if not keywords:
        return json.dumps({"results": []})
    results = await asyncio.to_thread(
        ctx.require("search").search, ctx.project_id, keywords, limit=SEARCH_LIMIT
    )
    return json.dumps(results, indent=2)


async def semantic_search(input: dict[str, Any], ctx: ToolContext) -> str:
    if ctx.embedder is None:
        return json.dumps({"error": "Embedding provider not configured", "results": []})
    if ctx.vectors is None:
        return json.dumps({"error": "Vector index not configured", "results": []})
    limit = int(input.get("limit") or SEMANTIC_DEFAULT_LIMIT)

    try:
        vectors = await ctx.embedder.embed([input["query"]])
    except ProviderError:
        return json.dumps({"error": "Failed to generate embedding", "results": []})
    if not vectors:
        return json.dumps({"error": "No embedding returned", "results": []})

    matches = await ctx.vectors.query(vectors[0], limit, ctx.project_id)
    results = [
        {
            "path": m.get("metadata", {}).get("path", ""),
            "title": m.get("metadata", {}).get("title", ""),
            "snippet": m.get("metadata", {}).get("snippet", ""),
            "score": m.get("score"),
        }
        for m in matches
    ]
    return json.dumps(results, indent=2)


def create_search_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="search_content",
            description=(
                "Search across all content using keywords. "
                "Returns matching pages with titles and snippets."
            ),
            input_schema=object_schema(
                {"query": {"type": "string", "description": "Search query"}}, ["query"]
            ),
            handler=search_content,
        ),
        ToolDefinition(
            name="semantic_search",
            description=(
                "Search content using semantic similarity. Embeds the query and "
                "queries the vector index for related content."
            ),
            input_schema=object_schema(
                {
                    "query": {"type": "string", "description": "Natural language search query"},
                    "limit": {
                        "type": "string",
                        "description": f"Number of results (default {SEMANTIC_DEFAULT_LIMIT})",
                    },
                },
                ["query"],
            ),
            handler=semantic_search,
        ),
    ]
