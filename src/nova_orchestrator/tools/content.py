"""Page tools: list, read, create, delete, copy and move."""
from __future__ import annotations

import asyncio
import json
import re
from typing import Any

from nova_orchestrator.logging import get_logger
from nova_orchestrator.tools.registry import ToolContext, ToolDefinition, object_schema

logger = get_logger("tools.content")

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>|<h1[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")

CREATE_PAGE_DESCRIPTION = """Create a new page with HTML content using EDS block markup.

Blocks are authored as <div class="block-name"> wrappers whose direct child
<div>s are rows and whose grandchildren are cells. Wrap sections in <main>
and separate them with <hr> or nested <div>s. Use semantic headings."""


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0]


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def extract_text(html: str) -> tuple[str, str]:
    """Return ``(title, body_text)`` for search indexing."""
    match = _TITLE_RE.search(html)
    title = ""
    if match:
        title = _SPACE_RE.sub(" ", _TAG_RE.sub("", match.group(1) or match.group(2) or "")).strip()
    body = _SPACE_RE.sub(" ", _TAG_RE.sub(" ", html)).strip()
    return title, body


async def list_pages(input: dict[str, Any], ctx: ToolContext) -> str:
    items = await ctx.require("content").list(input.get("path") or "/")
    return json.dumps(items, indent=2)


async def read_page(input: dict[str, Any], ctx: ToolContext) -> str:
    return await ctx.require("content").get_source(input["path"])


async def create_page(input: dict[str, Any], ctx: ToolContext) -> str:
    path, content = input["path"], input["content"]
    await ctx.require("content").put_source(path, content)
    await ctx.log_action("create_page", f"AI created page at {path}", {"path": path})

    if ctx.search is not None:
        try:
            title, body = extract_text(content)
            await asyncio.to_thread(
                ctx.search.index_page, ctx.project_id, path, title or _basename(path), body
            )
        except Exception as e:
            logger.warning("Search indexing failed for %s: %s", path, e)
    if ctx.embed_queue is not None:
        try:
            await ctx.embed_queue.send(
                {"type": "content", "projectId": ctx.project_id, "path": path, "html": content}
            )
        except Exception as e:
            logger.warning("Embed queue send failed for %s: %s", path, e)
    return f"Page created at {path}"


async def delete_page(input: dict[str, Any], ctx: ToolContext) -> str:
    path = input["path"]
    await ctx.require("content").delete_source(path)
    await ctx.log_action("delete_page", f"AI deleted page at {path}", {"path": path})
    if ctx.search is not None:
        try:
            await asyncio.to_thread(ctx.search.remove_page, ctx.project_id, path)
        except Exception as e:
            logger.warning("Search index removal failed for %s: %s", path, e)
    return f"Page deleted at {path}"


async def copy_page(input: dict[str, Any], ctx: ToolContext) -> str:
    source, destination = input["source"], input["destination"]
    await ctx.require("content").copy(source, destination)
    await ctx.log_action(
        "copy_page",
        f"AI copied {source} to {destination}",
        {"source": source, "destination": destination},
    )
    return f"Copied {source} to {destination}"


async def move_page(input: dict[str, Any], ctx: ToolContext) -> str:
    source, destination = input["source"], input["destination"]
    await ctx.require("content").move(source, destination)

    # Same parent directory means the page was renamed in place.
    if _parent(source) == _parent(destination):
        await ctx.log_action(
            "rename_page",
            f"AI renamed {_basename(source)} to {_basename(destination)}",
            {"source": source, "destination": destination},
        )
        return f"Renamed to {_basename(destination)}"

    await ctx.log_action(
        "move_page",
        f"AI moved {source} to {destination}",
        {"source": source, "destination": destination},
    )
    return f"Moved {source} to {destination}"


def create_content_tools() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="list_pages",
            description=(
                "List all pages and folders in a directory. "
                "Returns name, path, and type for each item."
            ),
            input_schema=object_schema(
                {
                    "path": {
                        "type": "string",
                        "description": 'Directory path to list (e.g. "/en", "/"). Defaults to "/".',
                    }
                }
            ),
            handler=list_pages,
        ),
        ToolDefinition(
            name="read_page",
            description="Read the HTML source content of a page.",
            input_schema=object_schema(
                {"path": {"type": "string", "description": 'Page path (e.g. "/en/index")'}},
                ["path"],
            ),
            handler=read_page,
        ),
        ToolDefinition(
            name="create_page",
            description=CREATE_PAGE_DESCRIPTION,
            input_schema=object_schema(
                {
                    "path": {"type": "string", "description": 'Page path (e.g. "/en/test")'},
                    "content": {
                        "type": "string",
                        "description": "HTML content for the page using EDS block markup",
                    },
                },
                ["path", "content"],
            ),
            handler=create_page,
            mutating=True,
        ),
        ToolDefinition(
            name="delete_page",
            description="Delete a page or folder.",
            input_schema=object_schema(
                {"path": {"type": "string", "description": "Path to delete"}}, ["path"]
            ),
            handler=delete_page,
            mutating=True,
        ),
        ToolDefinition(
            name="copy_page",
            description="Copy a page or folder to a new location.",
            input_schema=object_schema(
                {
                    "source": {"type": "string", "description": "Source path to copy from"},
                    "destination": {"type": "string", "description": "Destination path to copy to"},
                },
                ["source", "destination"],
            ),
            handler=copy_page,
            mutating=True,
        ),
        ToolDefinition(
            name="move_page",
            description=(
                "Move a page or folder to a new location. Also used for renaming "
                "(same parent directory, different name)."
            ),
            input_schema=object_schema(
                {
                    "source": {"type": "string", "description": "Source path"},
                    "destination": {"type": "string", "description": "Destination path"},
                },
                ["source", "destination"],
            ),
            handler=move_page,
            mutating=True,
        ),
    ]
