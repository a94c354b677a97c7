"""Content-management tools exposed to the language model."""
from __future__ import annotations

from nova_orchestrator.tools.brand import create_brand_tools
from nova_orchestrator.tools.content import create_content_tools
from nova_orchestrator.tools.delivery import create_delivery_tools
from nova_orchestrator.tools.insights import create_insight_tools
from nova_orchestrator.tools.registry import ToolContext, ToolDefinition, ToolRegistry
from nova_orchestrator.tools.search import create_search_tools

__all__ = [
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
    "create_all_tools",
    "create_default_registry",
]


def create_all_tools() -> list[ToolDefinition]:
    """Every built-in tool, in catalog order."""
    return [
        *create_content_tools(),
        *create_search_tools(),
        *create_delivery_tools(),
        *create_insight_tools(),
        *create_brand_tools(),
    ]


def create_default_registry() -> ToolRegistry:
    return ToolRegistry(create_all_tools())
