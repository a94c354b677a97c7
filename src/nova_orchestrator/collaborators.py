"""
Boundaries of the external collaborators reached through tools.

The orchestrator never talks to these directly; only tool handlers do, via
the ``ToolContext``. ``Storage`` implements every synchronous store below;
the content repository, vector index, embedder and embedding queue are
asynchronous network services.
"""

from __future__ import annotations

from typing import Any, Protocol


class ContentStore(Protocol):
    """Page repository for one project."""

    async def list(self, path: str = "/") -> list[dict[str, Any]]: ...

    async def get_source(self, path: str) -> str: ...

    async def put_source(self, path: str, content: str) -> None: ...

    async def delete_source(self, path: str) -> None: ...

    async def copy(self, source: str, destination: str) -> None: ...

    async def move(self, source: str, destination: str) -> None: ...


class SearchIndex(Protocol):
    def search(self, project_id: str, keywords: list[str], limit: int = 10) -> list[dict[str, Any]]: ...

    def index_page(self, project_id: str, path: str, title: str, body: str) -> None: ...

    def remove_page(self, project_id: str, path: str) -> None: ...


class VectorIndex(Protocol):
    async def query(
        self, vector: list[float], top_k: int, project_id: str
    ) -> list[dict[str, Any]]: ...


class Embedder(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]: ...


class EmbedQueue(Protocol):
    async def send(self, message: dict[str, Any]) -> None: ...


class BrandStore(Protocol):
    def get_brand_profile(self, project_id: str) -> dict[str, Any] | None: ...


class BlockLibraryStore(Protocol):
    def list_blocks(self, project_id: str) -> list[dict[str, Any]]: ...

    def get_block(self, project_id: str, name: str) -> dict[str, Any] | None: ...

    def save_block(self, project_id: str, block: dict[str, Any], status: str = "draft") -> None: ...


class TelemetryStore(Protocol):
    def get_telemetry(
        self, project_id: str, since: str, path: str | None = None, limit: int = 100
    ) -> list[dict[str, Any]]: ...

    def get_value_scores(
        self, project_id: str, path: str | None = None, limit: int = 50
    ) -> list[dict[str, Any]]: ...

    def get_value_annotations(self, project_id: str, path: str) -> list[dict[str, Any]]: ...


class DeliveryConfigStore(Protocol):
    def get_delivery_mode(self, project_id: str, path: str) -> str | None: ...

    def set_delivery_mode(self, project_id: str, path_pattern: str, mode: str) -> None: ...

    def upsert_generative_config(
        self,
        project_id: str,
        path_pattern: str,
        delivery_mode: str | None = None,
        intent_config: str | None = None,
        confidence_thresholds: str | None = None,
    ) -> None: ...


class ActionHistoryStore(Protocol):
    def add_action(
        self,
        user_id: str,
        project_id: str,
        action_type: str,
        description: str,
        input: dict[str, Any],
        output: dict[str, Any] | None = None,
        status: str = "completed",
    ) -> str: ...

    def recent_actions(self, user_id: str, project_id: str, limit: int = 20) -> list[dict[str, Any]]: ...
