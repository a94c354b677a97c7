"""
Voyage AI embeddings over HTTP.
"""

from __future__ import annotations

from typing import Any

import httpx

from nova_orchestrator.errors import ProviderError
from nova_orchestrator.logging import get_logger

logger = get_logger("embeddings")

VOYAGE_EMBEDDINGS_URL = "https://api.voyageai.com/v1/embeddings"


class VoyageEmbedder:
    """
    ``Embedder`` backed by the Voyage embeddings endpoint.

    Example:
        embedder = VoyageEmbedder(api_key="pa-...")
        [vector] = await embedder.embed(["pricing pages for enterprise"])
    """

    def __init__(
        self,
        api_key: str,
        model: str = "voyage-3",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self._http_client.post(
                VOYAGE_EMBEDDINGS_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"input": texts, "model": self.model},
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Voyage request failed: {e}") from e

        if response.status_code != 200:
            raise ProviderError(
                f"Voyage API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        data: dict[str, Any] = response.json()
        vectors = [item["embedding"] for item in data.get("data", [])]
        logger.debug("Embedded %d texts with %s", len(vectors), self.model)
        return vectors

    async def aclose(self) -> None:
        await self._http_client.aclose()
