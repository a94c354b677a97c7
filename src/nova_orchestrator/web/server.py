"""HTTP API server using Starlette."""
from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from nova_orchestrator.errors import ProviderError, ToolExecutionError
from nova_orchestrator.logging import get_logger
from nova_orchestrator.orchestrator import Orchestrator
from nova_orchestrator.sse import SSE_HEADERS, SSE_MEDIA_TYPE, SSEWriter

logger = get_logger("web")

ANONYMOUS_USER = "anonymous"
HISTORY_DEFAULT_LIMIT = 20
HISTORY_MAX_LIMIT = 100


def _user_id(request: Request) -> str:
    """Identity set by upstream auth middleware, else the ``X-User-Id`` header."""
    return (
        getattr(request.state, "user_id", None)
        or request.headers.get("x-user-id")
        or ANONYMOUS_USER
    )


async def _read_prompt(request: Request) -> str | None:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(body, dict):
        return None
    prompt = body.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        return None
    return prompt


def create_app(orchestrator: Orchestrator) -> Starlette:
    """Create the Starlette application.

    Args:
        orchestrator: Orchestrator that serves every request
    """

    async def ai_stream(request: Request) -> Any:
        """SSE endpoint for an orchestrated run."""
        project_id = request.path_params["project_id"]
        prompt = await _read_prompt(request)
        if prompt is None:
            return JSONResponse({"error": "prompt required"}, status_code=400)
        user_id = _user_id(request)

        async def event_generator() -> AsyncIterator[bytes]:
            writer = SSEWriter()
            cancel = asyncio.Event()
            run = orchestrator.spawn(
                orchestrator.stream(prompt, user_id, project_id, writer, cancel)
            )
            try:
                async for frame in writer.stream():
                    yield frame
            finally:
                # Reached early only when the client goes away.
                if not run.done():
                    logger.info("Client disconnected from run for %s/%s", user_id, project_id)
                    cancel.set()
                writer.close()

        return StreamingResponse(
            event_generator(), media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS
        )

    async def ai_execute(request: Request) -> JSONResponse:
        """Single-turn run returning the whole result at once."""
        project_id = request.path_params["project_id"]
        prompt = await _read_prompt(request)
        if prompt is None:
            return JSONResponse({"error": "prompt required"}, status_code=400)
        try:
            result = await orchestrator.execute(prompt, _user_id(request), project_id)
        except (ProviderError, ToolExecutionError) as e:
            return JSONResponse({"error": str(e)}, status_code=502)
        return JSONResponse(result.to_dict())

    async def ai_history(request: Request) -> JSONResponse:
        """Recent actions for the calling user."""
        project_id = request.path_params["project_id"]
        try:
            limit = int(request.query_params.get("limit", HISTORY_DEFAULT_LIMIT))
        except ValueError:
            return JSONResponse({"error": "limit must be an integer"}, status_code=400)
        limit = max(1, min(limit, HISTORY_MAX_LIMIT))
        actions = orchestrator.storage.recent_actions(_user_id(request), project_id, limit=limit)
        return JSONResponse({"actions": actions})

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        yield
        await orchestrator.drain()
        await orchestrator.aclose()

    routes = [
        Route("/ai/{project_id}/stream", ai_stream, methods=["POST"]),
        Route("/ai/{project_id}/execute", ai_execute, methods=["POST"]),
        Route("/ai/{project_id}/history", ai_history, methods=["GET"]),
    ]
    return Starlette(routes=routes, lifespan=lifespan)


def run_server(orchestrator: Orchestrator, host: str = "127.0.0.1", port: int = 8080) -> None:
    """Run the API server."""
    import uvicorn

    app = create_app(orchestrator)
    uvicorn.run(app, host=host, port=port)
