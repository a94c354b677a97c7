"""End-to-end tests for orchestrated runs."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from unittest.mock import AsyncMock, Mock

import pytest

from conftest import RecordingSink, ScriptedLLM, text_response, tool_response
from nova_orchestrator.classifier import ModeClassifier
from nova_orchestrator.config import OrchestratorConfig
from nova_orchestrator.content_store import LocalContentStore
from nova_orchestrator.embeddings import VoyageEmbedder
from nova_orchestrator.errors import ProviderError
from nova_orchestrator.executor import EXHAUSTED_RESPONSE
from nova_orchestrator.ids import CounterAllocator
from nova_orchestrator.orchestrator import Orchestrator
from nova_orchestrator.planner import FALLBACK_INTENT
from nova_orchestrator.sse import SSEWriter
from nova_orchestrator.storage import Storage


def _plan_response(*steps: tuple[str, str, str]):
    return tool_response(
        (
            "create_plan",
            {
                "intent": "Launch the sale page",
                "steps": json.dumps(
                    [{"id": i, "description": d, "toolName": t} for i, d, t in steps]
                ),
                "requiresValidation": "false",
            },
        )
    )


@pytest.fixture
def make_orchestrator(storage: Storage, content_store: LocalContentStore, config: OrchestratorConfig):
    def factory(script, **kwargs) -> tuple[Orchestrator, ScriptedLLM]:
        llm = ScriptedLLM(script)
        orchestrator = Orchestrator(
            llm=llm,
            storage=storage,
            content=content_store,
            config=kwargs.pop("config", config),
            classifier=ModeClassifier(),
            **kwargs,
        )
        return orchestrator, llm

    return factory


class TestStreamSingleMode:
    @pytest.mark.asyncio
    async def test_list_pages_run(
        self, make_orchestrator, content_store: LocalContentStore, storage: Storage,
        sink: RecordingSink,
    ) -> None:
        await content_store.put_source("/en/index", "<h1>Home</h1>")
        orchestrator, llm = make_orchestrator([
            tool_response(("list_pages", {"path": "/en"})),
            text_response("There is one page: /en/index."),
        ])

        result = await orchestrator.stream(
            "list all pages under /en", "u1", "p1", SSEWriter(sink=sink)
        )
        await orchestrator.drain()

        assert sink.names == ["mode", "step_start", "tool_call", "step_complete", "done"]
        events = sink.events
        assert events[0].data == {"mode": "single"}
        assert events[2].data["input"] == {"path": "/en"}
        done = events[-1].data
        assert done["response"] == "There is one page: /en/index."
        assert [tc["name"] for tc in done["toolCalls"]] == ["list_pages"]
        assert '"/en/index"' in done["toolCalls"][0]["result"]

        assert result is not None and result.mode == "single"
        assert len(llm.calls) == 2

        [record] = storage.recent_actions("u1", "p1")
        assert record["action_type"] == "ai_execute"
        assert record["description"] == "AI: list all pages under /en"
        assert record["output"]["toolCalls"] == 1
        ctx = storage.get_user_context("u1", "p1")
        assert ctx.tool_frequency == {"list_pages": 1}
        assert ctx.active_paths == ["/en"]

    @pytest.mark.asyncio
    async def test_system_prompt_carries_recent_actions(
        self, make_orchestrator, storage: Storage, sink: RecordingSink
    ) -> None:
        storage.add_action("u1", "p1", "create_page", "AI created page at /en/sale", {})
        orchestrator, llm = make_orchestrator([text_response("Hello")])

        await orchestrator.stream("what did I just make?", "u1", "p1", SSEWriter(sink=sink))

        assert "AI created page at /en/sale" in llm.calls[0]["system"]
        assert sink.names == ["mode", "done"]

    @pytest.mark.asyncio
    async def test_exhaustion_still_completes(
        self, make_orchestrator, content_store: LocalContentStore, sink: RecordingSink
    ) -> None:
        orchestrator, llm = make_orchestrator(
            [tool_response(("list_pages", {})) for _ in range(10)]
        )

        await orchestrator.stream("read /en/index", "u1", "p1", SSEWriter(sink=sink))

        assert len(llm.calls) == 10
        assert sink.names[-1] == "done"
        assert sink.events[-1].data["response"] == EXHAUSTED_RESPONSE
        assert sink.names.count("step_complete") == 10


class TestStreamMultiMode:
    @pytest.mark.asyncio
    async def test_planned_run(
        self, make_orchestrator, content_store: LocalContentStore, storage: Storage,
        sink: RecordingSink,
    ) -> None:
        orchestrator, _ = make_orchestrator([
            _plan_response(
                ("1", "Create the sale page", "create_page"),
                ("2", "Make it generative", "set_delivery_mode"),
            ),
            tool_response(("create_page", {"path": "/en/sale", "content": "<h1>Sale</h1>"})),
            tool_response(("set_delivery_mode", {"path": "/en/sale", "mode": "generative"})),
            text_response("Created /en/sale and set it to generative."),
        ])

        await orchestrator.stream(
            "Create /en/sale and then set it to generative", "u1", "p1", SSEWriter(sink=sink)
        )
        await orchestrator.drain()

        assert sink.names == [
            "mode",
            "plan_start",
            "plan_ready",
            "step_start", "tool_call", "step_complete",
            "step_start", "tool_call", "step_complete",
            "validation_start",
            "validation_complete",
            "done",
        ]
        events = sink.events
        assert events[0].data == {"mode": "multi"}
        assert events[2].data["stepCount"] == 2
        assert [e.data["stepId"] for e in events if e.event == "step_start"] == ["1", "2"]
        assert events[-2].data == {"passed": True, "issues": [], "suggestions": []}

        assert await content_store.get_source("/en/sale") == "<h1>Sale</h1>"
        assert storage.get_delivery_mode("p1", "/en/sale") == "generative"

    @pytest.mark.asyncio
    async def test_planning_failure_falls_back_to_direct_execution(
        self, make_orchestrator, sink: RecordingSink
    ) -> None:
        orchestrator, _ = make_orchestrator([
            text_response("I cannot plan that"),
            text_response("Here is the summary."),
        ])

        await orchestrator.stream(
            "First read /en/index, then summarize it", "u1", "p1", SSEWriter(sink=sink)
        )

        assert sink.names == ["mode", "plan_start", "plan_ready", "done"]
        plan = sink.events[2].data
        assert plan["intent"] == FALLBACK_INTENT
        assert plan["stepCount"] == 1

    @pytest.mark.asyncio
    async def test_cancel_after_plan_ready_stops_writes(
        self, make_orchestrator, storage: Storage
    ) -> None:
        cancel = asyncio.Event()
        sink = RecordingSink()

        def cancelling_sink(frame: bytes) -> None:
            sink(frame)
            if frame.startswith(b"event: plan_ready"):
                cancel.set()

        orchestrator, llm = make_orchestrator([
            _plan_response(("1", "Create", "create_page")),
            tool_response(("create_page", {"path": "/en/x", "content": "<p>x</p>"})),
        ])
        writer = SSEWriter(sink=cancelling_sink)

        result = await orchestrator.stream(
            "Create /en/x and then publish it", "u1", "p1", writer, cancel
        )
        await orchestrator.drain()

        assert result is None
        assert sink.names == ["mode", "plan_start", "plan_ready"]
        assert writer.closed
        assert len(llm.calls) == 1

        [record] = storage.recent_actions("u1", "p1")
        assert record["status"] == "cancelled"
        assert storage.get_user_context("u1", "p1").expertise_level is None

    @pytest.mark.asyncio
    async def test_cancel_while_tool_runs_stops_writes(
        self, make_orchestrator, content_store: LocalContentStore, storage: Storage
    ) -> None:
        await content_store.put_source("/en/index", "<h1>Home</h1>")
        cancel = asyncio.Event()
        sink = RecordingSink()

        def cancelling_sink(frame: bytes) -> None:
            sink(frame)
            if frame.startswith(b"event: tool_call"):
                cancel.set()

        orchestrator, llm = make_orchestrator([
            tool_response(("list_pages", {"path": "/en"})),
            text_response("There is one page."),
        ])
        writer = SSEWriter(sink=cancelling_sink)

        result = await orchestrator.stream("list all pages under /en", "u1", "p1", writer, cancel)
        await orchestrator.drain()

        assert result is None
        assert sink.names == ["mode", "step_start", "tool_call"]
        assert writer.closed
        assert len(llm.calls) == 1
        [record] = storage.recent_actions("u1", "p1")
        assert record["status"] == "cancelled"


class TestStreamErrors:
    @pytest.mark.asyncio
    async def test_provider_error_is_terminal(
        self, make_orchestrator, storage: Storage, sink: RecordingSink
    ) -> None:
        orchestrator, _ = make_orchestrator([ProviderError("Anthropic API error: 500")])

        result = await orchestrator.stream("read /en/index", "u1", "p1", SSEWriter(sink=sink))
        await orchestrator.drain()

        assert result is None
        assert sink.names == ["mode", "error"]
        assert sink.events[-1].data == {"error": "Anthropic API error: 500"}
        [record] = storage.recent_actions("u1", "p1")
        assert record["status"] == "error"
        assert storage.get_user_context("u1", "p1").tool_frequency == {}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported_generically(
        self, make_orchestrator, sink: RecordingSink
    ) -> None:
        orchestrator, _ = make_orchestrator([RuntimeError("secret internals")])

        await orchestrator.stream("read /en/index", "u1", "p1", SSEWriter(sink=sink))

        assert sink.names == ["mode", "error"]
        assert sink.events[-1].data == {"error": "Internal error"}

    @pytest.mark.asyncio
    async def test_tool_failure_abort_when_configured(
        self, make_orchestrator, tmp_path, sink: RecordingSink
    ) -> None:
        config = OrchestratorConfig(
            db_path=tmp_path / "nova.db",
            content_root=tmp_path / "content",
            continue_on_tool_error=False,
        )
        orchestrator, _ = make_orchestrator(
            [tool_response(("read_page", {"path": "/missing"}))], config=config
        )

        await orchestrator.stream("read /missing", "u1", "p1", SSEWriter(sink=sink))

        assert sink.names == ["mode", "step_start", "tool_call", "step_complete", "error"]
        assert "read_page" in sink.events[-1].data["error"]


class TestValidationAndInsights:
    @pytest.mark.asyncio
    async def test_insights_follow_validation(
        self, make_orchestrator, tmp_path, sink: RecordingSink
    ) -> None:
        config = OrchestratorConfig(
            db_path=tmp_path / "nova.db",
            content_root=tmp_path / "content",
            emit_insights=True,
        )
        orchestrator, _ = make_orchestrator(
            [
                tool_response(
                    ("create_page", {"path": "/en/a", "content": "<p>a</p>"}),
                    ("create_page", {"path": "/en/b", "content": "<p>b</p>"}),
                    ("create_page", {"path": "/en/c", "content": "<p>c</p>"}),
                ),
                text_response("Created three pages."),
                text_response(
                    '{"passed": true, "issues": [], "suggestions": ["Link the pages from /en"]}'
                ),
            ],
            config=config,
            insight_ids=CounterAllocator(prefix="insight-"),
        )

        await orchestrator.stream("Create a page at /en/a", "u1", "p1", SSEWriter(sink=sink))

        assert sink.names[-4:] == ["validation_start", "validation_complete", "insight", "done"]
        insight = sink.events[-2].data
        assert insight == {
            "id": "insight-1",
            "message": "Link the pages from /en",
            "type": "suggestion",
            "actions": [],
        }

    @pytest.mark.asyncio
    async def test_validation_can_be_disabled(
        self, make_orchestrator, tmp_path, sink: RecordingSink
    ) -> None:
        config = OrchestratorConfig(
            db_path=tmp_path / "nova.db",
            content_root=tmp_path / "content",
            validation_enabled=False,
        )
        orchestrator, _ = make_orchestrator(
            [
                tool_response(("create_page", {"path": "/en/a", "content": "<p>a</p>"})),
                text_response("Done"),
            ],
            config=config,
        )

        await orchestrator.stream("Create a page at /en/a", "u1", "p1", SSEWriter(sink=sink))

        assert "validation_start" not in sink.names


class TestExecute:
    @pytest.mark.asyncio
    async def test_execute_returns_result(self, make_orchestrator, storage: Storage) -> None:
        orchestrator, llm = make_orchestrator([text_response("Hi there")])

        result = await orchestrator.execute("First do this, then that", "u1", "p1")
        await orchestrator.drain()

        assert result.to_dict() == {"response": "Hi there", "toolCalls": []}
        assert len(llm.calls) == 1
        assert storage.recent_actions("u1", "p1")[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_execute_reraises_provider_errors(
        self, make_orchestrator, storage: Storage
    ) -> None:
        orchestrator, _ = make_orchestrator([ProviderError("overloaded", status_code=529)])

        with pytest.raises(ProviderError):
            await orchestrator.execute("hi", "u1", "p1")
        await orchestrator.drain()

        assert storage.recent_actions("u1", "p1")[0]["status"] == "error"


class TestBackgroundTasks:
    @pytest.mark.asyncio
    async def test_drain_waits_for_housekeeping(self, make_orchestrator, storage: Storage) -> None:
        orchestrator, _ = make_orchestrator([text_response("ok")])

        await orchestrator.stream("hello", "u1", "p1", SSEWriter())
        assert orchestrator.pending_tasks > 0

        await orchestrator.drain()

        assert orchestrator.pending_tasks == 0
        assert len(storage.recent_actions("u1", "p1")) == 1

    @pytest.mark.asyncio
    async def test_aclose_releases_embedder(self, make_orchestrator) -> None:
        embedder = AsyncMock()
        orchestrator, _ = make_orchestrator([], embedder=embedder)

        await orchestrator.aclose()

        embedder.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_without_embedder(self, make_orchestrator) -> None:
        orchestrator, _ = make_orchestrator([])
        await orchestrator.aclose()


class TestFromConfig:
    @pytest.mark.asyncio
    async def test_embedder_needs_a_vector_index(self, config: OrchestratorConfig) -> None:
        config = replace(config, api_key="test-key", voyage_api_key="voyage-key")

        orchestrator = Orchestrator.from_config(config)

        assert orchestrator.embedder is None
        assert orchestrator.vectors is None

    @pytest.mark.asyncio
    async def test_embedder_wired_with_vector_index(self, config: OrchestratorConfig) -> None:
        config = replace(config, api_key="test-key", voyage_api_key="voyage-key")
        vectors = Mock()

        orchestrator = Orchestrator.from_config(config, vectors=vectors)
        try:
            assert isinstance(orchestrator.embedder, VoyageEmbedder)
            assert orchestrator.vectors is vectors
            assert orchestrator.tool_context("u1", "p1").vectors is vectors
        finally:
            await orchestrator.aclose()

        assert orchestrator.embedder._http_client.is_closed
