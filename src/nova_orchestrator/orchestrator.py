"""
Orchestrator: wires classification, planning, the tool-use loop and
validation into one run, and schedules housekeeping afterwards.

Example:
    orchestrator = Orchestrator.from_config(OrchestratorConfig.from_env())
    writer = SSEWriter()
    task = orchestrator.spawn(
        orchestrator.stream("Create /en/pricing", "user-1", "proj-1", writer)
    )
    async for frame in writer.stream():
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from nova_orchestrator.accumulator import ContextAccumulator
from nova_orchestrator.action_log import ActionLogger, RunStatus
from nova_orchestrator.classifier import ModeClassifier
from nova_orchestrator.collaborators import ContentStore, Embedder, EmbedQueue, VectorIndex
from nova_orchestrator.config import OrchestratorConfig
from nova_orchestrator.content_store import LocalContentStore
from nova_orchestrator.context import RunContext, build_run_context
from nova_orchestrator.embeddings import VoyageEmbedder
from nova_orchestrator.errors import (
    PlanningError,
    ProviderError,
    RunCancelledError,
    ToolExecutionError,
)
from nova_orchestrator.executor import StepTracker, ToolUseLoop
from nova_orchestrator.ids import IdAllocator, UuidAllocator
from nova_orchestrator.llm.anthropic import AnthropicClient
from nova_orchestrator.llm.base import LLMClient
from nova_orchestrator.logging import get_logger, run_logger
from nova_orchestrator.models import Mode, Plan, RunResult, ToolCall, ValidationResult
from nova_orchestrator.planner import Planner, fallback_plan
from nova_orchestrator.sse import (
    DONE,
    ERROR,
    INSIGHT,
    MODE,
    PLAN_READY,
    PLAN_START,
    VALIDATION_COMPLETE,
    VALIDATION_START,
    SSEWriter,
)
from nova_orchestrator.storage import Storage
from nova_orchestrator.tools import create_default_registry
from nova_orchestrator.tools.registry import ToolContext, ToolRegistry
from nova_orchestrator.validator import Validator

logger = get_logger("orchestrator")


class Orchestrator:
    """Run prompts end to end against one storage backend and content store."""

    def __init__(
        self,
        llm: LLMClient,
        storage: Storage,
        content: ContentStore | None = None,
        config: OrchestratorConfig | None = None,
        registry: ToolRegistry | None = None,
        classifier: ModeClassifier | None = None,
        planner: Planner | None = None,
        validator: Validator | None = None,
        embedder: Embedder | None = None,
        vectors: VectorIndex | None = None,
        embed_queue: EmbedQueue | None = None,
        insight_ids: IdAllocator | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.llm = llm
        self.storage = storage
        self.content = content
        self.registry = registry or create_default_registry()
        self.classifier = classifier or ModeClassifier()
        self.planner = planner or Planner(
            llm, max_steps=self.config.max_plan_steps, timeout=self.config.llm_timeout_seconds
        )
        self.validator = validator or Validator(
            self.registry, llm, timeout=self.config.llm_timeout_seconds
        )
        self.loop = ToolUseLoop(llm, self.registry, self.config)
        self.action_logger = ActionLogger(
            storage,
            prompt_chars=self.config.prompt_log_chars,
            response_chars=self.config.response_log_chars,
        )
        self.accumulator = ContextAccumulator(
            storage, active_paths_limit=self.config.active_paths_limit
        )
        self.embedder = embedder
        self.vectors = vectors
        self.embed_queue = embed_queue
        self.insight_ids = insight_ids or UuidAllocator(prefix="insight-")
        self._background: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_config(
        cls, config: OrchestratorConfig, vectors: VectorIndex | None = None
    ) -> Orchestrator:
        """
        Build an orchestrator with the default Anthropic, SQLite and local-content stack.

        Semantic search needs both a vector index and an embedder, so the
        Voyage embedder is only created when ``vectors`` is given and a
        Voyage key is configured.
        """
        llm = AnthropicClient(
            api_key=config.api_key,
            model=config.model,
            max_tokens=config.max_tokens,
            timeout=config.llm_timeout_seconds,
        )
        embedder = (
            VoyageEmbedder(config.voyage_api_key, model=config.voyage_model)
            if config.voyage_api_key and vectors is not None
            else None
        )
        return cls(
            llm=llm,
            storage=Storage(config.db_path),
            content=LocalContentStore(config.content_root),
            config=config,
            classifier=ModeClassifier.from_config(config),
            embedder=embedder,
            vectors=vectors,
        )

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule a task whose reference is held until it finishes."""
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait for all scheduled tasks, including ones they schedule."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Release clients owned by collaborators, such as the embedder's HTTP client."""
        aclose = getattr(self.embedder, "aclose", None)
        if aclose is not None:
            await aclose()

    def _schedule_housekeeping(
        self,
        user_id: str,
        project_id: str,
        prompt: str,
        response: str,
        tool_calls: list[ToolCall],
        status: RunStatus,
        cancel: asyncio.Event | None,
    ) -> None:
        self.spawn(
            self.action_logger.log_run(user_id, project_id, prompt, response, tool_calls, status)
        )
        if status == "completed":
            self.spawn(
                self.accumulator.accumulate(user_id, project_id, prompt, tool_calls, cancel)
            )

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def tool_context(self, user_id: str, project_id: str) -> ToolContext:
        return ToolContext(
            user_id=user_id,
            project_id=project_id,
            content=self.content,
            search=self.storage,
            vectors=self.vectors,
            embedder=self.embedder,
            brand=self.storage,
            blocks=self.storage,
            telemetry=self.storage,
            delivery=self.storage,
            history=self.storage,
            embed_queue=self.embed_queue,
            llm=self.llm,
        )

    async def _classify(self, prompt: str) -> Mode:
        try:
            return await self.classifier.classify(prompt)
        except Exception as e:
            logger.warning("Classification failed, defaulting to single: %s", e)
            return "single"

    async def _plan(self, prompt: str, run_context: RunContext) -> Plan:
        try:
            return await self.planner.create_plan(
                prompt, self.registry.list_tools(), run_context
            )
        except PlanningError as e:
            logger.warning("%s; executing directly", e)
            return fallback_plan(prompt)

    @staticmethod
    def _check_cancel(cancel: asyncio.Event) -> None:
        if cancel.is_set():
            raise RunCancelledError("Run cancelled")

    def _emit_insights(self, writer: SSEWriter, validation: ValidationResult) -> None:
        for suggestion in validation.suggestions:
            writer.write(
                INSIGHT,
                {
                    "id": self.insight_ids.next_id(),
                    "message": suggestion,
                    "type": "suggestion",
                    "actions": [],
                },
            )

    async def stream(
        self,
        prompt: str,
        user_id: str,
        project_id: str,
        writer: SSEWriter,
        cancel: asyncio.Event | None = None,
    ) -> RunResult | None:
        """
        Run a prompt, reporting progress as SSE frames on ``writer``.

        Exactly one terminal frame (``done`` or ``error``) is written unless
        the run is cancelled, in which case nothing further is written.
        Returns the result, or None if the run did not complete.
        """
        cancel = cancel or asyncio.Event()
        response = ""
        tool_calls: list[ToolCall] = []
        status: RunStatus = "error"
        result: RunResult | None = None
        log = run_logger(logger, user_id, project_id)
        log.info("Run started")

        try:
            mode = await self._classify(prompt)
            self._check_cancel(cancel)
            writer.write(MODE, {"mode": mode})
            log.info("Mode: %s", mode)

            run_context = await asyncio.to_thread(
                build_run_context, self.storage, user_id, project_id
            )

            plan: Plan | None = None
            if mode == "multi":
                writer.write(PLAN_START, {})
                plan = await self._plan(prompt, run_context)
                self._check_cancel(cancel)
                writer.write(PLAN_READY, plan.to_event())
                log.info("Plan ready: %s (%d steps)", plan.intent, plan.step_count)

            tracker = StepTracker(writer, plan)
            outcome = await self.loop.run(
                prompt,
                run_context.system_prompt(plan.render() if plan else None),
                self.tool_context(user_id, project_id),
                tracker,
                cancel,
            )
            response, tool_calls = outcome.response, outcome.tool_calls

            validation: ValidationResult | None = None
            if self.config.validation_enabled and self.validator.should_validate(tool_calls):
                self._check_cancel(cancel)
                writer.write(VALIDATION_START, {})
                validation = await self.validator.validate(response, tool_calls, plan)
                self._check_cancel(cancel)
                writer.write(VALIDATION_COMPLETE, validation.to_event())
                if self.config.emit_insights:
                    self._emit_insights(writer, validation)

            self._check_cancel(cancel)
            result = RunResult(
                response=response,
                tool_calls=tool_calls,
                mode=mode,
                plan=plan,
                validation=validation,
                iterations=outcome.iterations,
                exhausted=outcome.exhausted,
            )
            writer.write(DONE, result.to_dict())
            status = "completed"
            log.info(
                "Run finished: %d tool calls in %d iterations", len(tool_calls), outcome.iterations
            )
        except RunCancelledError:
            status = "cancelled"
            log.info("Run cancelled")
        except asyncio.CancelledError:
            status = "cancelled"
            cancel.set()
            raise
        except (ProviderError, ToolExecutionError) as e:
            response = str(e)
            writer.write(ERROR, {"error": str(e)})
            log.warning("Run failed: %s", e)
        except Exception as e:
            response = str(e)
            writer.write(ERROR, {"error": "Internal error"})
            log.exception("Run failed unexpectedly")
        finally:
            writer.close()
            self._schedule_housekeeping(
                user_id, project_id, prompt, response, tool_calls, status, cancel
            )
        return result

    async def execute(self, prompt: str, user_id: str, project_id: str) -> RunResult:
        """
        Single-turn run without classification, planning or streaming.

        Raises:
            ProviderError: If a model call fails
            ToolExecutionError: If a tool fails and the run is configured to abort on it
        """
        run_context = await asyncio.to_thread(
            build_run_context, self.storage, user_id, project_id
        )
        status: RunStatus = "error"
        response = ""
        tool_calls: list[ToolCall] = []
        try:
            outcome = await self.loop.run(
                prompt,
                run_context.system_prompt(),
                self.tool_context(user_id, project_id),
                StepTracker(),
            )
            response, tool_calls = outcome.response, outcome.tool_calls
            status = "completed"
            return RunResult(
                response=response,
                tool_calls=tool_calls,
                iterations=outcome.iterations,
                exhausted=outcome.exhausted,
            )
        except (ProviderError, ToolExecutionError) as e:
            response = str(e)
            raise
        finally:
            self._schedule_housekeeping(
                user_id, project_id, prompt, response, tool_calls, status, None
            )
