"""
Nova Orchestrator - AI action orchestration for content repositories.

Takes a natural-language instruction, decides whether it needs a plan, runs a
bounded tool-use loop against a language model, validates the outcome and
streams progress as Server-Sent Events. Audit logging and per-user context
accumulation happen in the background once the run has finished.

Example:
    from nova_orchestrator import Orchestrator, OrchestratorConfig, SSEWriter

    orchestrator = Orchestrator.from_config(OrchestratorConfig.from_env())

    writer = SSEWriter()
    orchestrator.spawn(
        orchestrator.stream("Create /en/pricing with a 3-tier table", "u1", "p1", writer)
    )
    async for frame in writer.stream():
        print(frame.decode(), end="")
    await orchestrator.drain()
"""

from nova_orchestrator.accumulator import ContextAccumulator, score_expertise
from nova_orchestrator.action_log import ActionLogger
from nova_orchestrator.classifier import ModeClassifier, heuristic_mode
from nova_orchestrator.config import MAX_TOOL_ITERATIONS, OrchestratorConfig
from nova_orchestrator.content_store import LocalContentStore
from nova_orchestrator.context import RunContext, build_run_context
from nova_orchestrator.embeddings import VoyageEmbedder
from nova_orchestrator.errors import (
    ConfigError,
    NovaError,
    PlanningError,
    ProviderError,
    RunCancelledError,
    ToolExecutionError,
)
from nova_orchestrator.executor import EXHAUSTED_RESPONSE, LoopOutcome, StepTracker, ToolUseLoop
from nova_orchestrator.ids import CounterAllocator, IdAllocator, UuidAllocator
from nova_orchestrator.llm import LLMClient, LLMResponse, TextBlock, ToolUseBlock
from nova_orchestrator.llm.anthropic import AnthropicClient
from nova_orchestrator.logging import get_logger, set_level, setup_logging
from nova_orchestrator.models import (
    ActionHistoryRecord,
    Plan,
    PlanStep,
    RunResult,
    StepResult,
    ToolCall,
    UserContext,
    ValidationResult,
)
from nova_orchestrator.orchestrator import Orchestrator
from nova_orchestrator.planner import Planner, fallback_plan
from nova_orchestrator.sse import SSEEvent, SSEWriter, parse_frames
from nova_orchestrator.storage import Storage
from nova_orchestrator.tools import ToolContext, ToolDefinition, ToolRegistry, create_default_registry
from nova_orchestrator.validator import Validator

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "Orchestrator",
    "OrchestratorConfig",
    "MAX_TOOL_ITERATIONS",
    "ModeClassifier",
    "heuristic_mode",
    "Planner",
    "fallback_plan",
    "ToolUseLoop",
    "StepTracker",
    "LoopOutcome",
    "EXHAUSTED_RESPONSE",
    "Validator",
    "ContextAccumulator",
    "score_expertise",
    "ActionLogger",
    "RunContext",
    "build_run_context",
    # Models
    "ToolCall",
    "Plan",
    "PlanStep",
    "StepResult",
    "ValidationResult",
    "RunResult",
    "UserContext",
    "ActionHistoryRecord",
    # SSE
    "SSEEvent",
    "SSEWriter",
    "parse_frames",
    # Tools
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
    "create_default_registry",
    # LLM
    "LLMClient",
    "LLMResponse",
    "TextBlock",
    "ToolUseBlock",
    "AnthropicClient",
    # Collaborators
    "Storage",
    "LocalContentStore",
    "VoyageEmbedder",
    # IDs
    "IdAllocator",
    "UuidAllocator",
    "CounterAllocator",
    # Errors
    "NovaError",
    "ConfigError",
    "ProviderError",
    "PlanningError",
    "ToolExecutionError",
    "RunCancelledError",
    # Logging
    "setup_logging",
    "get_logger",
    "set_level",
]
