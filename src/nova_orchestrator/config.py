"""
Configuration for the orchestrator.

Provides a configuration object that can be loaded from YAML, a plain
dictionary or environment variables, or constructed programmatically.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from nova_orchestrator.errors import ConfigError

# Hard ceiling on model round-trips per run. Configuration may lower it, never raise it.
MAX_TOOL_ITERATIONS = 10


@dataclass
class OrchestratorConfig:
    """
    Main configuration for the orchestrator.

    Example YAML:
        model: claude-sonnet-4-5-20250929
        max_iterations: 10
        llm_timeout_seconds: 120
        continue_on_tool_error: true
        db_path: ./nova.db
        content_root: ./content
        classifier_base_url: https://api.cerebras.ai/v1
        classifier_model: llama-4-scout-17b-16e-instruct
    """

    # Language model
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 4096
    api_key: str | None = None  # Defaults to ANTHROPIC_API_KEY

    # Tool-use loop
    max_iterations: int = MAX_TOOL_ITERATIONS
    llm_timeout_seconds: float = 120.0
    tool_timeout_seconds: float = 60.0
    continue_on_tool_error: bool = True

    # Planning / validation
    max_plan_steps: int = 10
    validation_enabled: bool = True
    emit_insights: bool = False

    # Housekeeping
    prompt_log_chars: int = 100
    response_log_chars: int = 500
    active_paths_limit: int = 20

    # Storage
    db_path: Path = Path("nova.db")
    content_root: Path = Path("content")

    # Fast mode classifier (OpenAI-compatible endpoint, optional)
    classifier_base_url: str | None = None
    classifier_api_key: str | None = None
    classifier_model: str = "llama-4-scout-17b-16e-instruct"
    classifier_timeout_seconds: float = 5.0

    # Embeddings for semantic search (optional)
    voyage_api_key: str | None = None
    voyage_model: str = "voyage-3"

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigError("max_iterations must be at least 1")
        self.max_iterations = min(self.max_iterations, MAX_TOOL_ITERATIONS)
        self.db_path = Path(self.db_path)
        self.content_root = Path(self.content_root)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrchestratorConfig:
        """Create config from a dictionary. Unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path) -> OrchestratorConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> OrchestratorConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls, **overrides: Any) -> OrchestratorConfig:
        """Create config from environment variables (a ``.env`` file is loaded first)."""
        load_dotenv()
        env: dict[str, Any] = {
            "api_key": os.environ.get("ANTHROPIC_API_KEY"),
            "classifier_api_key": os.environ.get("CLASSIFIER_API_KEY"),
            "classifier_base_url": os.environ.get("CLASSIFIER_BASE_URL"),
            "voyage_api_key": os.environ.get("VOYAGE_API_KEY"),
        }
        optional = {
            "model": "NOVA_MODEL",
            "db_path": "NOVA_DB_PATH",
            "content_root": "NOVA_CONTENT_ROOT",
            "classifier_model": "CLASSIFIER_MODEL",
            "voyage_model": "VOYAGE_MODEL",
            "log_level": "NOVA_LOG_LEVEL",
        }
        for key, var in optional.items():
            if os.environ.get(var):
                env[key] = os.environ[var]
        env.update(overrides)
        return cls(**env)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary, omitting secrets."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name.endswith("api_key"):
                value = "***" if value else None
            elif isinstance(value, Path):
                value = str(value)
            data[f.name] = value
        return data
