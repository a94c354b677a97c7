"""
Mode classification: does a prompt need a plan (``multi``) or a single pass?

A small OpenAI-compatible chat model answers when one is configured. Any
failure there, or no configuration at all, falls back to a regex heuristic.
Classification never calls tools.
"""

from __future__ import annotations

import re

import httpx
from openai import AsyncOpenAI

from nova_orchestrator.config import OrchestratorConfig
from nova_orchestrator.logging import get_logger
from nova_orchestrator.models import Mode

logger = get_logger("classifier")

CLASSIFIER_SYSTEM_PROMPT = (
    'Classify the user request as "multi" (requires multiple steps, tools, or complex '
    'reasoning) or "single" (simple one-step action). Respond with only "multi" or "single".'
)

# Any one of these marks a prompt as multi-step.
MULTI_STEP_PATTERNS = [
    re.compile(r"\band\b.*\bthen\b", re.IGNORECASE),
    re.compile(r"\bfirst\b.*\bthen\b", re.IGNORECASE),
    re.compile(r"\bmultiple\b", re.IGNORECASE),
    re.compile(r"\bcreate.*\band\b.*\b(set|update|configure)", re.IGNORECASE),
    re.compile(r"\banalyze\b.*\band\b.*\b(fix|improve|suggest)", re.IGNORECASE),
    re.compile(r"step\s*\d", re.IGNORECASE),
    re.compile(r"\d+\.\s+"),
]

# Bulk scope only counts when the prompt also changes something;
# "list all pages" is a single read.
BULK_SCOPE_PATTERNS = [
    re.compile(r"\beach\b.*\bpage\b", re.IGNORECASE),
    re.compile(r"\ball\b.*\bpages\b", re.IGNORECASE),
]
MUTATING_VERB = re.compile(
    r"\b(create|update|set|delete|remove|move|copy|rename|change|fix|add|edit|configure|"
    r"rewrite|generate)\b",
    re.IGNORECASE,
)


def heuristic_mode(prompt: str) -> Mode:
    if any(p.search(prompt) for p in MULTI_STEP_PATTERNS):
        return "multi"
    if MUTATING_VERB.search(prompt) and any(p.search(prompt) for p in BULK_SCOPE_PATTERNS):
        return "multi"
    return "single"


class ModeClassifier:
    """
    Classify prompts as ``single`` or ``multi``.

    Example:
        classifier = ModeClassifier.from_config(config)
        mode = await classifier.classify("Create /en/pricing and then set it to generative")
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = "llama-4-scout-17b-16e-instruct",
    ) -> None:
        self.client = client
        self.model = model

    @classmethod
    def from_config(cls, config: OrchestratorConfig) -> ModeClassifier:
        if not config.classifier_api_key:
            return cls(model=config.classifier_model)
        client = AsyncOpenAI(
            api_key=config.classifier_api_key,
            base_url=config.classifier_base_url,
            http_client=httpx.AsyncClient(timeout=config.classifier_timeout_seconds),
            max_retries=0,
        )
        return cls(client=client, model=config.classifier_model)

    async def classify(self, prompt: str) -> Mode:
        if self.client is None:
            return heuristic_mode(prompt)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=10,
                temperature=0,
            )
        except Exception as e:
            logger.warning("Classifier call failed, using heuristic: %s", e)
            return heuristic_mode(prompt)

        answer = (response.choices[0].message.content or "").strip().lower() if response.choices else ""
        return "multi" if answer == "multi" else "single"
