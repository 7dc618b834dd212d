"""Text generation backed by the OpenAI Agents SDK."""

from __future__ import annotations

import json
import logging
import re
from time import perf_counter
from typing import Any, Dict, Optional, Protocol, cast

from agents import Agent, ModelSettings, RunConfig, Runner
from openai.types.shared.reasoning import Reasoning
from openai.types.shared.reasoning_effort import ReasoningEffort

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

GENERATION_INSTRUCTIONS = (
    "You are CareerAI, a career advisor for students in the Indian job market. "
    "Follow the output format requested in each prompt exactly. "
    "When a prompt asks for JSON, reply with JSON only and no surrounding prose."
)

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)


class GenerationError(RuntimeError):
    """Raised when the generation service is unavailable or returns nothing usable."""


class GenerationService(Protocol):
    async def generate(self, prompt: str) -> str:  # pragma: no cover - protocol definition
        ...


def _reasoning_effort(value: str) -> ReasoningEffort:
    allowed = {"minimal", "low", "medium", "high"}
    effort = value if value in allowed else "low"
    return cast(ReasoningEffort, effort)


_agent_cache: Dict[str, Agent[Any]] = {}


def _generation_agent(model: str) -> Agent[Any]:
    if model not in _agent_cache:
        _agent_cache[model] = Agent(
            name="CareerAI Advisor",
            instructions=GENERATION_INSTRUCTIONS,
            model=model,
            tools=[],
            model_settings=ModelSettings(store=False),
        )
    return _agent_cache[model]


class AgentGenerationService:
    """Runs a single-turn agent per prompt and returns its final text output."""

    def __init__(self, settings: Settings) -> None:
        self._model = settings.generation_model
        self._reasoning = settings.generation_reasoning

    @property
    def model(self) -> str:
        return self._model

    async def generate(self, prompt: str) -> str:
        agent = _generation_agent(self._model)
        started = perf_counter()
        try:
            result = await Runner.run(
                agent,
                prompt,
                run_config=RunConfig(
                    model_settings=ModelSettings(
                        reasoning=Reasoning(effort=_reasoning_effort(self._reasoning)),
                    )
                ),
            )
        except Exception as exc:  # noqa: BLE001
            raise GenerationError(f"Generation call failed: {exc}") from exc

        output = result.final_output
        text = output if isinstance(output, str) else json.dumps(output, default=str)
        if not text or not text.strip():
            raise GenerationError("Generation returned an empty response.")
        latency_ms = round((perf_counter() - started) * 1000.0, 2)
        logger.info("Generation completed with %s in %sms (%d chars)", self._model, latency_ms, len(text))
        return text


def create_generation_service(settings: Optional[Settings] = None) -> Optional[GenerationService]:
    """Return a live service, or None when generation is disabled or no API key is set."""
    resolved = settings or get_settings()
    if not resolved.generation_enabled:
        logger.info("Text generation disabled; deterministic fallbacks will be used.")
        return None
    if not resolved.openai_api_key:
        logger.warning("OPENAI_API_KEY is not configured; deterministic fallbacks will be used.")
        return None
    return AgentGenerationService(resolved)


def strip_code_fences(text: str) -> str:
    stripped = text.strip()
    match = _FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


__all__ = [
    "AgentGenerationService",
    "GenerationError",
    "GenerationService",
    "create_generation_service",
    "strip_code_fences",
]
