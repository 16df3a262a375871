"""Concrete text-generation and research clients.

``AnthropicGenerator`` satisfies :class:`~vibe_assistant.generation.TextGenerator`;
``PerplexityResearch`` and ``ClaudeResearch`` satisfy ``ResearchProvider``.
Service failures are raised as :class:`GenerationError`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import anthropic
import openai

from .config import VibeConfig, validate_config
from .errors import GenerationError
from .generation import DEFAULT_MAX_TOKENS, PlanGenerator, ResearchProvider

logger = logging.getLogger("vibe_assistant.llm")

CLAUDE_MODEL = "claude-sonnet-4-20250514"
PERPLEXITY_MODEL = "sonar-pro"
PERPLEXITY_BASE_URL = "https://api.perplexity.ai"

RESEARCH_SYSTEM_PROMPT = (
    "You are a technical research assistant. Provide concise, accurate information with "
    "specific recommendations when applicable. Focus on current best practices and "
    "real-world solutions."
)


class AnthropicGenerator:
    """Generate text with the Anthropic Messages API."""

    def __init__(self, api_key: str, model: str = CLAUDE_MODEL, client: Optional[Any] = None):
        self.model = model
        self._client = client or anthropic.Anthropic(api_key=api_key)

    def generate(self, system_prompt: str, user_prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        logger.debug(f"Requesting up to {max_tokens} tokens from {self.model}")
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            raise GenerationError(f"Anthropic request failed: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        raise GenerationError("No text response from Claude")


class ClaudeResearch:
    """Research through the same Anthropic generator."""

    def __init__(self, generator: AnthropicGenerator):
        self.generator = generator

    def research(self, query: str) -> str:
        return self.generator.generate(RESEARCH_SYSTEM_PROMPT, query, 4096)


class PerplexityResearch:
    """Research through Perplexity's OpenAI-compatible chat API."""

    def __init__(self, api_key: str, model: str = PERPLEXITY_MODEL, client: Optional[Any] = None):
        self.model = model
        self._client = client or openai.OpenAI(api_key=api_key, base_url=PERPLEXITY_BASE_URL)

    def research(self, query: str) -> str:
        logger.debug(f"Researching with {self.model}")
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                    {"role": "user", "content": query},
                ],
            )
        except openai.OpenAIError as e:
            raise GenerationError(f"Perplexity request failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            return "No response"
        return response.choices[0].message.content


def research_provider_for(config: VibeConfig, generator: AnthropicGenerator) -> ResearchProvider:
    """Perplexity when selected and keyed, otherwise Claude."""
    if config.research_provider == "perplexity" and config.perplexity_api_key:
        return PerplexityResearch(config.perplexity_api_key)
    return ClaudeResearch(generator)


def build_plan_generator(config: VibeConfig) -> PlanGenerator:
    """Build a :class:`PlanGenerator` from ``config``.

    Raises :class:`GenerationError` listing every configuration problem when
    the config cannot drive generation.
    """
    errors, _ = validate_config(config, require_generator=True)
    if errors:
        raise GenerationError("; ".join(errors))

    generator = AnthropicGenerator(config.anthropic_api_key)
    return PlanGenerator(generator, research=research_provider_for(config, generator))
