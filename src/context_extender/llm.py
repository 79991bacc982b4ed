"""Claude client and the prompt helpers built on top of it."""

from __future__ import annotations

import logging
import math
import os
from typing import Protocol

import anthropic

from .config import CHARS_PER_TOKEN, Settings
from .errors import CollaboratorError
from .parsing import parse_summary_keywords

logger = logging.getLogger(__name__)

CONVERSATION_SUMMARY_SYSTEM = (
    "You are an expert assistant that creates concise, accurate summaries of conversations. "
    "Focus on capturing the key points, questions, and information from the conversation."
)

MIN_WAIT_MS = 500


class LanguageModel(Protocol):
    """Submit a prompt, get text back."""

    def complete(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> str: ...


class ClaudeClient:
    """Anthropic Messages API wrapper implementing :class:`LanguageModel`."""

    def __init__(self, settings: Settings, api_key: str | None = None):
        self.settings = settings
        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("CLAUDE_API_KEY")
        self.client = anthropic.Anthropic(api_key=api_key)

    def complete(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> str:
        claude = self.settings.claude
        try:
            response = self.client.messages.create(
                model=claude.model,
                max_tokens=max_tokens or claude.response_max_tokens,
                temperature=0.7 if temperature is None else temperature,
                system=system or claude.default_system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            raise CollaboratorError(f"Failed to get response from Claude: {e}") from e

        logger.debug("Received response from Claude (prompt length %d)", len(prompt))
        for block in response.content:
            if block.type == "text":
                return block.text
        raise CollaboratorError("Claude returned no text content")


def wait_time_seconds(text: str, tokens_per_minute: int, floor_ms: int = MIN_WAIT_MS) -> float:
    """Pause needed before sending ``text`` to stay within ``tokens_per_minute``."""
    estimated_tokens = len(text) / CHARS_PER_TOKEN
    wait_ms = math.ceil(estimated_tokens / tokens_per_minute * 60 * 1000)
    return max(floor_ms, wait_ms) / 1000


def create_summary_and_keywords(
    llm: LanguageModel, content: str, settings: Settings
) -> tuple[str, list[str]]:
    prompt = settings.prompts.summarize_template.replace("{{CONTENT}}", content)
    response = llm.complete(prompt, temperature=0.3)
    return parse_summary_keywords(response)


def create_summary(llm: LanguageModel, content: str, settings: Settings) -> str:
    summary, _ = create_summary_and_keywords(llm, content, settings)
    return summary


def create_conversation_summary(llm: LanguageModel, prompt: str) -> str:
    return llm.complete(prompt, temperature=0.3, system=CONVERSATION_SUMMARY_SYSTEM).strip()
