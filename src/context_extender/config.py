"""Central configuration for paths and tunable settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError

# Data directory, override with CONTEXT_EXTENDER_DATA_DIR env var
DATA_DIR = Path(
    os.environ.get("CONTEXT_EXTENDER_DATA_DIR", str(Path.home() / ".context-extender"))
)

INDEXES_DIR = DATA_DIR / "indexes"
CONVERSATIONS_DIR = DATA_DIR / "conversations"
LOG_DIR = DATA_DIR / "logs"
USER_CONFIG_PATH = DATA_DIR / "config.json"

# Rough token estimate used everywhere a size has to be turned into tokens
CHARS_PER_TOKEN = 4

DEFAULT_SUMMARIZE_TEMPLATE = """Return a JSON object (nothing more) with the following entries:
summary: should enable one to know whether the content is relevant given some general or specific question. It should be distinctive as to the part this content may play in a wider context.
keywords: a list of keywords, distinctive but covering most topics included.

This is the content: {{CONTENT}}

Return JSON only, with no additional text."""

DEFAULT_ANSWER_TEMPLATE = """You are assisting with questions about a document. Please answer based only on the information provided.

{{HISTORY}}

{{RELEVANT_INFO}}

USER QUESTION: {{QUESTION}}

Provide a clear, concise answer based only on the relevant information provided above. If the information doesn't contain the answer, say "I don't have information about that in the provided content.\""""


class ClaudeSettings(BaseModel):
    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 100_000  # context window
    response_max_tokens: int = 4000
    default_system_prompt: str = (
        "You are a helpful AI assistant with access to a large document. "
        "Answer questions based only on the content provided."
    )
    token_rate_per_minute: int = 50_000


class FileProcessingSettings(BaseModel):
    supported_text_extensions: list[str] = [
        ".txt", ".md", ".json", ".js", ".py", ".html", ".css", ".csv", ".xml", ".yaml", ".yml",
    ]
    supported_pdf_extensions: list[str] = [".pdf"]


class ChunkingSettings(BaseModel):
    chunk_size_percentage: float = 40
    overlap_percentage: float = 10
    preserve_paragraphs: bool = True  # accepted, splitting ignores it


class IndexingSettings(BaseModel):
    no_index_threshold_percentage: float = 30
    max_overall_summary_length: int = 2000


class QuerySettings(BaseModel):
    max_chunks_per_query: int = 5
    stop_words: list[str] = [
        "a", "an", "the", "and", "or", "but", "is", "are", "of", "to",
        "in", "on", "by", "with", "about", "for", "from",
    ]
    use_split_strategy_for_large_indices: bool = True
    llm_chunk_size: int = 50  # segments per grouped-retrieval prompt


class ConversationSettings(BaseModel):
    max_recent_exchanges: int = 5
    max_summary_tokens: int = 500
    merge_frequency: int = 3


class PromptSettings(BaseModel):
    summarize_template: str = DEFAULT_SUMMARIZE_TEMPLATE
    answer_template: str = DEFAULT_ANSWER_TEMPLATE


class Settings(BaseModel):
    claude: ClaudeSettings = ClaudeSettings()
    file_processing: FileProcessingSettings = FileProcessingSettings()
    chunking: ChunkingSettings = ChunkingSettings()
    indexing: IndexingSettings = IndexingSettings()
    query: QuerySettings = QuerySettings()
    conversation: ConversationSettings = ConversationSettings()
    prompts: PromptSettings = PromptSettings()

    @property
    def max_segment_chars(self) -> int:
        """Segment size in characters, as a share of the context window."""
        tokens = self.claude.max_tokens * self.chunking.chunk_size_percentage / 100
        return int(tokens * CHARS_PER_TOKEN)

    @property
    def overlap_fraction(self) -> float:
        return self.chunking.overlap_percentage / 100


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(path: Path | None = None) -> Settings:
    """Load settings, merging the user's JSON file (if any) over the defaults."""
    path = path or USER_CONFIG_PATH
    if not path.exists():
        return Settings()

    try:
        user_config = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(user_config, dict):
        raise ConfigurationError(f"Config file {path} does not contain a JSON object")

    try:
        return Settings.model_validate(_deep_merge(Settings().model_dump(), user_config))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    path = path or USER_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
    return path


def set_setting(settings: Settings, key: str, raw_value: str) -> Settings:
    """Return a copy of ``settings`` with a dotted ``section.field`` key replaced.

    The raw string is parsed as JSON when possible (numbers, booleans, lists) and
    validated against the field's type.
    """
    section, _, field = key.partition(".")
    data = settings.model_dump()
    if section not in data or not field or field not in data[section]:
        raise ConfigurationError(f"Unknown setting: {key}")

    try:
        value: Any = json.loads(raw_value)
    except json.JSONDecodeError:
        value = raw_value

    data[section][field] = value
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid value for {key}: {raw_value!r}") from e
