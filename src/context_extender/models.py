"""Data models for segments, indexes and conversations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_serializer


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Segment(BaseModel):
    """A contiguous slice ``[start, end)`` of one source document."""

    id: str
    file_path: str
    content: str | None = None
    start: int
    end: int
    summary: str = ""
    keywords: list[str] = []

    @property
    def estimated_tokens(self) -> int:
        return -(-len(self.content or "") // 4)


class ScoredSegment(Segment):
    """A retrieved segment with its content resolved.

    ``relevance_score`` is the rank for model-selected segments (lower is better)
    and the keyword match count for the keyword fallback (higher is better).
    """

    relevance_score: float = 0


class Index(BaseModel):
    id: str
    name: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    segment_count: int = 0
    segments: dict[str, Segment] = {}
    keyword_map: dict[str, set[str]] = {}
    overall_summary: str = ""
    options: dict[str, Any] = {}

    @field_serializer("keyword_map")
    def _serialize_keyword_map(self, keyword_map: dict[str, set[str]]) -> dict[str, list[str]]:
        return {keyword: sorted(ids) for keyword, ids in keyword_map.items()}


class IndexSummary(BaseModel):
    id: str
    name: str
    segment_count: int
    created_at: datetime
    updated_at: datetime


class SegmentInfo(BaseModel):
    id: str
    file_path: str
    summary: str


class IndexInfo(IndexSummary):
    options: dict[str, Any] = {}
    overall_summary: str = ""
    keywords: list[str] = []
    segments: list[SegmentInfo] = []


class Exchange(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    question: str
    answer: str


class Conversation(BaseModel):
    id: str
    index_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    recent_exchanges: list[Exchange] = []
    # Trimmed from recent_exchanges but not yet folded into history_summary
    pending_exchanges: list[Exchange] = []
    history_summary: str = ""
    exchange_count: int = 0
    last_merge_count: int = 0


class ConversationSummary(BaseModel):
    id: str
    index_id: str
    created_at: datetime
    updated_at: datetime
    exchange_count: int


class AnswerSource(BaseModel):
    id: str
    relevance_score: float


class Answer(BaseModel):
    answer: str
    conversation_id: str
    relevant_segments: list[AnswerSource] = []
