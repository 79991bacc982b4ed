"""Select the segments of an index that are relevant to a question."""

from __future__ import annotations

import logging
import string

from .config import Settings
from .llm import LanguageModel
from .models import Index, ScoredSegment
from .parsing import parse_segment_ids
from .storage import IndexStore

logger = logging.getLogger(__name__)

RETRIEVAL_SYSTEM = (
    "You are an expert retrieval system that identifies the most relevant "
    "document sections for a query."
)

_PUNCTUATION = str.maketrans("", "", string.punctuation)


def build_selection_prompt(
    overall_summary: str, summaries: list[tuple[str, str]], question: str
) -> str:
    """Prompt asking for a JSON array of the IDs relevant to ``question``."""
    lines = [
        "I need your help identifying the most relevant document sections to answer a user's question.",
        "",
        "Document Overview:",
        overall_summary or "No overall summary available.",
        "",
        "Available Sections:",
    ]
    for i, (segment_id, summary) in enumerate(summaries, 1):
        lines.append(f"{i}. ID: {segment_id}")
        lines.append(f"   Summary: {summary}")
        lines.append("")

    lines.extend(
        [
            f"User Question: {question}",
            "",
            "Based on the section summaries above, return a JSON array containing ONLY the IDs "
            "of the most relevant sections that would help answer this question, ordered by "
            "relevance (most relevant first).",
            "",
            "Example response format:",
            '["section_id_1", "section_id_2", "section_id_3"]',
            "",
            "If no sections are relevant, return an empty array: []",
            "",
            "Your response (JSON array of IDs only):",
        ]
    )
    return "\n".join(lines)


def question_keywords(question: str, stop_words: list[str]) -> list[str]:
    """Lowercase words longer than two characters, without punctuation or stop words."""
    stops = {w.lower() for w in stop_words}
    words = question.lower().translate(_PUNCTUATION).split()
    return list(dict.fromkeys(w for w in words if len(w) > 2 and w not in stops))


class Retriever:
    """Model-driven segment selection with a keyword-overlap fallback."""

    def __init__(self, settings: Settings, llm: LanguageModel, index_store: IndexStore):
        self.settings = settings
        self.llm = llm
        self.index_store = index_store

    def find_relevant_segments(self, index: Index, question: str) -> list[ScoredSegment]:
        """Relevant segments, most relevant first, at most ``max_chunks_per_query``.

        Never raises: any failure of the model-driven strategies falls back to
        keyword matching.
        """
        query = self.settings.query
        try:
            if query.use_split_strategy_for_large_indices and len(index.segments) > query.llm_chunk_size:
                ids = self.grouped_strategy(index, question)
            else:
                ids = self.simple_strategy(index, question)
            logger.info("Model selected %d relevant segments: %s", len(ids), ", ".join(ids))
            return self._resolve(index, ids)
        except Exception:
            logger.warning("Model-driven retrieval failed, falling back to keywords", exc_info=True)
            return self.keyword_strategy(index, question)

    def _select(self, index: Index, summaries: list[tuple[str, str]], question: str) -> list[str]:
        prompt = build_selection_prompt(index.overall_summary, summaries, question)
        response = self.llm.complete(prompt, temperature=0.2, system=RETRIEVAL_SYSTEM)
        logger.debug("Raw selection response: %s", response)
        return parse_segment_ids(response)

    def _summaries(self, index: Index) -> list[tuple[str, str]]:
        return [
            (segment_id, segment.summary or "No summary available")
            for segment_id, segment in index.segments.items()
        ]

    def simple_strategy(self, index: Index, question: str) -> list[str]:
        """One prompt over every segment summary."""
        return self._select(index, self._summaries(index), question)

    def grouped_strategy(self, index: Index, question: str) -> list[str]:
        """One prompt per group of segments, merged by group order then in-group rank."""
        group_size = self.settings.query.llm_chunk_size
        summaries = self._summaries(index)
        groups = [summaries[i : i + group_size] for i in range(0, len(summaries), group_size)]
        logger.info("Split %d segments into %d groups", len(summaries), len(groups))

        scored: list[tuple[float, str]] = []
        for group_index, group in enumerate(groups):
            logger.debug("Processing group %d/%d", group_index + 1, len(groups))
            ids = self._select(index, group, question)
            for rank, segment_id in enumerate(ids):
                score = (len(groups) - group_index) + (group_size - rank) / group_size
                scored.append((score, segment_id))

        # Stable sort keeps response order among equal scores
        scored.sort(key=lambda item: item[0], reverse=True)
        return list(dict.fromkeys(segment_id for _, segment_id in scored))

    def keyword_strategy(self, index: Index, question: str) -> list[ScoredSegment]:
        """Rank segments by how many question keywords they carry."""
        try:
            keywords = question_keywords(question, self.settings.query.stop_words)
            counts: dict[str, int] = {}
            for keyword in keywords:
                for segment_id in index.keyword_map.get(keyword, ()):
                    counts[segment_id] = counts.get(segment_id, 0) + 1

            position = {segment_id: i for i, segment_id in enumerate(index.segments)}
            ranked = sorted(
                (sid for sid in counts if sid in position),
                key=lambda sid: (-counts[sid], position[sid]),
            )
            limit = self.settings.query.max_chunks_per_query
            return [
                self._scored(index, segment_id, counts[segment_id])
                for segment_id in ranked[:limit]
            ]
        except Exception:
            logger.error("Keyword retrieval failed", exc_info=True)
            return []

    def _scored(self, index: Index, segment_id: str, score: float) -> ScoredSegment:
        segment = index.segments[segment_id]
        content = self.index_store.read_segment_content(segment)
        return ScoredSegment(
            **segment.model_dump(exclude={"content"}), content=content, relevance_score=score
        )

    def _resolve(self, index: Index, ids: list[str]) -> list[ScoredSegment]:
        known = []
        for segment_id in dict.fromkeys(ids):
            if segment_id in index.segments:
                known.append(segment_id)
            else:
                logger.warning("Segment ID returned by model not found in index: %s", segment_id)

        limit = self.settings.query.max_chunks_per_query
        return [self._scored(index, segment_id, rank) for rank, segment_id in enumerate(known[:limit])]
