"""Index pipeline: extraction → segmentation → enrichment → storage."""

from __future__ import annotations

import logging
import time
from collections import Counter
from pathlib import Path
from typing import Callable

from .config import CHARS_PER_TOKEN, Settings
from .extractor import collect_files, extract_text, source_stats
from .llm import LanguageModel, create_summary, create_summary_and_keywords, wait_time_seconds
from .logging_setup import log_duration
from .models import Segment
from .segmenter import segment_document
from .storage import IndexStore

logger = logging.getLogger(__name__)

ENRICHMENT_FAILED = "Summary generation failed"

ProgressCallback = Callable[[int, int, Segment], None]


class IndexBuilder:
    """Turns a file or directory into a persisted index."""

    def __init__(
        self,
        settings: Settings,
        llm: LanguageModel,
        index_store: IndexStore,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.llm = llm
        self.index_store = index_store
        self.sleep = sleep

    def needs_full_index(self, path: Path) -> bool:
        """Directories always do; a file does when it is too large to send whole."""
        is_directory, total_bytes, _ = source_stats(path, self.settings)
        if is_directory:
            return True
        estimated_tokens = total_bytes / CHARS_PER_TOKEN
        threshold = (
            self.settings.claude.max_tokens
            * self.settings.indexing.no_index_threshold_percentage
            / 100
        )
        logger.debug("Estimated tokens %d, threshold %d", estimated_tokens, threshold)
        return estimated_tokens > threshold

    def segment_path(self, path: Path) -> list[Segment]:
        files = collect_files(path, self.settings)
        names = Counter(f.name for f in files)

        segments: list[Segment] = []
        for file_path in files:
            logger.info("Processing file: %s", file_path)
            text = extract_text(file_path, self.settings)
            # Base names shared by several files are qualified with the relative path
            label = file_path.relative_to(path).as_posix() if names[file_path.name] > 1 else None
            segments.extend(
                segment_document(text, str(file_path.resolve()), self.settings, label=label)
            )
        return segments

    def enrich(
        self, segments: list[Segment], on_progress: ProgressCallback | None = None
    ) -> list[Segment]:
        """Add summary and keywords to every segment, one paced model call each.

        A failed call leaves a placeholder summary and no keywords.
        """
        logger.info("Enriching %d segments with summaries and keywords", len(segments))
        enriched = []
        for position, segment in enumerate(segments, 1):
            content = segment.content or ""
            try:
                summary, keywords = create_summary_and_keywords(self.llm, content, self.settings)
            except Exception as e:
                logger.warning("Error enriching segment %s: %s", segment.id, e)
                summary, keywords = ENRICHMENT_FAILED, []
            enriched.append(
                segment.model_copy(update={"summary": summary or ENRICHMENT_FAILED, "keywords": keywords})
            )
            if on_progress:
                on_progress(position, len(segments), segment)
            self.sleep(wait_time_seconds(content, self.settings.claude.token_rate_per_minute, floor_ms=0))
        return enriched

    def build(
        self,
        path: Path,
        name: str | None = None,
        store_content: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Index ``path`` and return the new index ID."""
        with log_duration("Create index", path=str(path)):
            full_index = self.needs_full_index(path)
            segments = self.segment_path(path)
            logger.info("Processed %d segments from %s", len(segments), path)

            if full_index:
                segments = self.enrich(segments, on_progress)
            elif len(segments) == 1:
                segments = [self._summarize_single(segments[0])]

            return self.index_store.create_index(
                segments,
                name=name,
                store_content=store_content,
                options={"source_path": str(path.resolve()), "full_index": full_index},
            )

    def _summarize_single(self, segment: Segment) -> Segment:
        try:
            summary = create_summary(self.llm, segment.content or "", self.settings)
        except Exception as e:
            logger.warning("Error summarizing segment %s: %s", segment.id, e)
            summary = ENRICHMENT_FAILED
        return segment.model_copy(update={"summary": summary or ENRICHMENT_FAILED})
