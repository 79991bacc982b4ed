"""Split document text into overlapping, size-bounded segments."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import Settings
from .models import Segment

logger = logging.getLogger(__name__)


def segment_id(label: str, ordinal: int) -> str:
    """Stable segment ID from a source label and a 1-based ordinal."""
    return f"{label}_chunk_{ordinal}"


def segment_text(
    text: str,
    source: str,
    max_segment_chars: int,
    overlap_fraction: float = 0.1,
    label: str | None = None,
) -> list[Segment]:
    """Split ``text`` into segments of at most ``max_segment_chars`` plus overlap padding.

    The text is walked in strides of ``max_segment_chars``. Each emitted segment is
    widened by ``overlap_fraction / 2 * max_segment_chars`` on both sides (clamped to
    the document), so neighbours overlap without slowing the stride.
    IDs are built from ``label``, which defaults to the source's base name.
    """
    if max_segment_chars <= 0:
        raise ValueError("max_segment_chars must be positive")
    label = label or Path(source).name

    if len(text) <= max_segment_chars:
        return [
            Segment(
                id=segment_id(label, 1),
                file_path=source,
                content=text,
                start=0,
                end=len(text),
            )
        ]

    padding = int(max_segment_chars * overlap_fraction / 2)
    segments: list[Segment] = []

    for ordinal, stride_start in enumerate(range(0, len(text), max_segment_chars), 1):
        stride_end = min(stride_start + max_segment_chars, len(text))
        start = max(0, stride_start - padding)
        end = min(stride_end + padding, len(text))
        segments.append(
            Segment(
                id=segment_id(label, ordinal),
                file_path=source,
                content=text[start:end],
                start=start,
                end=end,
            )
        )

    logger.info("Created %d segments from %s", len(segments), source)
    return segments


def segment_document(
    text: str, source: str, settings: Settings, label: str | None = None
) -> list[Segment]:
    """Segment with sizes taken from ``settings``."""
    logger.debug(
        "Splitting %s (%d chars, max segment %d chars)",
        source,
        len(text),
        settings.max_segment_chars,
    )
    return segment_text(
        text, source, settings.max_segment_chars, settings.overlap_fraction, label=label
    )
