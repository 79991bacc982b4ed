"""Tolerant parsing of free-text model output into structured values.

Every parser tries a strict parse first, then a best-effort extraction, and finally
returns an empty result. None of them raise on malformed input.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_QUOTED_RE = re.compile(r'"([^"]+)"')
_SUMMARY_RE = re.compile(r"summary\s*:\s*(.+?)(?=\n\s*keywords\s*:|\Z)", re.IGNORECASE | re.DOTALL)
_KEYWORDS_RE = re.compile(r"keywords\s*:\s*(.+)", re.IGNORECASE | re.DOTALL)


def parse_segment_ids(response: str) -> list[str]:
    """Extract an ordered list of segment IDs from a model response."""
    match = _ARRAY_RE.search(response)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item) for item in parsed if isinstance(item, (str, int))]

    quoted = _QUOTED_RE.findall(response)
    if quoted:
        return quoted

    logger.warning("Failed to parse segment IDs from model response: %.200s", response)
    return []


def _as_keywords(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [str(k).strip().strip("[]") for k in value if str(k).strip()]


def parse_summary_keywords(response: str) -> tuple[str, list[str]]:
    """Extract ``(summary, keywords)`` from a model response.

    Accepts a JSON object anywhere in the text, or ``Summary:`` / ``Keywords:``
    labelled lines. Returns ``("", [])`` when neither is present.
    """
    start, end = response.find("{"), response.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(response[start : end + 1])
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            summary = data.get("summary") or ""
            return str(summary).strip(), _as_keywords(data.get("keywords", []))

    summary_match = _SUMMARY_RE.search(response)
    keywords_match = _KEYWORDS_RE.search(response)
    if summary_match or keywords_match:
        summary = summary_match.group(1).strip() if summary_match else ""
        keywords = _as_keywords(keywords_match.group(1).strip()) if keywords_match else []
        return summary, keywords

    logger.warning("Failed to parse summary/keywords from model response: %.200s", response)
    return "", []
