"""JSON-file storage for indexes, one pretty-printed file per entity."""

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from .config import Settings
from .errors import PersistenceError
from .models import Index, IndexInfo, IndexSummary, Segment, SegmentInfo, utcnow

logger = logging.getLogger(__name__)

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "-", name.lower())
    return re.sub(r"-+", "-", slug).strip("-")


class JsonStore:
    """A directory of ``<id>.json`` documents. Writes replace the whole file."""

    def __init__(self, directory: Path):
        directory.mkdir(parents=True, exist_ok=True)
        self.directory = directory

    def _path(self, entity_id: str) -> Path | None:
        if not _SAFE_ID_RE.match(entity_id) or entity_id.startswith("."):
            return None
        return self.directory / f"{entity_id}.json"

    def exists(self, entity_id: str) -> bool:
        path = self._path(entity_id)
        return path is not None and path.exists()

    def read(self, entity_id: str) -> dict[str, Any] | None:
        path = self._path(entity_id)
        if path is None or not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def write(self, entity_id: str, payload: str) -> Path:
        path = self._path(entity_id)
        if path is None:
            raise PersistenceError(f"Invalid identifier: {entity_id!r}")
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        logger.debug("Saved %s", path)
        return path

    def delete(self, entity_id: str) -> bool:
        path = self._path(entity_id)
        if path is None or not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}: {e}") from e
        return True

    def ids(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))


def _read_utf8(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


class IndexStore:
    """Create, load, list and delete document indexes.

    ``text_reader`` turns a source path back into the text that was segmented;
    segment offsets are character offsets into that text.
    """

    def __init__(
        self,
        directory: Path,
        settings: Settings,
        text_reader: Callable[[Path], str] = _read_utf8,
    ):
        self.store = JsonStore(directory)
        self.settings = settings
        self.text_reader = text_reader

    def _overall_summary(self, segments: list[Segment]) -> str:
        summaries = "\n\n".join(s.summary for s in segments)
        max_length = self.settings.indexing.max_overall_summary_length
        if len(summaries) <= max_length:
            return summaries
        return summaries[:max_length] + "..."

    def create_index(
        self,
        segments: list[Segment],
        name: str | None = None,
        store_content: bool = False,
        options: dict[str, Any] | None = None,
    ) -> str:
        """Build and persist an index from enriched segments, returning its ID.

        An existing index with the same ID is rewritten in full; only its creation
        time is carried over.
        """
        index_id = (slugify(name) if name else "") or str(uuid.uuid4())
        logger.info("Creating index: %s", index_id)

        stored: dict[str, Segment] = {}
        keyword_map: dict[str, set[str]] = {}
        for segment in segments:
            if segment.id in stored:
                logger.warning("Duplicate segment ID %s replaces an earlier segment", segment.id)
            keywords = list(dict.fromkeys(k.strip().lower() for k in segment.keywords if k.strip()))
            stored[segment.id] = segment.model_copy(
                update={
                    "keywords": keywords,
                    "content": segment.content if store_content else None,
                }
            )
            for keyword in keywords:
                keyword_map.setdefault(keyword, set()).add(segment.id)

        now = utcnow()
        previous = self._load_quietly(index_id)
        index = Index(
            id=index_id,
            name=name or index_id,
            created_at=previous.created_at if previous else now,
            updated_at=now,
            segment_count=len(stored),
            segments=stored,
            keyword_map=keyword_map,
            overall_summary=self._overall_summary(segments),
            options={**(options or {}), "store_content": store_content},
        )

        self.store.write(index_id, index.model_dump_json(indent=2))
        logger.info("Index created: %s (%d segments)", index_id, len(stored))
        return index_id

    def _load_quietly(self, index_id: str) -> Index | None:
        if not self.store.exists(index_id):
            return None
        try:
            return self.load_index(index_id)
        except PersistenceError:
            return None

    def load_index(self, index_id: str) -> Index | None:
        data = self.store.read(index_id)
        if data is None:
            logger.warning("Index not found: %s", index_id)
            return None
        try:
            return Index.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Index {index_id} is corrupt: {e}") from e

    def list_indexes(self) -> list[IndexSummary]:
        summaries = []
        for index_id in self.store.ids():
            try:
                index = self.load_index(index_id)
            except PersistenceError as e:
                logger.warning("Skipping unreadable index file %s: %s", index_id, e)
                continue
            if index is not None:
                summaries.append(
                    IndexSummary(
                        id=index.id,
                        name=index.name,
                        segment_count=index.segment_count,
                        created_at=index.created_at,
                        updated_at=index.updated_at,
                    )
                )
        return summaries

    def get_index_info(self, index_id: str) -> IndexInfo | None:
        index = self.load_index(index_id)
        if index is None:
            return None
        return IndexInfo(
            id=index.id,
            name=index.name,
            segment_count=index.segment_count,
            created_at=index.created_at,
            updated_at=index.updated_at,
            options=index.options,
            overall_summary=index.overall_summary,
            keywords=sorted(index.keyword_map),
            segments=[
                SegmentInfo(id=s.id, file_path=s.file_path, summary=s.summary)
                for s in index.segments.values()
            ],
        )

    def delete_index(self, index_id: str) -> bool:
        deleted = self.store.delete(index_id)
        if deleted:
            logger.info("Deleted index: %s", index_id)
        else:
            logger.warning("Index not found for deletion: %s", index_id)
        return deleted

    def read_segment_content(self, segment: Segment) -> str:
        """Segment text, re-read from the source file when it was not stored."""
        if segment.content is not None:
            return segment.content

        path = Path(segment.file_path)
        if not path.exists():
            logger.warning("Source file not found: %s", segment.file_path)
            return f"[Content not available - source file not found: {segment.file_path}]"
        try:
            text = self.text_reader(path)
        except Exception as e:
            logger.error("Error reading segment %s from %s: %s", segment.id, path, e)
            return f"[Error reading content: {e}]"
        return text[segment.start : segment.end]
