"""Read text out of plain-text and PDF source documents."""

from __future__ import annotations

import logging
from pathlib import Path

import pymupdf

from .config import Settings
from .errors import ExtractionError

logger = logging.getLogger(__name__)


def _extract_pdf(path: Path) -> str:
    with pymupdf.open(path) as doc:
        return "\n".join(page.get_text() for page in doc)


def extract_text(path: Path, settings: Settings) -> str:
    """Return the text content of ``path``.

    PDFs are read page by page with PyMuPDF; everything else is decoded as UTF-8,
    replacing undecodable bytes.
    """
    if not path.is_file():
        raise ExtractionError(f"File not found: {path}")

    try:
        if path.suffix.lower() in settings.file_processing.supported_pdf_extensions:
            return _extract_pdf(path)
        return path.read_text(encoding="utf-8", errors="replace")
    except Exception as e:
        raise ExtractionError(f"Failed to extract text from {path}: {e}") from e


def is_supported(path: Path, settings: Settings) -> bool:
    ext = path.suffix.lower()
    return (
        ext in settings.file_processing.supported_text_extensions
        or ext in settings.file_processing.supported_pdf_extensions
    )


def collect_files(path: Path, settings: Settings) -> list[Path]:
    """Files to index under ``path``: the file itself, or supported files in a directory tree."""
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise ExtractionError(f"Path is neither a file nor a directory: {path}")

    files = []
    for candidate in sorted(path.rglob("*")):
        if not candidate.is_file():
            continue
        if is_supported(candidate, settings):
            files.append(candidate)
        else:
            logger.debug("Skipping unsupported file: %s", candidate)
    return files


def source_stats(path: Path, settings: Settings) -> tuple[bool, int, int]:
    """Return ``(is_directory, total_bytes, file_count)`` for a file or directory."""
    if path.is_dir():
        files = collect_files(path, settings)
        return True, sum(f.stat().st_size for f in files), len(files)
    if not path.is_file():
        raise ExtractionError(f"File not found: {path}")
    return False, path.stat().st_size, 1
