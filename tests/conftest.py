from __future__ import annotations

import json
import logging
from typing import Callable

import pytest

from context_extender.config import Settings
from context_extender.errors import CollaboratorError
from context_extender.models import Segment


class FakeLLM:
    """Scripted language model: answers from a responder function and logs every call."""

    def __init__(self, responder: Callable[[str, str | None], str] | None = None) -> None:
        self.responder = responder or (lambda prompt, system: "ok")
        self.calls: list[dict] = []

    def complete(self, prompt, *, temperature=None, max_tokens=None, system=None) -> str:
        self.calls.append({"prompt": prompt, "system": system, "temperature": temperature})
        return self.responder(prompt, system)


class FailingLLM(FakeLLM):
    def complete(self, prompt, *, temperature=None, max_tokens=None, system=None) -> str:
        self.calls.append({"prompt": prompt, "system": system, "temperature": temperature})
        raise CollaboratorError("model unavailable")


class RecordingSleep:
    def __init__(self) -> None:
        self.waits: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def make_segment(segment_id: str, summary: str = "", keywords: list[str] | None = None,
                 content: str | None = None, file_path: str = "/tmp/doc.txt") -> Segment:
    content = content if content is not None else f"content of {segment_id}"
    return Segment(
        id=segment_id,
        file_path=file_path,
        content=content,
        start=0,
        end=len(content),
        summary=summary or f"summary of {segment_id}",
        keywords=keywords or [],
    )


class DocumentLLM(FakeLLM):
    """Answers each kind of prompt the pipeline sends with a recognisable reply."""

    def __init__(self, selection: str = '["doc.txt_chunk_2"]') -> None:
        super().__init__(self._respond)
        self.selection = selection

    def _respond(self, prompt: str, system: str | None) -> str:
        if "exchanges to merge" in prompt:
            return "merged summary"
        if "This is the content:" in prompt:
            keywords = ["pricing"] if "pricing" in prompt else ["filler"]
            return json.dumps({"summary": f"section with {keywords[0]}", "keywords": keywords})
        if "Available Sections:" in prompt:
            return self.selection
        if "compiled answer" in prompt:
            return "polished answer"
        if "SECTION CONTENT:" in prompt:
            return "step answer"
        return "single shot answer"

    def prompts_with(self, marker: str) -> list[str]:
        return [call["prompt"] for call in self.calls if marker in call["prompt"]]


@pytest.fixture
def restore_logging():
    """Undo ``setup_logging``: drop the handlers it installed and reset the root level."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
