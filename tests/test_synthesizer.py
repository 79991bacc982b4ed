from __future__ import annotations

import pytest

from conftest import FailingLLM, FakeLLM, make_segment
from context_extender.config import Settings
from context_extender.errors import SynthesisError
from context_extender.llm import wait_time_seconds
from context_extender.synthesizer import IterativeSynthesizer, build_step_prompt


def _numbered_answers():
    counter = {"n": 0}

    def responder(prompt: str, system: str | None) -> str:
        counter["n"] += 1
        if "compiled answer" in prompt:
            return "final polished answer"
        return f"draft {counter['n']}"

    return responder


def test_single_segment_skips_polish(settings: Settings, sleep) -> None:
    llm = FakeLLM(_numbered_answers())
    answer = IterativeSynthesizer(settings, llm, sleep=sleep).generate_answer(
        "What?", [make_segment("doc_chunk_1")]
    )

    assert answer == "draft 1"
    assert len(llm.calls) == 1
    assert "compiled answer" not in llm.calls[0]["prompt"]


def test_each_segment_then_polish(settings: Settings, sleep) -> None:
    llm = FakeLLM(_numbered_answers())
    segments = [make_segment(f"doc_chunk_{i}") for i in range(1, 4)]

    answer = IterativeSynthesizer(settings, llm, sleep=sleep).generate_answer("What?", segments)

    assert len(llm.calls) == 4
    assert answer == "final polished answer"
    assert "SECTION CONTENT:\ncontent of doc_chunk_2" in llm.calls[1]["prompt"]
    assert "draft 1" in llm.calls[1]["prompt"]
    assert "draft 3" in llm.calls[3]["prompt"]
    assert all(call["temperature"] == 0.3 for call in llm.calls)


def test_every_call_is_paced(settings: Settings, sleep) -> None:
    llm = FakeLLM(_numbered_answers())
    segments = [make_segment(f"doc_chunk_{i}") for i in range(1, 4)]

    IterativeSynthesizer(settings, llm, sleep=sleep).generate_answer("What?", segments)

    assert len(sleep.waits) == len(llm.calls)
    assert all(wait >= 0.5 for wait in sleep.waits)


def test_wait_time_grows_with_text() -> None:
    assert wait_time_seconds("x" * 10, 50_000) == 0.5
    # 400k chars is 100k tokens, two minutes at 50k tokens per minute
    assert wait_time_seconds("x" * 400_000, 50_000) == 120.0


def test_history_is_prefixed_to_step_prompts() -> None:
    prompt = build_step_prompt("Q?", "body", "", "User: hi\nAssistant: hello", 0, 2)
    assert prompt.startswith("Previous conversation:\nUser: hi")
    assert "Below is the first section of information (1/2)" in prompt

    later = build_step_prompt("Q?", "body", "so far", "", 1, 2)
    assert "Previous conversation" not in later
    assert "Here is the current answer based on previous sections:\n\nso far" in later


def test_model_failure_raises_synthesis_error(settings: Settings, sleep) -> None:
    synthesizer = IterativeSynthesizer(settings, FailingLLM(), sleep=sleep)
    with pytest.raises(SynthesisError):
        synthesizer.generate_answer("What?", [make_segment("doc_chunk_1")])
