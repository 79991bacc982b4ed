from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FailingLLM, FakeLLM, make_segment
from context_extender.config import Settings
from context_extender.errors import CollaboratorError
from context_extender.models import Index
from context_extender.retriever import Retriever, build_selection_prompt, question_keywords
from context_extender.storage import IndexStore


def _index(tmp_path: Path, settings: Settings, segments) -> tuple[IndexStore, Index]:
    store = IndexStore(tmp_path / "indexes", settings)
    index_id = store.create_index(segments, name="doc", store_content=True)
    return store, store.load_index(index_id)


@pytest.fixture
def three_segments():
    return [
        make_segment("doc_chunk_1", summary="Company history", keywords=["history", "founders"]),
        make_segment("doc_chunk_2", summary="Product pricing", keywords=["pricing", "plans"]),
        make_segment("doc_chunk_3", summary="Support hours", keywords=["support", "hours"]),
    ]


def test_question_keywords_drop_stop_words_and_punctuation() -> None:
    words = question_keywords("What is the pricing, for the PRO plan?", ["the", "is", "for"])
    assert words == ["what", "pricing", "pro", "plan"]


def test_selection_prompt_lists_every_summary() -> None:
    prompt = build_selection_prompt("overview", [("a_chunk_1", "first"), ("a_chunk_2", "second")], "why?")
    assert "Document Overview:\noverview" in prompt
    assert "1. ID: a_chunk_1\n   Summary: first" in prompt
    assert "2. ID: a_chunk_2\n   Summary: second" in prompt
    assert "User Question: why?" in prompt


def test_simple_strategy_keeps_model_order(tmp_path: Path, settings: Settings, three_segments) -> None:
    store, index = _index(tmp_path, settings, three_segments)
    llm = FakeLLM(lambda prompt, system: '["doc_chunk_3", "doc_chunk_1"]')

    found = Retriever(settings, llm, store).find_relevant_segments(index, "When is support open?")

    assert [s.id for s in found] == ["doc_chunk_3", "doc_chunk_1"]
    assert [s.relevance_score for s in found] == [0, 1]
    assert found[0].content == "content of doc_chunk_3"
    assert len(llm.calls) == 1
    assert llm.calls[0]["temperature"] == 0.2


def test_unknown_ids_are_skipped_and_result_is_capped(
    tmp_path: Path, settings: Settings, three_segments
) -> None:
    settings.query.max_chunks_per_query = 2
    store, index = _index(tmp_path, settings, three_segments)
    llm = FakeLLM(
        lambda prompt, system: '["ghost", "doc_chunk_1", "doc_chunk_1", "doc_chunk_3", "doc_chunk_2"]'
    )

    found = Retriever(settings, llm, store).find_relevant_segments(index, "anything")

    assert [s.id for s in found] == ["doc_chunk_1", "doc_chunk_3"]


def test_empty_selection_does_not_fall_back(tmp_path: Path, settings: Settings, three_segments) -> None:
    store, index = _index(tmp_path, settings, three_segments)
    llm = FakeLLM(lambda prompt, system: "[]")

    assert Retriever(settings, llm, store).find_relevant_segments(index, "pricing plans") == []


def test_model_failure_falls_back_to_keywords(tmp_path: Path, settings: Settings, three_segments) -> None:
    store, index = _index(tmp_path, settings, three_segments)

    found = Retriever(settings, FailingLLM(), store).find_relevant_segments(index, "What is the pricing?")

    assert [s.id for s in found] == ["doc_chunk_2"]
    assert found[0].relevance_score == 1


def test_keyword_fallback_is_deterministic(tmp_path: Path, settings: Settings) -> None:
    segments = [
        make_segment("d_chunk_1", keywords=["alpha"]),
        make_segment("d_chunk_2", keywords=["alpha", "beta"]),
        make_segment("d_chunk_3", keywords=["beta"]),
    ]
    store, index = _index(tmp_path, settings, segments)
    retriever = Retriever(settings, FailingLLM(), store)

    first = [s.id for s in retriever.find_relevant_segments(index, "alpha beta")]
    second = [s.id for s in retriever.find_relevant_segments(index, "alpha beta")]

    assert first == second == ["d_chunk_2", "d_chunk_1", "d_chunk_3"]


def test_grouped_strategy_orders_by_group_then_rank(tmp_path: Path, settings: Settings) -> None:
    settings.query.llm_chunk_size = 2
    segments = [make_segment(f"s{i}") for i in range(1, 6)]
    store, index = _index(tmp_path, settings, segments)

    def responder(prompt: str, system: str | None) -> str:
        if "ID: s1" in prompt:
            return '["s2"]'
        if "ID: s3" in prompt:
            return '["s3", "s4"]'
        return '["s5"]'

    llm = FakeLLM(responder)
    found = Retriever(settings, llm, store).find_relevant_segments(index, "question")

    assert len(llm.calls) == 3
    assert [s.id for s in found] == ["s2", "s3", "s4", "s5"]


def test_single_group_matches_simple_strategy(tmp_path: Path, settings: Settings, three_segments) -> None:
    settings.query.llm_chunk_size = 10
    store, index = _index(tmp_path, settings, three_segments)
    llm = FakeLLM(lambda prompt, system: '["doc_chunk_2", "doc_chunk_3"]')
    retriever = Retriever(settings, llm, store)

    assert retriever.grouped_strategy(index, "q") == retriever.simple_strategy(index, "q")


def test_split_strategy_can_be_disabled(tmp_path: Path, settings: Settings) -> None:
    settings.query.llm_chunk_size = 2
    settings.query.use_split_strategy_for_large_indices = False
    segments = [make_segment(f"s{i}") for i in range(1, 6)]
    store, index = _index(tmp_path, settings, segments)
    llm = FakeLLM(lambda prompt, system: '["s4"]')

    found = Retriever(settings, llm, store).find_relevant_segments(index, "question")

    assert len(llm.calls) == 1
    assert [s.id for s in found] == ["s4"]


def test_grouped_failure_falls_back_to_keywords(tmp_path: Path, settings: Settings) -> None:
    settings.query.llm_chunk_size = 2
    segments = [
        make_segment("s1", keywords=["history"]),
        make_segment("s2", keywords=["pricing"]),
        make_segment("s3", keywords=["support"]),
        make_segment("s4", keywords=["pricing", "plans"]),
    ]
    store, index = _index(tmp_path, settings, segments)

    def responder(prompt: str, system: str | None) -> str:
        if "ID: s3" in prompt:
            raise CollaboratorError("rate limited")
        return '["s1"]'

    llm = FakeLLM(responder)
    found = Retriever(settings, llm, store).find_relevant_segments(index, "pricing plans")

    assert len(llm.calls) == 2
    assert [s.id for s in found] == ["s4", "s2"]
    assert [s.relevance_score for s in found] == [2, 1]
