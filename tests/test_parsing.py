from __future__ import annotations

from context_extender.parsing import parse_segment_ids, parse_summary_keywords


def test_json_array_inside_prose() -> None:
    response = 'Here are the sections:\n["doc_chunk_3", "doc_chunk_1"]\nHope this helps.'
    assert parse_segment_ids(response) == ["doc_chunk_3", "doc_chunk_1"]


def test_empty_array_means_nothing_relevant() -> None:
    assert parse_segment_ids("[]") == []


def test_quoted_ids_when_array_is_malformed() -> None:
    response = 'The relevant ones are ["doc_chunk_2", "doc_chunk_5",'
    assert parse_segment_ids(response) == ["doc_chunk_2", "doc_chunk_5"]


def test_invalid_array_falls_back_to_quoted_strings() -> None:
    response = '[doc_chunk_1, "doc_chunk_4"]'
    assert parse_segment_ids(response) == ["doc_chunk_4"]


def test_unparseable_response_gives_empty_list() -> None:
    assert parse_segment_ids("I could not decide.") == []


def test_summary_keywords_from_json() -> None:
    response = 'Sure!\n{"summary": "Pricing tiers for 2024.", "keywords": ["Pricing", "tiers"]}'
    summary, keywords = parse_summary_keywords(response)
    assert summary == "Pricing tiers for 2024."
    assert keywords == ["Pricing", "tiers"]


def test_summary_keywords_from_labelled_lines() -> None:
    response = "Summary: Describes the refund policy.\n\nKeywords: refunds, returns, policy"
    summary, keywords = parse_summary_keywords(response)
    assert summary == "Describes the refund policy."
    assert keywords == ["refunds", "returns", "policy"]


def test_summary_keywords_from_garbage() -> None:
    assert parse_summary_keywords("no structure at all") == ("", [])
