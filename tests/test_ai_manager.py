"""
Tests for AI response parsing and the best-effort generator wrapper.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from core.exceptions import AIServiceException
from schemas.study_guide import Keyword
from services.ai_manager import (
    AIContentGenerator, extract_json_array, parse_flashcards, parse_keywords
)


def test_extract_json_array_from_surrounding_text():
    text = 'Here: [{"word": "x", "importance": 5}] done'
    assert extract_json_array(text) == [{"word": "x", "importance": 5}]


def test_extract_json_array_spans_newlines():
    text = 'Sure!\n[\n  {"question": "Q1", "answer": "A1"},\n  {"question": "Q2", "answer": "A2"}\n]\nHope that helps.'
    assert len(extract_json_array(text)) == 2


@pytest.mark.parametrize("text", [None, "", "no brackets here", "[not json]", '{"word": "x"}'])
def test_extract_json_array_without_array(text):
    assert extract_json_array(text) is None


def test_parse_keywords():
    assert parse_keywords('Here: [{"word": "x", "importance": 5}] done') == [Keyword(word="x", importance=5)]
    assert parse_keywords("The model refused.") == []


def test_parse_skips_invalid_items():
    text = '[{"word": "ok", "importance": 3}, {"word": "too big", "importance": 11}, {"importance": 2}]'
    assert [k.word for k in parse_keywords(text)] == ["ok"]


def test_parse_flashcards_defaults_to_freeform():
    cards = parse_flashcards('[{"question": "What is DNA?", "answer": "Deoxyribonucleic acid"}]')
    assert cards[0].type.value == "freeform"
    assert cards[0].options == []


@pytest.fixture
def generator():
    return AIContentGenerator(provider="gemini", api_key="test-key", timeout_seconds=0.05)


@pytest.mark.asyncio
async def test_summarize_strips_text(generator):
    with patch.object(generator, "_complete", AsyncMock(return_value="  A short summary.\n")):
        assert await generator.summarize("content") == "A short summary."


@pytest.mark.asyncio
async def test_generate_flashcards_parses_response(generator):
    response = 'Flashcards:\n[{"question": "Q", "answer": "A"}]'
    with patch.object(generator, "_complete", AsyncMock(return_value=response)):
        cards = await generator.generate_flashcards("content")
    assert [(c.question, c.answer) for c in cards] == [("Q", "A")]


@pytest.mark.asyncio
async def test_provider_errors_become_empty_results(generator):
    failing = AsyncMock(side_effect=AIServiceException("quota exceeded", provider="gemini"))
    with patch.object(generator, "_complete", failing):
        assert await generator.summarize("content") == ""
        assert await generator.generate_flashcards("content") == []
        assert await generator.extract_keywords("content") == []


@pytest.mark.asyncio
async def test_unexpected_errors_become_empty_results(generator):
    with patch.object(generator, "_complete", AsyncMock(side_effect=RuntimeError("boom"))):
        assert await generator.summarize("content") == ""


@pytest.mark.asyncio
async def test_missing_api_key_yields_empty_results():
    generator = AIContentGenerator(provider="openai", api_key="")
    generator.api_key = None

    assert generator.enabled is False
    assert await generator.summarize("content") == ""
    assert await generator.extract_keywords("content") == []


@pytest.mark.asyncio
async def test_slow_provider_times_out(generator):
    async def slow(prompt, max_tokens):
        await asyncio.sleep(1)
        return "too late"

    with patch.object(generator, "_complete_with_gemini", slow):
        with pytest.raises(AIServiceException, match="timeout"):
            await generator._complete("prompt", 10)
        assert await generator.summarize("content") == ""


@pytest.mark.asyncio
async def test_complete_dispatches_to_openai():
    generator = AIContentGenerator(provider="openai", api_key="sk-test")
    with patch.object(generator, "_complete_with_openai", AsyncMock(return_value="ok")) as call:
        assert await generator._complete("prompt", 42) == "ok"
    call.assert_awaited_once_with("prompt", 42)


def test_unknown_provider_falls_back_to_gemini():
    generator = AIContentGenerator(provider="other", api_key="key")
    assert generator.provider == "gemini"
