from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from exam_core.errors import BUSY_MESSAGE, GENERIC_MESSAGE, MalformedResponse, ProviderError, RateLimited, is_rate_limit
from exam_core.gateway import parse_json_output
from exam_core.providers import JSON_MIME, TEXT_MIME, InlinePart, TextPart
from exam_core.types import ProblemInput, Subject, TaskKind

from conftest import PCM_AUDIO, QUICK_JSON, RateLimitError


def test_json_task_returns_validated_payload(gateway, provider):
    out = asyncio.run(gateway.call(Subject.MATH, TaskKind.QUICK_ANSWER, ProblemInput(text="2x+4=14")))
    assert out.payload == {"finalAnswer": "$x = 5$", "calculatorSteps": "[MODE] [5] [3]"}
    assert not out.cached
    assert provider.requests[0].response_mime_type == JSON_MIME
    assert provider.requests[0].temperature == 0.1


def test_text_task_is_not_parsed(gateway, provider):
    out = asyncio.run(gateway.call(Subject.MATH, TaskKind.DETAILED_GUIDE, ProblemInput(text="2x+4=14")))
    assert out.payload is None
    assert out.text.startswith("Step 1")
    assert provider.requests[0].response_mime_type == TEXT_MIME


def test_quiz_answer_letter_becomes_index(gateway):
    out = asyncio.run(gateway.call(Subject.MATH, TaskKind.PRACTICE_QUIZ, ProblemInput(text="2x+4=14")))
    assert [q["answer"] for q in out.payload["quizzes"]] == [1, 1]


def test_image_part_goes_first_without_data_url_prefix(gateway, provider):
    problem = ProblemInput(text="solve", image_base64="data:image/png;base64,aGVsbG8=")
    asyncio.run(gateway.call(Subject.PHYSICS, TaskKind.DETAILED_GUIDE, problem))
    parts = provider.requests[0].parts
    assert isinstance(parts[0], InlinePart)
    assert parts[0].mime_type == "image/png"
    assert parts[0].data == b"hello"
    assert isinstance(parts[1], TextPart)
    assert "Subject: Physics." in parts[1].text
    assert parts[1].text.endswith("Problem: solve")


def test_repeat_call_is_served_from_cache(gateway, provider):
    problem = ProblemInput(text="2x+4=14")
    first = asyncio.run(gateway.call(Subject.MATH, TaskKind.QUICK_ANSWER, problem))
    second = asyncio.run(gateway.call(Subject.MATH, TaskKind.QUICK_ANSWER, problem))
    assert provider.calls == 1
    assert second.cached
    assert second.text == first.text
    assert second.payload == first.payload


def test_free_prompt_is_not_cached(gateway, provider):
    asyncio.run(gateway.call(Subject.MATH, "Summarize: x = 5"))
    asyncio.run(gateway.call(Subject.MATH, "Summarize: x = 5"))
    assert provider.calls == 2
    assert provider.requests[0].response_mime_type == TEXT_MIME


def test_malformed_json_is_classified_and_not_cached(gateway, provider):
    provider.overrides['"finalAnswer"'] = "Sure! The answer is 5."
    problem = ProblemInput(text="2x+4=14")
    with pytest.raises(MalformedResponse) as ei:
        asyncio.run(gateway.call(Subject.MATH, TaskKind.QUICK_ANSWER, problem))
    assert isinstance(ei.value, ProviderError)
    assert ei.value.raw == "Sure! The answer is 5."
    assert len(gateway.text_cache) == 0


def test_quiz_with_wrong_option_count_is_malformed():
    raw = '{"quizzes": [{"question": "q", "options": ["a", "b"], "answer": "A"}]}'
    with pytest.raises(MalformedResponse):
        parse_json_output(TaskKind.PRACTICE_QUIZ, raw)


def test_quiz_with_out_of_range_answer_is_malformed():
    raw = '{"quizzes": [{"question": "q", "options": ["a", "b", "c", "d"], "answer": "E"}]}'
    with pytest.raises(MalformedResponse):
        parse_json_output(TaskKind.PRACTICE_QUIZ, raw)


def test_code_fenced_json_is_accepted():
    raw = "```json\n" + QUICK_JSON + "\n```"
    assert parse_json_output(TaskKind.QUICK_ANSWER, raw)["finalAnswer"] == "$x = 5$"


def test_rate_limit_is_normalized(gateway, provider):
    provider.error = RateLimitError()
    with pytest.raises(RateLimited) as ei:
        asyncio.run(gateway.call(Subject.MATH, TaskKind.QUICK_ANSWER, ProblemInput(text="x")))
    assert str(ei.value) == BUSY_MESSAGE
    assert ei.value.kind == "rate_limited"


def test_429_in_message_counts_as_rate_limit(gateway, provider):
    provider.error = RuntimeError("HTTP 429 RESOURCE_EXHAUSTED")
    with pytest.raises(RateLimited):
        asyncio.run(gateway.call(Subject.MATH, TaskKind.DETAILED_GUIDE, ProblemInput(text="x")))


def test_digits_containing_429_are_not_rate_limits(gateway, provider):
    provider.error = ConnectionError("connect to localhost:14290 failed (request 84293)")
    with pytest.raises(ProviderError) as ei:
        asyncio.run(gateway.call(Subject.MATH, TaskKind.DETAILED_GUIDE, ProblemInput(text="x")))
    assert not isinstance(ei.value, RateLimited)


def test_is_rate_limit_checks_status_fields():
    assert is_rate_limit(SimpleNamespace(code=None, response=SimpleNamespace(status_code=429)))
    assert is_rate_limit(RuntimeError("429 Too Many Requests"))
    assert not is_rate_limit(RuntimeError("port 14290"))


def test_other_errors_become_provider_error(gateway, provider):
    provider.error = ConnectionError("network down")
    with pytest.raises(ProviderError) as ei:
        asyncio.run(gateway.call(Subject.MATH, TaskKind.DETAILED_GUIDE, ProblemInput(text="x")))
    assert str(ei.value) == GENERIC_MESSAGE
    assert "network down" in ei.value.detail


def test_fetch_audio_uses_speech_model_and_caches(gateway, provider):
    audio = asyncio.run(gateway.fetch_audio("The answer is five."))
    again = asyncio.run(gateway.fetch_audio("The answer is five."))
    assert audio == PCM_AUDIO == again
    assert provider.calls == 1
    req = provider.requests[0]
    assert req.model == "tts-model"
    assert req.voice == "Puck"


def test_fetch_audio_absent_is_none(gateway, provider):
    provider.audio = None
    assert asyncio.run(gateway.fetch_audio("hello")) is None
    assert len(gateway.audio_cache) == 0


def test_fetch_audio_empty_text_skips_network(gateway, provider):
    assert asyncio.run(gateway.fetch_audio("  ")) is None
    assert provider.calls == 0
