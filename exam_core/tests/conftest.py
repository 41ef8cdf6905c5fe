from __future__ import annotations

import asyncio
import json
from typing import List, Optional

import pytest

from exam_core.cache import ResponseCache
from exam_core.config import GatewayConfig
from exam_core.gateway import AIGateway
from exam_core.orchestrator import TaskOrchestrator
from exam_core.providers import AiProvider, GenerateRequest, GenerateResponse, InlinePart, TextPart


QUICK_JSON = json.dumps({"finalAnswer": "$x = 5$", "calculatorSteps": "[MODE] [5] [3]"})
QUIZ_JSON = json.dumps(
    {
        "quizzes": [
            {"question": "2x = 10, x = ?", "options": ["A. 2", "B. 5", "C. 8", "D. 10"], "answer": "B", "explanation": "10 / 2"},
            {"question": "2x + 4 = 14, x = ?", "options": ["A. 3", "B. 5", "C. 7", "D. 9"], "answer": "B", "explanation": "2x = 10"},
        ]
    }
)
GUIDE_TEXT = "Step 1: subtract 4.\nStep 2: divide by 2, so $x = 5$."
SUMMARY_TEXT = "The answer is x equals five."
PCM_AUDIO = b"\x00\x00\xff\x7f\x00\x80\x01\x00"


class RateLimitError(Exception):
    """Mimics an SDK error carrying an HTTP status code."""

    def __init__(self, message: str = "Too many requests"):
        super().__init__(message)
        self.code = 429


class FakeProvider(AiProvider):
    name = "fake"

    def __init__(self, error: Optional[BaseException] = None, audio: Optional[bytes] = PCM_AUDIO, delay: float = 0.0):
        self.error = error
        self.audio = audio
        self.delay = delay
        self.requests: List[GenerateRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.overrides = {}

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
        finally:
            self.in_flight -= 1

        if request.wants_audio:
            if not self.audio:
                return GenerateResponse()
            return GenerateResponse(inline_parts=[InlinePart("audio/L16;codec=pcm;rate=24000", self.audio)])

        instruction = [p for p in request.parts if isinstance(p, TextPart)][-1].text
        for marker, text in self.overrides.items():
            if marker in instruction:
                return GenerateResponse(text=text)
        if instruction.startswith("Summarize"):
            return GenerateResponse(text=SUMMARY_TEXT)
        if '"finalAnswer"' in instruction:
            return GenerateResponse(text=QUICK_JSON)
        if '"quizzes"' in instruction:
            return GenerateResponse(text=QUIZ_JSON)
        return GenerateResponse(text=GUIDE_TEXT)


def make_config(**kw) -> GatewayConfig:
    base = dict(
        api_key="test-key",
        app_mode="cloud",
        text_model="text-model",
        tts_model="tts-model",
        voice="Puck",
        temperature=0.1,
        cache_max_entries=0,
        fallback_mode="aggregate",
    )
    base.update(kw)
    return GatewayConfig(**base)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def gateway(provider):
    return AIGateway(provider, config=make_config(), text_cache=ResponseCache(), audio_cache=ResponseCache())


@pytest.fixture
def orchestrator(gateway):
    return TaskOrchestrator(gateway)
