"""AI gateway: builds provider requests, caches results, normalizes errors.

call()        -> ModelOutput (text, parsed JSON payload for JSON tasks)
fetch_audio() -> raw PCM bytes or None when the response carries no audio
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from . import prompts
from .cache import ResponseCache, audio_cache_key, text_cache_key
from .config import GatewayConfig
from .errors import GatewayError, InvalidRequest, MalformedResponse, ProviderError, RateLimited, is_rate_limit
from .providers import (
    JSON_MIME,
    TEXT_MIME,
    AiProvider,
    GenerateRequest,
    GenerateResponse,
    InlinePart,
    Part,
    TextPart,
)
from .schemas import QuickAnswerOutput, QuizOutput
from .types import ModelOutput, ProblemInput, Subject, TaskKind


logger = logging.getLogger("exam_core.gateway")

_SCHEMAS = {
    TaskKind.QUICK_ANSWER: QuickAnswerOutput,
    TaskKind.PRACTICE_QUIZ: QuizOutput,
}


def _strip_code_fence(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        s = s.split("\n", 1)[1] if "\n" in s else ""
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


def parse_json_output(task: TaskKind, raw: str) -> Dict[str, Any]:
    """Parse and validate a JSON task response; MalformedResponse on any mismatch."""
    schema: type[BaseModel] = _SCHEMAS[task]
    try:
        data = json.loads(_strip_code_fence(raw))
        model = schema.model_validate(data)
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        logger.warning(f"Malformed {task.value} response: {e}; raw={raw[:500]!r}")
        raise MalformedResponse(raw, detail=str(e)) from e
    return model.model_dump()


class AIGateway:
    def __init__(
        self,
        provider: AiProvider,
        config: Optional[GatewayConfig] = None,
        text_cache: Optional[ResponseCache] = None,
        audio_cache: Optional[ResponseCache] = None,
    ):
        self.provider = provider
        self.config = config or GatewayConfig()
        self.text_cache = text_cache if text_cache is not None else ResponseCache(self.config.cache_max_entries)
        self.audio_cache = audio_cache if audio_cache is not None else ResponseCache(self.config.cache_max_entries)

    def build_parts(self, instruction: str, problem: Optional[ProblemInput]) -> List[Part]:
        parts: List[Part] = []
        if problem is not None and problem.has_image:
            parts.append(InlinePart(mime_type=problem.image_mime_type, data=problem.image_bytes()))
        parts.append(TextPart(instruction))
        return parts

    def build_request(
        self,
        subject: Subject,
        task_or_prompt: Union[TaskKind, str],
        problem: Optional[ProblemInput] = None,
    ) -> GenerateRequest:
        if isinstance(task_or_prompt, TaskKind):
            text = problem.clean_text if problem is not None else ""
            instruction = prompts.render_task_prompt(subject, prompts.lookup(task_or_prompt), text)
            mime = JSON_MIME if task_or_prompt.expects_json else TEXT_MIME
        else:
            instruction = task_or_prompt
            mime = TEXT_MIME
        return GenerateRequest(
            model=self.config.text_model,
            parts=self.build_parts(instruction, problem),
            temperature=self.config.temperature,
            response_mime_type=mime,
        )

    async def _generate(self, request: GenerateRequest) -> GenerateResponse:
        try:
            return await self.provider.generate(request)
        except (GatewayError, InvalidRequest):
            raise
        except Exception as e:
            logger.exception(f"Provider {self.provider.name} call failed: {e}")
            if is_rate_limit(e):
                raise RateLimited(detail=str(e)) from e
            raise ProviderError(detail=str(e)) from e

    async def call(
        self,
        subject: Subject,
        task_or_prompt: Union[TaskKind, str],
        problem: Optional[ProblemInput] = None,
    ) -> ModelOutput:
        """Run one task (or a caller-supplied prompt) against the text model.

        Task results are cached by (subject, task, text prefix, image digest);
        free-form prompts are not cached.
        """
        task = task_or_prompt if isinstance(task_or_prompt, TaskKind) else None
        key = text_cache_key(subject, task, problem) if task is not None and problem is not None else None

        if key is not None:
            hit = self.text_cache.get(key)
            if hit is not None:
                logger.debug(f"Cache hit: {key[:80]}")
                payload = parse_json_output(task, hit) if task.expects_json else None
                return ModelOutput(text=hit, payload=payload, cached=True)

        request = self.build_request(subject, task_or_prompt, problem)
        resp = await self._generate(request)
        text = resp.text or ""

        payload = None
        if task is not None and task.expects_json:
            payload = parse_json_output(task, text)

        if key is not None:
            self.text_cache.put(key, text)
        return ModelOutput(text=text, payload=payload, cached=False)

    async def fetch_audio(self, text: str) -> Optional[bytes]:
        """Synthesize speech for a short text; None when no audio comes back."""
        if not text or not text.strip():
            return None
        key = audio_cache_key(text)
        hit = self.audio_cache.get(key)
        if hit is not None:
            return hit

        request = GenerateRequest(
            model=self.config.tts_model,
            parts=[TextPart(text)],
            voice=self.config.voice,
        )
        resp = await self._generate(request)
        audio = resp.first_audio()
        if not audio:
            logger.debug("Speech response carried no audio payload")
            return None
        self.audio_cache.put(key, audio)
        return audio
