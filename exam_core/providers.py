"""Provider boundary: one async ``generate`` call per backend.

APP_MODE selects the backend: 'cloud' (Gemini via google-genai) | 'local' (Ollama).
Providers raise whatever their transport raises; the gateway normalizes errors.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

import requests

from .config import GatewayConfig


logger = logging.getLogger("exam_core.providers")

JSON_MIME = "application/json"
TEXT_MIME = "text/plain"


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class InlinePart:
    mime_type: str
    data: bytes


Part = Union[TextPart, InlinePart]


@dataclass
class GenerateRequest:
    model: str
    parts: List[Part]
    temperature: Optional[float] = None
    response_mime_type: Optional[str] = None
    # set only for speech requests
    voice: Optional[str] = None

    @property
    def wants_audio(self) -> bool:
        return self.voice is not None


@dataclass
class GenerateResponse:
    text: str = ""
    inline_parts: List[InlinePart] = field(default_factory=list)

    def first_audio(self) -> Optional[bytes]:
        for p in self.inline_parts:
            if p.data and (p.mime_type or "").startswith("audio/"):
                return p.data
        # some responses omit the mime type on audio parts
        for p in self.inline_parts:
            if p.data and not p.mime_type:
                return p.data
        return None


class AiProvider(ABC):
    name = "abstract"

    @abstractmethod
    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        """Issue one request and return its text and inline binary parts."""


class GeminiProvider(AiProvider):
    name = "gemini"

    def __init__(self, api_key: str):
        self._api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise RuntimeError("GOOGLE_API_KEY is required for the gemini provider")
            from google import genai

            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _build_config(self, request: GenerateRequest) -> Any:
        from google.genai import types

        if request.wants_audio:
            return types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=request.voice)
                    )
                ),
            )
        return types.GenerateContentConfig(
            temperature=request.temperature,
            response_mime_type=request.response_mime_type,
        )

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        from google.genai import types

        client = self._get_client()
        parts = []
        for p in request.parts:
            if isinstance(p, InlinePart):
                parts.append(types.Part.from_bytes(data=p.data, mime_type=p.mime_type))
            else:
                parts.append(types.Part.from_text(text=p.text))

        resp = await client.aio.models.generate_content(
            model=request.model,
            contents=[types.Content(role="user", parts=parts)],
            config=self._build_config(request),
        )
        return _collect_gemini_parts(resp)


def _collect_gemini_parts(resp: Any) -> GenerateResponse:
    texts: List[str] = []
    inline: List[InlinePart] = []
    for cand in getattr(resp, "candidates", None) or []:
        content = getattr(cand, "content", None)
        for part in getattr(content, "parts", None) or []:
            if getattr(part, "thought", False):
                continue
            blob = getattr(part, "inline_data", None)
            if blob is not None and getattr(blob, "data", None):
                inline.append(InlinePart(mime_type=blob.mime_type or "", data=blob.data))
            elif getattr(part, "text", None):
                texts.append(part.text)
        # first candidate only
        break
    return GenerateResponse(text="".join(texts), inline_parts=inline)


class OllamaProvider(AiProvider):
    """Local backend. Text and JSON only; speech requests come back without audio."""

    name = "ollama"

    def __init__(self, base_url: str, model: str, timeout: float = 60.0):
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout

    def _post(self, payload: dict) -> dict:
        r = requests.post(f"{self._base_url}/api/generate", json=payload, timeout=self._timeout)
        r.raise_for_status()
        return r.json()

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        if request.wants_audio:
            logger.debug("ollama has no speech output; returning empty response")
            return GenerateResponse()

        prompt = "\n\n".join(p.text for p in request.parts if isinstance(p, TextPart))
        images = [base64.b64encode(p.data).decode("ascii") for p in request.parts if isinstance(p, InlinePart)]
        payload: dict = {"model": self._model, "prompt": prompt, "stream": False}
        if images:
            payload["images"] = images
        if request.response_mime_type == JSON_MIME:
            payload["format"] = "json"
        if request.temperature is not None:
            payload["options"] = {"temperature": request.temperature}

        data = await asyncio.to_thread(self._post, payload)
        return GenerateResponse(text=(data.get("response") or "").strip())


def build_provider(cfg: GatewayConfig) -> AiProvider:
    if cfg.app_mode == "local":
        return OllamaProvider(cfg.ollama_url, cfg.ollama_model, timeout=cfg.request_timeout)
    return GeminiProvider(cfg.api_key)
