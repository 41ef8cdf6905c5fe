"""Runtime configuration.

Every field reads its default from the environment at construction time; tests
build the dataclass with explicit values instead.

Env Vars (optional)
- GOOGLE_API_KEY=...                      (API_KEY is accepted as an alias)
- APP_MODE=cloud|local                    (default: cloud -> Gemini, local -> Ollama)
- GEMINI_MODEL=...                        (default: gemini-2.5-flash)
- GEMINI_TTS_MODEL=...                    (default: gemini-2.5-flash-preview-tts)
- TTS_VOICE=prebuilt voice name           (default: Puck)
- OLLAMA_URL / OLLAMA_MODEL               (default: http://localhost:11434 / phi3:mini)
- EXAM_TEMPERATURE=float                  (default: 0.1)
- EXAM_CACHE_MAX_ENTRIES=int              (default: 1024, 0 = unbounded)
- EXAM_FALLBACK_MODE=aggregate|per_task   (default: aggregate)
- HOST / PORT / LOG_LEVEL                 (service only)
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field


FALLBACK_MODES = {"aggregate", "per_task"}


def _env(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


@dataclass
class GatewayConfig:
    api_key: str = field(default_factory=lambda: _env("GOOGLE_API_KEY", "") or _env("API_KEY", ""))
    app_mode: str = field(default_factory=lambda: _env("APP_MODE", "cloud").lower())
    text_model: str = field(default_factory=lambda: _env("GEMINI_MODEL", "gemini-2.5-flash"))
    tts_model: str = field(default_factory=lambda: _env("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts"))
    voice: str = field(default_factory=lambda: _env("TTS_VOICE", "Puck"))
    ollama_url: str = field(default_factory=lambda: _env("OLLAMA_URL", "http://localhost:11434"))
    ollama_model: str = field(default_factory=lambda: _env("OLLAMA_MODEL", "phi3:mini"))
    temperature: float = field(default_factory=lambda: _env_float("EXAM_TEMPERATURE", 0.1))
    cache_max_entries: int = field(default_factory=lambda: _env_int("EXAM_CACHE_MAX_ENTRIES", 1024))
    fallback_mode: str = field(default_factory=lambda: _env("EXAM_FALLBACK_MODE", "aggregate").lower())
    request_timeout: float = 60.0

    def __post_init__(self) -> None:
        if self.app_mode not in {"cloud", "local"}:
            raise ValueError(f"Unsupported APP_MODE: {self.app_mode}")
        if self.fallback_mode not in FALLBACK_MODES:
            raise ValueError(f"Unsupported EXAM_FALLBACK_MODE: {self.fallback_mode}")
        if self.cache_max_entries < 0:
            raise ValueError("EXAM_CACHE_MAX_ENTRIES must be >= 0")


@dataclass
class ServiceConfig:
    host: str = field(default_factory=lambda: _env("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _env_int("PORT", 5000))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())
