"""Error taxonomy for the orchestration core.

Provider and transport failures are normalized into GatewayError subclasses
so callers only ever need to tell "busy" apart from "anything else".
"""
from __future__ import annotations

import re
from typing import Optional


_STATUS_429 = re.compile(r"\b429\b")

BUSY_MESSAGE = "System busy, please try again."
GENERIC_MESSAGE = "The AI service could not complete the request."


class ExamCoreError(Exception):
    pass


class InvalidRequest(ExamCoreError):
    """Raised before any network call when the request cannot be served."""


class GatewayError(ExamCoreError):
    kind = "provider"

    def __init__(self, message: str = GENERIC_MESSAGE, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class RateLimited(GatewayError):
    kind = "rate_limited"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(BUSY_MESSAGE, detail=detail)


class ProviderError(GatewayError):
    kind = "provider"


class MalformedResponse(ProviderError):
    """The model was asked for JSON but returned something else."""

    def __init__(self, raw: str, detail: Optional[str] = None):
        super().__init__(GENERIC_MESSAGE, detail=detail)
        self.raw = raw


def is_rate_limit(exc: BaseException) -> bool:
    """True when a provider exception signals throttling (HTTP 429 or equivalent)."""
    for attr in ("code", "status_code"):
        if getattr(exc, attr, None) == 429:
            return True
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "status_code", None) == 429:
        return True
    text = str(exc)
    return bool(_STATUS_429.search(text)) or "RESOURCE_EXHAUSTED" in text
