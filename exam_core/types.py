"""Plain data structures shared by the gateway, the orchestrator and the service.

Everything here is UI-agnostic: the caller hands in a subject plus a problem
(text and/or a photographed page) and receives back an AnalysisResult.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidRequest


DEFAULT_IMAGE_MIME = "image/jpeg"


class Subject(str, Enum):
    MATH = "Math"
    PHYSICS = "Physics"
    CHEMISTRY = "Chemistry"
    GENERAL_DIARY = "GeneralDiary"

    @property
    def label(self) -> str:
        return _SUBJECT_LABELS[self]

    @classmethod
    def parse(cls, raw: Any) -> "Subject":
        """Accept a member, its value, its name or its label (case-insensitive)."""
        if isinstance(raw, cls):
            return raw
        s = str(raw or "").strip().lower()
        for member in cls:
            if s in {member.value.lower(), member.name.lower(), member.label.lower()}:
                return member
        raise InvalidRequest(f"unknown subject: {raw!r}")


_SUBJECT_LABELS = {
    Subject.MATH: "Mathematics",
    Subject.PHYSICS: "Physics",
    Subject.CHEMISTRY: "Chemistry",
    Subject.GENERAL_DIARY: "General study diary",
}


class TaskKind(str, Enum):
    QUICK_ANSWER = "QuickAnswer"
    DETAILED_GUIDE = "DetailedGuide"
    PRACTICE_QUIZ = "PracticeQuiz"

    @property
    def expects_json(self) -> bool:
        return self is not TaskKind.DETAILED_GUIDE


@dataclass(frozen=True)
class ProblemInput:
    """Text and/or image of one exam question.

    image_base64 may be a data URL (``data:image/png;base64,...``) or bare base64.
    """

    text: Optional[str] = None
    image_base64: Optional[str] = None

    @property
    def clean_text(self) -> str:
        return (self.text or "").strip()

    @property
    def has_image(self) -> bool:
        return bool(self.image_base64 and self.image_base64.strip())

    def is_empty(self) -> bool:
        return not self.clean_text and not self.has_image

    def validate(self) -> "ProblemInput":
        if self.is_empty():
            raise InvalidRequest("provide the problem as text or as an image")
        if self.has_image:
            self.image_bytes()
        return self

    @property
    def image_mime_type(self) -> str:
        raw = (self.image_base64 or "").strip()
        if raw.startswith("data:") and ";" in raw:
            mime = raw[len("data:"):raw.index(";")]
            if mime:
                return mime
        return DEFAULT_IMAGE_MIME

    @property
    def image_payload(self) -> str:
        """Base64 payload with any ``data:...;base64,`` prefix removed."""
        raw = (self.image_base64 or "").strip()
        if raw.startswith("data:") and "," in raw:
            return raw.split(",", 1)[1]
        return raw

    def image_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.image_payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise InvalidRequest(f"image is not valid base64: {e}") from e


@dataclass(frozen=True)
class SolveRequest:
    subject: Subject
    problem: ProblemInput


@dataclass(frozen=True)
class PracticeQuestion:
    prompt: str
    options: List[str]
    correct_index: int
    explanation: str = ""

    def __post_init__(self) -> None:
        if len(self.options) != 4:
            raise ValueError(f"practice question needs exactly 4 options, got {len(self.options)}")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(f"correct_index {self.correct_index} out of range")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "options": list(self.options),
            "correctIndex": self.correct_index,
            "explanation": self.explanation,
        }


@dataclass
class AnalysisResult:
    quick_answer: str
    detailed_guide: str
    practice_questions: List[PracticeQuestion] = field(default_factory=list)
    audio_summary: str = ""
    is_fallback: bool = False
    notice: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quickAnswer": self.quick_answer,
            "detailedGuide": self.detailed_guide,
            "practiceQuestions": [q.to_dict() for q in self.practice_questions],
            "audioSummary": self.audio_summary,
            "isFallback": self.is_fallback,
            "notice": self.notice,
        }


@dataclass(frozen=True)
class ModelOutput:
    """Normalized gateway result: raw text plus the parsed JSON payload if any."""

    text: str
    payload: Optional[Dict[str, Any]] = None
    cached: bool = False


@dataclass(frozen=True)
class TaskOutcome:
    task: TaskKind
    ok: bool
    value: Any = None
    reason: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def succeeded(cls, task: TaskKind, value: Any) -> "TaskOutcome":
        return cls(task=task, ok=True, value=value, reason="ok")

    @classmethod
    def failed(cls, task: TaskKind, error: BaseException) -> "TaskOutcome":
        return cls(task=task, ok=False, reason=str(error), error=error)


@dataclass
class SolveReport:
    subject: Subject
    outcomes: Dict[TaskKind, TaskOutcome]

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes.values())

    @property
    def failures(self) -> List[TaskOutcome]:
        return [o for o in self.outcomes.values() if not o.ok]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"subject": self.subject.value, "ok": self.ok, "tasks": {}}
        for task, o in self.outcomes.items():
            value = o.value
            if hasattr(value, "model_dump"):
                value = value.model_dump()
            elif isinstance(value, list):
                value = [q.to_dict() if isinstance(q, PracticeQuestion) else q for q in value]
            out["tasks"][task.value] = {"ok": o.ok, "value": value if o.ok else None, "reason": o.reason}
        return out
