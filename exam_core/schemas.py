"""Pydantic schemas for the JSON the model is asked to return.

The shapes mirror the contracts written into prompts.QUICK_ANSWER and
prompts.PRACTICE_QUIZ.
"""
from __future__ import annotations

from typing import List, Union

from pydantic import BaseModel, Field, field_validator

from .types import PracticeQuestion


ANSWER_LETTERS = "ABCD"


class QuickAnswerOutput(BaseModel):
    finalAnswer: str
    calculatorSteps: str = ""

    def render(self) -> str:
        """Quick-answer string shown in the first view."""
        answer = self.finalAnswer.strip()
        steps = self.calculatorSteps.strip()
        if not steps:
            return f"Answer: {answer}"
        return f"Answer: {answer}\n\nCalculator steps: {steps}"


class QuizItem(BaseModel):
    question: str
    options: List[str]
    answer: Union[int, str]
    explanation: str = ""

    @field_validator("options")
    @classmethod
    def _four_options(cls, v: List[str]) -> List[str]:
        if len(v) != 4:
            raise ValueError(f"expected exactly 4 options, got {len(v)}")
        return v

    @field_validator("answer")
    @classmethod
    def _answer_in_range(cls, v: Union[int, str]) -> int:
        if isinstance(v, int):
            idx = v
        else:
            s = v.strip().upper()
            idx = ANSWER_LETTERS.find(s[:1]) if s else -1
        if not 0 <= idx < len(ANSWER_LETTERS):
            raise ValueError(f"answer must be one of A-D, got {v!r}")
        return idx

    def to_question(self) -> PracticeQuestion:
        return PracticeQuestion(
            prompt=self.question,
            options=list(self.options),
            correct_index=int(self.answer),
            explanation=self.explanation,
        )


class QuizOutput(BaseModel):
    quizzes: List[QuizItem] = Field(min_length=1)

    def questions(self) -> List[PracticeQuestion]:
        return [q.to_question() for q in self.quizzes]
