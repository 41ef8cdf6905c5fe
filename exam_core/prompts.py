"""Prompt templates for the three study views plus the spoken summary.

The JSON templates spell out the exact field names the gateway validates
against (see schemas.py); change both together.
"""
from __future__ import annotations

from typing import Dict

from .types import Subject, TaskKind


QUICK_ANSWER = (
    "You are an expert at solving exam problems fast.\n"
    'TASK: Return JSON {"finalAnswer": "...", "calculatorSteps": "..."}.\n'
    "- finalAnswer: only the final answer (use LaTeX).\n"
    "- calculatorSteps: the shortest keystroke sequence on a scientific calculator "
    '(Casio fx-580VN X). If no calculator is needed, write "No calculator needed for this problem".'
)


DETAILED_GUIDE = (
    "You are a professor walking a student through the solution.\n"
    "TASK: Solve the problem in detail, one rigorous logical step at a time.\n"
    "REQUIREMENTS: Scientific language, LaTeX for every formula. No greetings."
)


PRACTICE_QUIZ = (
    "You are an expert exam writer.\n"
    "TASK: Write 2 multiple-choice questions similar to the national high-school exam.\n"
    "- Question 1: understanding level (easy).\n"
    "- Question 2: application level (hard).\n"
    'Return JSON: {"quizzes": [{"question": "...", "options": ["A. ...", "B. ...", "C. ...", "D. ..."], '
    '"answer": "A", "explanation": "..."}]}\n'
    "Each question has exactly 4 options and answer is one of A, B, C, D."
)


SUMMARY_PROMPT = (
    "Summarize the following result as one very short sentence to be read aloud "
    "(do not read out complex formulas): {content}"
)


_CATALOG: Dict[TaskKind, str] = {
    TaskKind.QUICK_ANSWER: QUICK_ANSWER,
    TaskKind.DETAILED_GUIDE: DETAILED_GUIDE,
    TaskKind.PRACTICE_QUIZ: PRACTICE_QUIZ,
}


def lookup(task: TaskKind) -> str:
    """Return the fixed instruction template for a task kind."""
    return _CATALOG[TaskKind(task)]


def render_task_prompt(subject: Subject, instruction: str, problem_text: str) -> str:
    """Compose the instruction part sent next to the (optional) image."""
    return f"Subject: {subject.label}. Task: {instruction}. Problem: {problem_text}"


def render_summary_prompt(content: str) -> str:
    return SUMMARY_PROMPT.format(content=content)
