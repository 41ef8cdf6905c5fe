"""High-level orchestrator used by the UI and the HTTP service.

solve()               -> AnalysisResult (three task calls run concurrently)
solve_report()        -> SolveReport with a per-task Succeeded/Failed outcome
summarize_and_speak() -> PCM bytes or None
speak() / stop_speaking() drive the attached playback engine.

RateLimited is the only call error solve() lets through; every other failure
turns into the clearly labeled fallback result.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

from .config import GatewayConfig
from .errors import RateLimited
from .gateway import AIGateway
from .prompts import render_summary_prompt
from .providers import AiProvider, build_provider
from .schemas import QuickAnswerOutput, QuizOutput
from .types import (
    AnalysisResult,
    PracticeQuestion,
    ProblemInput,
    SolveReport,
    Subject,
    TaskKind,
    TaskOutcome,
)


logger = logging.getLogger("exam_core.orchestrator")

SOLVE_TASKS = (TaskKind.QUICK_ANSWER, TaskKind.DETAILED_GUIDE, TaskKind.PRACTICE_QUIZ)

FALLBACK_NOTICE = "Live AI results are unavailable right now; showing sample content instead."

FALLBACK_QUICK_ANSWER = "Answer: **x = 5**.\n\nCalculator steps: [MODE] [5] [3] ..."
FALLBACK_GUIDE = (
    "### Detailed solution\n"
    "Step 1: Move the constant term to the right-hand side...\n"
    "Step 2: Divide both sides by 2..."
)
FALLBACK_AUDIO_SUMMARY = "The answer is x equals 5. Just divide 10 by 2 to get the result."


def fallback_questions() -> List[PracticeQuestion]:
    return [
        PracticeQuestion(
            prompt="Question 1 (easy): If 2x = 10, what is x?",
            options=["2", "5", "8", "10"],
            correct_index=1,
            explanation="x = 10 / 2 = 5",
        ),
        PracticeQuestion(
            prompt="Question 2 (hard): Find x given 2x + 4 = 14",
            options=["3", "5", "7", "9"],
            correct_index=1,
            explanation="2x = 10 => x = 5",
        ),
    ]


def fallback_result() -> AnalysisResult:
    return AnalysisResult(
        quick_answer=FALLBACK_QUICK_ANSWER,
        detailed_guide=FALLBACK_GUIDE,
        practice_questions=fallback_questions(),
        audio_summary=FALLBACK_AUDIO_SUMMARY,
        is_fallback=True,
        notice=FALLBACK_NOTICE,
    )


def speakable(text: str) -> str:
    """Drop LaTeX/markdown markup so the text reads naturally aloud."""
    s = re.sub(r"\\[a-zA-Z]+", " ", text or "")
    s = re.sub(r"[$*_`{}\\#]", "", s)
    return " ".join(s.split())


class TaskOrchestrator:
    def __init__(
        self,
        gateway: AIGateway,
        playback: Optional[Any] = None,
        fallback_mode: Optional[str] = None,
    ):
        self.gateway = gateway
        self.playback = playback
        self.fallback_mode = fallback_mode or gateway.config.fallback_mode

    # ------------------- solve -------------------

    async def _run_task(self, subject: Subject, task: TaskKind, problem: ProblemInput) -> Any:
        out = await self.gateway.call(subject, task, problem)
        if task is TaskKind.QUICK_ANSWER:
            return QuickAnswerOutput.model_validate(out.payload)
        if task is TaskKind.PRACTICE_QUIZ:
            return QuizOutput.model_validate(out.payload).questions()
        return out.text.strip()

    async def solve_report(self, subject: Any, problem: ProblemInput) -> SolveReport:
        """Run all three tasks concurrently and report each outcome separately."""
        subject = Subject.parse(subject)
        problem.validate()

        results = await asyncio.gather(
            *(self._run_task(subject, task, problem) for task in SOLVE_TASKS),
            return_exceptions=True,
        )
        outcomes: Dict[TaskKind, TaskOutcome] = {}
        for task, res in zip(SOLVE_TASKS, results):
            if isinstance(res, BaseException):
                logger.warning(f"{task.value} failed: {res!r}")
                outcomes[task] = TaskOutcome.failed(task, res)
            else:
                outcomes[task] = TaskOutcome.succeeded(task, res)
        return SolveReport(subject=subject, outcomes=outcomes)

    async def solve(self, subject: Any, problem: ProblemInput) -> AnalysisResult:
        report = await self.solve_report(subject, problem)
        if report.ok:
            return self.assemble(report)

        for o in report.failures:
            if isinstance(o.error, RateLimited):
                raise o.error

        failed = ", ".join(o.task.value for o in report.failures)
        if self.fallback_mode == "per_task":
            logger.warning(f"Partial result; placeholders for: {failed}")
            return self.assemble(report)
        logger.warning(f"Solve failed ({failed}); returning fallback result")
        return fallback_result()

    def assemble(self, report: SolveReport) -> AnalysisResult:
        """Fold a report into one AnalysisResult; failed tasks get placeholder content."""
        outcomes = report.outcomes
        fb = fallback_result()
        quick = outcomes.get(TaskKind.QUICK_ANSWER)
        guide = outcomes.get(TaskKind.DETAILED_GUIDE)
        quiz = outcomes.get(TaskKind.PRACTICE_QUIZ)

        result = AnalysisResult(
            quick_answer=quick.value.render() if quick and quick.ok else fb.quick_answer,
            detailed_guide=guide.value if guide and guide.ok else fb.detailed_guide,
            practice_questions=quiz.value if quiz and quiz.ok else fb.practice_questions,
            audio_summary=(
                f"The answer is {speakable(quick.value.finalAnswer)}." if quick and quick.ok else fb.audio_summary
            ),
        )
        if not report.ok:
            failed = ", ".join(o.task.value for o in report.failures)
            result.is_fallback = True
            result.notice = f"Some sections use sample content ({failed})."
        return result

    # ------------------- speech -------------------

    async def summarize(self, content: str, subject: Subject = Subject.GENERAL_DIARY) -> str:
        if not content or not content.strip():
            return ""
        out = await self.gateway.call(subject, render_summary_prompt(content))
        return out.text.strip()

    async def summarize_and_speak(self, content: str) -> Optional[bytes]:
        """Summarize, then synthesize. Summary errors propagate; missing audio is None."""
        summary = await self.summarize(content)
        if not summary:
            return None
        return await self.gateway.fetch_audio(summary)

    async def speak(self, content: str, summarize: bool = True):
        """Synthesize and start playback; returns the playback handle or None."""
        if summarize:
            audio = await self.summarize_and_speak(content)
        else:
            audio = await self.gateway.fetch_audio(content)
        if not audio or self.playback is None:
            return None
        return await self.playback.play(audio)

    def stop_speaking(self) -> None:
        if self.playback is not None:
            self.playback.stop()


def build_orchestrator(
    config: Optional[GatewayConfig] = None,
    provider: Optional[AiProvider] = None,
    playback: Optional[Any] = None,
) -> TaskOrchestrator:
    cfg = config or GatewayConfig()
    gateway = AIGateway(provider or build_provider(cfg), config=cfg)
    return TaskOrchestrator(gateway, playback=playback)
