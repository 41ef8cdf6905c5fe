"""
Exam-lens orchestration core.

Sends a photographed or dictated exam question to a generative model and shapes
the answers (quick answer, detailed guide, practice quiz, spoken summary) into
plain data for the UI.
"""

from .errors import BUSY_MESSAGE, GENERIC_MESSAGE, GatewayError, InvalidRequest, MalformedResponse, ProviderError, RateLimited
from .gateway import AIGateway
from .orchestrator import TaskOrchestrator, build_orchestrator
from .types import AnalysisResult, PracticeQuestion, ProblemInput, SolveReport, Subject, TaskKind

__all__ = [
    "AIGateway",
    "AnalysisResult",
    "BUSY_MESSAGE",
    "GENERIC_MESSAGE",
    "GatewayError",
    "InvalidRequest",
    "MalformedResponse",
    "PracticeQuestion",
    "ProblemInput",
    "ProviderError",
    "RateLimited",
    "SolveReport",
    "Subject",
    "TaskKind",
    "TaskOrchestrator",
    "build_orchestrator",
]
