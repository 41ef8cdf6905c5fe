from typing import List, Optional

from pydantic import BaseModel, Field


class SolveReq(BaseModel):
    subject: str
    image: Optional[str] = None  # base64 or data URL
    text: Optional[str] = None


class PracticeQuestionResp(BaseModel):
    prompt: str
    options: List[str] = Field(min_length=4, max_length=4)
    correctIndex: int = Field(ge=0, le=3)
    explanation: str = ""


class SolveResp(BaseModel):
    quickAnswer: str
    detailedGuide: str
    practiceQuestions: List[PracticeQuestionResp]
    audioSummary: str
    isFallback: bool = False
    notice: Optional[str] = None


class SpeakReq(BaseModel):
    content: str
    summarize: bool = True


class ErrorResp(BaseModel):
    error: str
