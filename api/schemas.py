"""Pydantic schemas for the repository interview API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from interview_session import CodeSnippet, Evaluation, Message, Question, Session


class StartReq(BaseModel):
    repo_url: str
    repo_id: Optional[str] = None


class DirectoriesReq(BaseModel):
    session_id: str
    directories: List[str] = Field(default_factory=list)


class AnalyzeReq(BaseModel):
    session_id: str
    directories: Optional[List[str]] = None


class QuestionReq(BaseModel):
    session_id: str
    focus_area: Optional[str] = None


class AnswerReq(BaseModel):
    session_id: str
    question_id: str
    answer: str


class HintReq(BaseModel):
    session_id: str
    question_id: str
    hint_level: Any = 1


class ApiResp(BaseModel):
    success: bool = True
    error: Optional[str] = None


class SessionResp(ApiResp):
    session: Dict[str, Any]


class QuestionResp(ApiResp):
    question: Question
    message: Optional[Message] = None
    annotations_degraded: bool = False


class AnswerResp(ApiResp):
    evaluation: Evaluation
    message: Optional[Message] = None
    code_snippets: List[CodeSnippet] = Field(default_factory=list)
    follow_up: Optional[Question] = None
    annotations_degraded: bool = False


class HintResp(ApiResp):
    hint: str
    level: int
    hints_remaining: int
    message: Optional[Message] = None


class HealthResp(BaseModel):
    status: str
    store: Dict[str, Any]


def session_view(session: Session) -> Dict[str, Any]:  # Session payload without cached file bodies
    return session.model_dump(mode="json", exclude={"analysis_cache": {"file_contents"}})


def last_message(session: Session, kind: str) -> Optional[Message]:
    for message in reversed(session.messages):
        if message.metadata is not None and message.metadata.type == kind:
            return message
    return None
