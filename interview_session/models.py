from __future__ import annotations  # Interview session state models

import time
from enum import Enum
from typing import Dict, FrozenSet, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


MessageRole = Literal["user", "assistant", "system"]
MessageType = Literal["question", "answer", "evaluation", "hint", "system", "directory_selection"]
AnnotationType = Literal["explanation", "key-point", "connection", "warning"]


def now_ms() -> int:  # Wall-clock timestamp in epoch milliseconds
    return int(time.time() * 1000)


def new_id() -> str:  # Opaque identifier for sessions, messages, questions and snippets
    return str(uuid4())


class SessionStatus(str, Enum):  # Session lifecycle states
    INITIALIZING = "initializing"
    SELECTING_DIRS = "selecting_dirs"
    ANALYZING = "analyzing"
    ACTIVE = "active"
    ENDED = "ended"


TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.INITIALIZING: frozenset({SessionStatus.SELECTING_DIRS, SessionStatus.ENDED}),
    SessionStatus.SELECTING_DIRS: frozenset({SessionStatus.ANALYZING, SessionStatus.ENDED}),
    SessionStatus.ANALYZING: frozenset(
        {SessionStatus.ANALYZING, SessionStatus.ACTIVE, SessionStatus.SELECTING_DIRS, SessionStatus.ENDED}
    ),
    SessionStatus.ACTIVE: frozenset({SessionStatus.ACTIVE, SessionStatus.ENDED}),
    SessionStatus.ENDED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:  # Check the transition table
    return target in TRANSITIONS[current]


class Annotation(BaseModel):  # Line-anchored note on a snippet
    line: int
    text: str
    type: AnnotationType = "explanation"


class CodeSnippet(BaseModel):  # Literal excerpt of a cached source file
    id: str = Field(default_factory=new_id)
    file: str
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    code: str
    language: str = "text"
    annotations: List[Annotation] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> "CodeSnippet":  # Keep range ordered and annotations inside it
        if self.end_line < self.start_line:
            raise ValueError("end_line must not precede start_line")
        for annotation in self.annotations:
            if not self.start_line <= annotation.line <= self.end_line:
                raise ValueError(f"annotation line {annotation.line} outside {self.start_line}-{self.end_line}")
        return self


class Question(BaseModel):  # Generated interview question
    id: str = Field(default_factory=new_id)
    text: str
    related_files: List[str] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list)
    code_snippets: List[CodeSnippet] = Field(default_factory=list)
    generated_at: int = Field(default_factory=now_ms)
    follow_up_of: Optional[str] = None


class MessageMetadata(BaseModel):  # Optional message annotations used by the UI
    type: Optional[MessageType] = None
    question_id: Optional[str] = None
    score: Optional[int] = None
    code_snippets: Optional[List[CodeSnippet]] = None
    directories: Optional[List[str]] = None
    annotations_degraded: Optional[bool] = None


class Message(BaseModel):  # Chat log entry
    id: str = Field(default_factory=new_id)
    role: MessageRole
    content: str
    timestamp: int = Field(default_factory=now_ms)
    metadata: Optional[MessageMetadata] = None


class Evaluation(BaseModel):  # Server-normalized answer evaluation
    score: int = Field(ge=0, le=100)
    is_correct: bool
    feedback: str
    missed_points: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    needs_hint: bool = False


class FileNode(BaseModel):  # Repository tree node
    path: str
    name: str
    type: Literal["file", "directory"]
    children: Optional[List["FileNode"]] = None
    language: Optional[str] = None
    size: Optional[int] = None


class AnalysisCache(BaseModel):  # Structured repository summary plus cached contents
    structure: List[FileNode] = Field(default_factory=list)
    main_entry_points: List[str] = Field(default_factory=list)
    dependencies: Dict[str, List[str]] = Field(default_factory=dict)
    patterns: List[str] = Field(default_factory=list)
    libraries_used: List[str] = Field(default_factory=list)
    summary: str
    analyzed_at: int = Field(default_factory=now_ms)
    file_contents: Dict[str, str] = Field(default_factory=dict)


class Session(BaseModel):  # Unit of interview state for one repository
    session_id: str = Field(default_factory=new_id)
    repo_url: str
    repo_id: str
    selected_directories: List[str] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)
    current_question: Optional[Question] = None
    questions_asked: List[str] = Field(default_factory=list)
    analysis_cache: Optional[AnalysisCache] = None
    created_at: int = Field(default_factory=now_ms)
    last_activity: int = Field(default_factory=now_ms)
    status: SessionStatus = SessionStatus.INITIALIZING


FileNode.model_rebuild()


__all__ = [
    "AnalysisCache",
    "Annotation",
    "AnnotationType",
    "CodeSnippet",
    "Evaluation",
    "FileNode",
    "Message",
    "MessageMetadata",
    "MessageRole",
    "MessageType",
    "Question",
    "Session",
    "SessionStatus",
    "TRANSITIONS",
    "can_transition",
    "new_id",
    "now_ms",
]
