from __future__ import annotations  # Re-export interview_session public API

from .errors import InterviewError, NotFound, StateConflict, UpstreamFailure, ValidationError
from .manager import (
    SessionManager,
    WELCOME_MESSAGE,
    closing_message,
    create_message,
    normalize_directories,
)
from .models import (
    AnalysisCache,
    Annotation,
    CodeSnippet,
    Evaluation,
    FileNode,
    Message,
    MessageMetadata,
    Question,
    Session,
    SessionStatus,
    TRANSITIONS,
    can_transition,
    new_id,
    now_ms,
)

__all__ = [
    "AnalysisCache",
    "Annotation",
    "CodeSnippet",
    "Evaluation",
    "FileNode",
    "InterviewError",
    "Message",
    "MessageMetadata",
    "NotFound",
    "Question",
    "Session",
    "SessionManager",
    "SessionStatus",
    "StateConflict",
    "TRANSITIONS",
    "UpstreamFailure",
    "ValidationError",
    "WELCOME_MESSAGE",
    "can_transition",
    "closing_message",
    "create_message",
    "new_id",
    "normalize_directories",
    "now_ms",
]
