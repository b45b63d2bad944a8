from __future__ import annotations  # Re-export interview_flow public API

from .engine import (
    AnswerOutcome,
    EngineContext,
    HintOutcome,
    InterviewEngine,
    OperationResult,
    QuestionOutcome,
    StoreStatus,
    build_context,
)

__all__ = [
    "AnswerOutcome",
    "EngineContext",
    "HintOutcome",
    "InterviewEngine",
    "OperationResult",
    "QuestionOutcome",
    "StoreStatus",
    "build_context",
]
