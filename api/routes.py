"""FastAPI routes for repository interview sessions."""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.schemas import (
    AnalyzeReq,
    AnswerReq,
    AnswerResp,
    DirectoriesReq,
    HealthResp,
    HintReq,
    HintResp,
    QuestionReq,
    QuestionResp,
    SessionResp,
    StartReq,
    last_message,
    session_view,
)
from interview_flow import InterviewEngine, OperationResult


logger = logging.getLogger(__name__)

T = TypeVar("T")

router = APIRouter(prefix="/api/interview")
health_router = APIRouter(prefix="/api")

STATUS_BY_KIND = {
    "not_found": 404,
    "validation": 400,
    "state_conflict": 409,
    "upstream": 502,
}


def get_engine(request: Request) -> InterviewEngine:
    return request.app.state.engine


def _run(action: str, call: Callable[[], OperationResult[T]]) -> T:
    try:
        result = call()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error while trying to %s", action)
        raise HTTPException(status_code=500, detail=f"Unable to {action}") from exc
    if not result.success:
        status = STATUS_BY_KIND.get(result.error_kind or "", 500)
        raise HTTPException(status_code=status, detail=result.error or f"Unable to {action}")
    return result.data  # type: ignore[return-value]


@router.post("/start", response_model=SessionResp)
def start(req: StartReq, engine: InterviewEngine = Depends(get_engine)) -> SessionResp:
    session = _run("start session", lambda: engine.start_session(req.repo_url, req.repo_id))
    return SessionResp(session=session_view(session))


@router.get("/session", response_model=SessionResp)
def get_session(
    session_id: str = Query(...),
    engine: InterviewEngine = Depends(get_engine),
) -> SessionResp:
    session = _run("load session", lambda: engine.get_session(session_id))
    return SessionResp(session=session_view(session))


@router.patch("/session", response_model=SessionResp)
def set_directories(req: DirectoriesReq, engine: InterviewEngine = Depends(get_engine)) -> SessionResp:
    session = _run("set directories", lambda: engine.set_directories(req.session_id, req.directories))
    return SessionResp(session=session_view(session))


@router.delete("/session", response_model=SessionResp)
def end_session(
    session_id: str = Query(...),
    engine: InterviewEngine = Depends(get_engine),
) -> SessionResp:
    session = _run("end session", lambda: engine.end_session(session_id))
    return SessionResp(session=session_view(session))


@router.post("/analyze", response_model=SessionResp)
def analyze(req: AnalyzeReq, engine: InterviewEngine = Depends(get_engine)) -> SessionResp:
    session = _run("analyze repository", lambda: engine.analyze(req.session_id, req.directories))
    return SessionResp(session=session_view(session))


@router.post("/question", response_model=QuestionResp)
def question(req: QuestionReq, engine: InterviewEngine = Depends(get_engine)) -> QuestionResp:
    outcome = _run("generate question", lambda: engine.next_question(req.session_id, req.focus_area))
    return QuestionResp(
        question=outcome.question,
        message=last_message(outcome.session, "question"),
        annotations_degraded=outcome.annotations_degraded,
    )


@router.post("/answer", response_model=AnswerResp)
def answer(req: AnswerReq, engine: InterviewEngine = Depends(get_engine)) -> AnswerResp:
    outcome = _run("evaluate answer", lambda: engine.submit_answer(req.session_id, req.question_id, req.answer))
    message = last_message(outcome.session, "evaluation")
    snippets = list(message.metadata.code_snippets or []) if message and message.metadata else []
    return AnswerResp(
        evaluation=outcome.evaluation,
        message=message,
        code_snippets=snippets,
        follow_up=outcome.follow_up,
        annotations_degraded=outcome.annotations_degraded,
    )


@router.post("/hint", response_model=HintResp)
def hint(req: HintReq, engine: InterviewEngine = Depends(get_engine)) -> HintResp:
    outcome = _run("generate hint", lambda: engine.request_hint(req.session_id, req.question_id, req.hint_level))
    return HintResp(
        hint=outcome.hint,
        level=outcome.level,
        hints_remaining=outcome.hints_remaining,
        message=last_message(outcome.session, "hint"),
    )


@health_router.get("/health", response_model=HealthResp)
def health(engine: InterviewEngine = Depends(get_engine)) -> HealthResp:
    status = engine.store_status()
    return HealthResp(status="degraded" if status.degraded else "ok", store=status.model_dump())
