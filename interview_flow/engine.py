from __future__ import annotations  # Orchestration boundary for repository interview sessions

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from config import Settings, load_app_registry
from interview_agents import (
    ANSWER_EVALUATOR_AGENT_KEY,
    CODE_ANNOTATOR_AGENT_KEY,
    HINT_AGENT_KEY,
    QUESTION_AGENT_KEY,
    REPO_ANALYZER_AGENT_KEY,
    AnalysisPlan,
    AnnotationPlan,
    AnswerEvaluatorAgent,
    CodeAnnotatorAgent,
    EvaluationPlan,
    HintAgent,
    QuestionAgent,
    QuestionPlan,
    RepoAnalyzerAgent,
    clamp_hint_level,
    format_evaluation_message,
    format_hint_message,
)
from interview_session import (
    AnalysisCache,
    Evaluation,
    InterviewError,
    MessageMetadata,
    Question,
    Session,
    SessionManager,
    SessionStatus,
    StateConflict,
    ValidationError,
    create_message,
    normalize_directories,
)
from llm_gateway import HttpClient
from observability import log_event, span
from repo_ingestion import GitHubSource, IngestionLimits, RepositorySource, fetch_repository, parse_github_url
from session_store import FallbackStore, build_store


logger = logging.getLogger(__name__)

T = TypeVar("T")

SUMMARY_PREVIEW_CHARS = 500
RECENT_QUESTION_LIMIT = 5


@dataclass(frozen=True)
class OperationResult(Generic[T]):  # Boundary outcome: payload on success, taxonomy kind on failure
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "OperationResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: InterviewError) -> "OperationResult[T]":
        return cls(success=False, error=exc.message, error_kind=exc.kind)


class QuestionOutcome(BaseModel):  # Payload of next_question
    question: Question
    session: Session
    annotations_degraded: bool = False


class AnswerOutcome(BaseModel):  # Payload of submit_answer
    evaluation: Evaluation
    session: Session
    follow_up: Optional[Question] = None
    annotations_degraded: bool = False


class HintOutcome(BaseModel):  # Payload of request_hint
    hint: str
    level: int
    hints_used: int
    hints_remaining: int
    session: Session


class StoreStatus(BaseModel):  # Health view of the session store
    active_backend: str
    degraded: bool
    switch_count: int
    reachable: bool


@dataclass
class EngineContext:  # Process-wide collaborators, built once at startup
    settings: Settings
    store: FallbackStore
    manager: SessionManager
    source: RepositorySource
    analyzer: RepoAnalyzerAgent
    questioner: QuestionAgent
    annotator: CodeAnnotatorAgent
    evaluator: AnswerEvaluatorAgent
    hinter: HintAgent


def build_context(
    settings: Settings,
    config_path: Path,
    *,
    llm_client: Optional[HttpClient] = None,
    source: Optional[RepositorySource] = None,
    store: Optional[FallbackStore] = None,
) -> EngineContext:  # Resolve LLM routes and assemble collaborators
    schemas = {
        REPO_ANALYZER_AGENT_KEY: AnalysisPlan,
        QUESTION_AGENT_KEY: QuestionPlan,
        CODE_ANNOTATOR_AGENT_KEY: AnnotationPlan,
        ANSWER_EVALUATOR_AGENT_KEY: EvaluationPlan,
        HINT_AGENT_KEY: None,
    }
    registry = load_app_registry(Path(config_path), schemas)
    store = store or build_store(settings)
    if source is None:
        source = GitHubSource(
            api_url=settings.GITHUB_API_URL,
            token=settings.GITHUB_TOKEN,
            timeout_s=settings.GITHUB_TIMEOUT_S,
        )
    return EngineContext(
        settings=settings,
        store=store,
        manager=SessionManager(store, ttl_seconds=settings.SESSION_TTL_SECONDS, key_prefix=settings.SESSION_KEY_PREFIX),
        source=source,
        analyzer=RepoAnalyzerAgent(registry[REPO_ANALYZER_AGENT_KEY][0], client=llm_client),
        questioner=QuestionAgent(registry[QUESTION_AGENT_KEY][0], client=llm_client),
        annotator=CodeAnnotatorAgent(registry[CODE_ANNOTATOR_AGENT_KEY][0], client=llm_client),
        evaluator=AnswerEvaluatorAgent(registry[ANSWER_EVALUATOR_AGENT_KEY][0], client=llm_client),
        hinter=HintAgent(registry[HINT_AGENT_KEY][0], client=llm_client),
    )


class InterviewEngine:
    """Operations exposed to the HTTP layer.

    Each operation returns an ``OperationResult``; failures from the error
    taxonomy become ``success=False`` with an ``error_kind``. Anything else
    propagates to the caller.
    """

    def __init__(self, context: EngineContext) -> None:
        self._ctx = context

    @property
    def context(self) -> EngineContext:
        return self._ctx

    def start_session(self, repo_url: str, repo_id: Optional[str] = None) -> OperationResult[Session]:
        def action() -> Session:
            repo = parse_github_url(repo_url or "")
            if repo is None:
                raise ValidationError("Invalid GitHub URL")
            return self._ctx.manager.create(repo_url.strip(), repo_id or repo.slug)

        return self._run("start_session", None, action)

    def get_session(self, session_id: str) -> OperationResult[Session]:
        return self._run("get_session", session_id, lambda: self._ctx.manager.require(session_id))

    def set_directories(self, session_id: str, directories: Sequence[str]) -> OperationResult[Session]:
        return self._run("set_directories", session_id, lambda: self._apply_directories(session_id, directories))

    def analyze(self, session_id: str, directories: Optional[Sequence[str]] = None) -> OperationResult[Session]:
        return self._run("analyze", session_id, lambda: self._analyze(session_id, directories))

    def next_question(self, session_id: str, focus_area: Optional[str] = None) -> OperationResult[QuestionOutcome]:
        return self._run("next_question", session_id, lambda: self._next_question(session_id, focus_area))

    def submit_answer(self, session_id: str, question_id: str, text: str) -> OperationResult[AnswerOutcome]:
        return self._run("submit_answer", session_id, lambda: self._submit_answer(session_id, question_id, text))

    def request_hint(self, session_id: str, question_id: str, level: Any = 1) -> OperationResult[HintOutcome]:
        return self._run("request_hint", session_id, lambda: self._request_hint(session_id, question_id, level))

    def end_session(self, session_id: str) -> OperationResult[Session]:
        return self._run("end_session", session_id, lambda: self._ctx.manager.end(session_id))

    def store_status(self) -> StoreStatus:
        store = self._ctx.store
        reachable = store.ping()
        return StoreStatus(
            active_backend=store.active_backend,
            degraded=store.degraded,
            switch_count=store.switch_count,
            reachable=reachable,
        )

    def _run(self, operation: str, session_id: Optional[str], action: Callable[[], T]) -> OperationResult[T]:
        try:
            with span(operation, session_id):
                data = action()
        except InterviewError as exc:
            log_event(
                "operation_failed",
                session_id,
                level=logging.WARNING,
                stage=operation,
                outcome=exc.kind,
                error=exc.message,
            )
            return OperationResult.fail(exc)
        return OperationResult.ok(data)

    def _apply_directories(self, session_id: str, directories: Sequence[str]) -> Session:
        manager = self._ctx.manager
        cleaned = normalize_directories(directories)
        manager.set_selected_directories(session_id, cleaned)
        text = f"Focus on: {', '.join(cleaned)}" if cleaned else "Use the entire repository"
        return manager.add_message(
            session_id,
            create_message("user", text, MessageMetadata(type="directory_selection", directories=cleaned)),
        )

    def _analyze(self, session_id: str, directories: Optional[Sequence[str]]) -> Session:
        manager = self._ctx.manager
        session = manager.require(session_id)
        if session.status == SessionStatus.ENDED:
            raise StateConflict("Session has ended")
        was_active = session.status == SessionStatus.ACTIVE
        if session.status == SessionStatus.SELECTING_DIRS:
            self._apply_directories(session_id, directories or [])
        elif session.status == SessionStatus.ANALYZING and directories is not None:
            manager.set_selected_directories(session_id, directories)
        elif was_active and directories is not None:
            raise StateConflict("Directories can only change before the first analysis")
        elif session.status not in {SessionStatus.ANALYZING, SessionStatus.ACTIVE}:
            raise StateConflict(f"Cannot analyze while session is {session.status.value}")

        session = manager.require(session_id)
        scope = session.selected_directories
        focus = f" (focusing on: {', '.join(scope)})" if scope else " (entire repo)"
        manager.add_message(
            session_id,
            create_message(
                "assistant",
                f"Analyzing the repository{focus}...\n\n"
                "This may take a moment. I'll generate a challenging question once the analysis is complete.",
                MessageMetadata(type="system"),
            ),
        )
        try:
            cache, file_count = self._build_analysis(session)
        except Exception:
            if not was_active:
                self._roll_back_analysis(session_id)
            raise
        manager.set_analysis_cache(session_id, cache)
        preview = cache.summary[:SUMMARY_PREVIEW_CHARS]
        return manager.add_message(
            session_id,
            create_message(
                "assistant",
                f"Analysis complete! I've analyzed {file_count} files and identified the key patterns and"
                f" architecture.\n\n**Summary:**\n{preview}...\n\nLet me generate your first question...",
                MessageMetadata(type="system"),
            ),
        )

    def _roll_back_analysis(self, session_id: str) -> None:
        logger.info("Analysis failed for %s, returning to directory selection", session_id)
        try:
            self._ctx.manager.update_status(session_id, SessionStatus.SELECTING_DIRS)
        except InterviewError as exc:
            logger.warning("Could not roll back %s after failed analysis: %s", session_id, exc)

    def _build_analysis(self, session: Session) -> tuple[AnalysisCache, int]:
        limits = IngestionLimits(
            max_file_size=self._ctx.settings.MAX_FILE_SIZE,
            max_files=self._ctx.settings.MAX_REPO_FILES,
        )
        repo = fetch_repository(self._ctx.source, session.repo_url, session.selected_directories, limits)
        if not repo.files:
            raise ValidationError("No files found in the repository or selected directories")
        with span("analyze_repo", session.session_id, files=len(repo.files)):
            cache = self._ctx.analyzer.invoke(repo)
        return cache, len(repo.files)

    def _next_question(self, session_id: str, focus_area: Optional[str]) -> QuestionOutcome:
        session = self._ctx.manager.require(session_id)
        if session.status == SessionStatus.ENDED:
            raise StateConflict("Session has ended")
        if session.analysis_cache is None:
            raise StateConflict("Repository analysis not found. Please analyze the repository first.")
        question = self._ctx.questioner.invoke(
            session.analysis_cache,
            asked_count=len(session.questions_asked),
            recent_questions=_recent_question_texts(session),
            focus_area=(focus_area or "").strip() or None,
        )
        question, degraded = self._annotate(question, session_id)
        session = self._issue_question(session_id, question, degraded)
        return QuestionOutcome(question=question, session=session, annotations_degraded=degraded)

    def _submit_answer(self, session_id: str, question_id: str, text: str) -> AnswerOutcome:
        manager = self._ctx.manager
        session = manager.require(session_id)
        question = _require_current_question(session, question_id)
        if not (text or "").strip():
            raise ValidationError("Answer text is required")
        if session.analysis_cache is None:
            raise StateConflict("Repository analysis not found")
        cache = session.analysis_cache

        manager.add_message(
            session_id,
            create_message("user", text, MessageMetadata(type="answer", question_id=question_id)),
        )
        evaluation = self._ctx.evaluator.invoke(question, text, cache)
        batch = self._ctx.annotator.annotate_all(question.code_snippets, question, session_id=session_id)
        manager.add_message(
            session_id,
            create_message(
                "assistant",
                format_evaluation_message(evaluation),
                MessageMetadata(
                    type="evaluation",
                    question_id=question_id,
                    score=evaluation.score,
                    code_snippets=batch.snippets,
                    annotations_degraded=batch.degraded or None,
                ),
            ),
        )
        session = manager.clear_current_question(session_id)
        log_event("answer_evaluated", session_id, question_id=question_id, score=evaluation.score)

        follow_up: Optional[Question] = None
        if self._ctx.settings.AUTO_FOLLOW_UP:
            follow_up, session = self._maybe_follow_up(session, cache, question, text, evaluation)
        return AnswerOutcome(
            evaluation=evaluation,
            session=session,
            follow_up=follow_up,
            annotations_degraded=batch.degraded,
        )

    def _maybe_follow_up(
        self,
        session: Session,
        cache: AnalysisCache,
        question: Question,
        answer: str,
        evaluation: Evaluation,
    ) -> tuple[Optional[Question], Session]:
        try:
            follow_up = self._ctx.questioner.follow_up(cache, question, answer, evaluation)
            if follow_up is None:
                return None, session
            follow_up, degraded = self._annotate(follow_up, session.session_id)
            return follow_up, self._issue_question(session.session_id, follow_up, degraded)
        except InterviewError as exc:
            logger.warning("Skipping follow-up for %s: %s", session.session_id, exc)
            log_event("follow_up_skipped", session.session_id, level=logging.WARNING, error=exc.kind)
            return None, session

    def _request_hint(self, session_id: str, question_id: str, level: Any) -> HintOutcome:
        manager = self._ctx.manager
        session = manager.require(session_id)
        question = _require_current_question(session, question_id)
        if session.analysis_cache is None:
            raise StateConflict("Repository analysis not found")
        limit = self._ctx.settings.HINTS_PER_QUESTION
        used = _hints_used(session, question_id)
        if used >= limit:
            raise StateConflict(f"Hint limit of {limit} reached for this question")
        resolved = clamp_hint_level(level)
        hint = format_hint_message(self._ctx.hinter.invoke(question, session.analysis_cache, resolved), resolved)
        session = manager.add_message(
            session_id,
            create_message("assistant", hint, MessageMetadata(type="hint", question_id=question_id)),
        )
        log_event("hint_given", session_id, question_id=question_id, level=resolved)
        return HintOutcome(
            hint=hint,
            level=resolved,
            hints_used=used + 1,
            hints_remaining=max(0, limit - used - 1),
            session=session,
        )

    def _annotate(self, question: Question, session_id: str) -> tuple[Question, bool]:
        if not question.code_snippets:
            return question, False
        batch = self._ctx.annotator.annotate_all(question.code_snippets, question, session_id=session_id)
        return question.model_copy(update={"code_snippets": batch.snippets}), batch.degraded

    def _issue_question(self, session_id: str, question: Question, degraded: bool) -> Session:
        manager = self._ctx.manager
        manager.set_current_question(session_id, question)
        session = manager.add_message(
            session_id,
            create_message(
                "assistant",
                question.text,
                MessageMetadata(
                    type="question",
                    question_id=question.id,
                    code_snippets=question.code_snippets,
                    annotations_degraded=degraded or None,
                ),
            ),
        )
        log_event("question_issued", session_id, question_id=question.id)
        return session


def _require_current_question(session: Session, question_id: str) -> Question:
    if session.status == SessionStatus.ENDED:
        raise StateConflict("Session has ended")
    current = session.current_question
    if current is None or current.id != question_id:
        raise StateConflict("Question not found or has changed")
    return current


def _hints_used(session: Session, question_id: str) -> int:
    return sum(
        1
        for message in session.messages
        if message.metadata is not None
        and message.metadata.type == "hint"
        and message.metadata.question_id == question_id
    )


def _recent_question_texts(session: Session) -> List[str]:
    texts = [
        message.content
        for message in session.messages
        if message.metadata is not None and message.metadata.type == "question"
    ]
    return texts[-RECENT_QUESTION_LIMIT:]


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
