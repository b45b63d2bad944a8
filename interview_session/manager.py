from __future__ import annotations  # Session lifecycle operations over a key-value store

import logging
from textwrap import dedent
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError as ModelValidationError

from observability import log_event
from session_store import SessionStore

from .errors import NotFound, StateConflict
from .models import (
    AnalysisCache,
    Message,
    MessageMetadata,
    MessageRole,
    Question,
    Session,
    SessionStatus,
    can_transition,
    now_ms,
)


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 86_400
DEFAULT_KEY_PREFIX = "interview:session:"

WELCOME_MESSAGE = dedent(
    """
    Welcome to Interview Mode! I'll test your understanding of this repository with challenging technical questions.

    Before we begin, would you like to:
    1. **Focus on specific directories** - Type the directory paths (e.g., "src/api, lib/utils")
    2. **Use the entire repository** - Type "entire repo" or "all"

    What would you like to focus on?
    """
).strip()


def create_message(
    role: MessageRole,
    content: str,
    metadata: Optional[MessageMetadata] = None,
) -> Message:  # Build a chat log entry with fresh id and timestamp
    return Message(role=role, content=content, metadata=metadata)


def closing_message(questions_answered: int) -> str:
    return f"Interview session ended. You answered {questions_answered} questions. Thanks for practicing!"


def normalize_directories(directories: Iterable[str]) -> List[str]:  # Trim slashes, drop blanks, keep order
    seen: List[str] = []
    for raw in directories:
        cleaned = str(raw).strip().strip("/")
        if cleaned.startswith("./"):
            cleaned = cleaned[2:]
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


class SessionManager:  # Load-check-mutate-save wrapper around the session store
    """Owns every change to a persisted session.

    Mutations load the current session, enforce the status transition table,
    apply the change, then save with a refreshed TTL. Read-modify-write is not
    atomic: concurrent writers to one session resolve as last writer wins.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    def create(self, repo_url: str, repo_id: str) -> Session:
        session = Session(repo_url=repo_url, repo_id=repo_id)
        session.messages.append(
            create_message("assistant", WELCOME_MESSAGE, MessageMetadata(type="system"))
        )
        self._transition(session, SessionStatus.SELECTING_DIRS)
        self.save(session)
        log_event("session_created", session.session_id, status=session.status.value)
        return session

    def get(self, session_id: str) -> Optional[Session]:
        payload = self._store.get(self._key(session_id))
        if payload is None:
            return None
        try:
            return Session.model_validate_json(payload)
        except ModelValidationError as exc:
            logger.warning("Discarding unreadable session %s: %s", session_id, exc)
            return None

    def require(self, session_id: str) -> Session:  # Load or raise NotFound
        session = self.get(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        return session

    def save(self, session: Session) -> Session:
        session.last_activity = now_ms()
        self._store.set_with_ttl(self._key(session.session_id), session.model_dump_json(), self._ttl)
        return session

    def delete(self, session_id: str) -> bool:
        removed = self._store.delete(self._key(session_id))
        if removed:
            log_event("session_deleted", session_id)
        return removed

    def add_message(self, session_id: str, message: Message) -> Session:
        def apply(session: Session) -> None:
            session.messages.append(message)

        return self._mutate(session_id, apply)

    def update_status(self, session_id: str, status: SessionStatus) -> Session:
        def apply(session: Session) -> None:
            self._transition(session, status)

        return self._mutate(session_id, apply)

    def set_selected_directories(self, session_id: str, directories: Iterable[str]) -> Session:
        cleaned = normalize_directories(directories)

        def apply(session: Session) -> None:
            self._transition(session, SessionStatus.ANALYZING)
            session.selected_directories = cleaned

        return self._mutate(session_id, apply)

    def set_analysis_cache(self, session_id: str, cache: AnalysisCache) -> Session:
        def apply(session: Session) -> None:
            self._transition(session, SessionStatus.ACTIVE)
            session.analysis_cache = cache

        return self._mutate(session_id, apply)

    def set_current_question(self, session_id: str, question: Question) -> Session:
        def apply(session: Session) -> None:
            if session.status != SessionStatus.ACTIVE:
                raise StateConflict(f"Cannot ask a question while session is {session.status.value}")
            session.current_question = question
            session.questions_asked.append(question.id)

        return self._mutate(session_id, apply)

    def clear_current_question(self, session_id: str) -> Session:
        def apply(session: Session) -> None:
            session.current_question = None

        return self._mutate(session_id, apply)

    def end(self, session_id: str) -> Session:
        def apply(session: Session) -> None:
            self._transition(session, SessionStatus.ENDED)
            session.current_question = None
            session.messages.append(
                create_message(
                    "assistant",
                    closing_message(len(session.questions_asked)),
                    MessageMetadata(type="system"),
                )
            )

        session = self._mutate(session_id, apply)
        log_event("session_ended", session_id, status=session.status.value)
        return session

    def _mutate(self, session_id: str, apply: Callable[[Session], None]) -> Session:
        session = self.require(session_id)
        if session.status == SessionStatus.ENDED:
            raise StateConflict(f"Session {session_id} has ended")
        apply(session)
        return self.save(session)

    def _transition(self, session: Session, target: SessionStatus) -> None:
        current = session.status
        if not can_transition(current, target):
            raise StateConflict(f"Illegal status transition {current.value} -> {target.value}")
        session.status = target
        if current != target:
            log_event("status_changed", session.session_id, status=f"{current.value}->{target.value}")

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"


__all__ = [
    "DEFAULT_KEY_PREFIX",
    "DEFAULT_TTL_SECONDS",
    "SessionManager",
    "WELCOME_MESSAGE",
    "closing_message",
    "create_message",
    "normalize_directories",
]
