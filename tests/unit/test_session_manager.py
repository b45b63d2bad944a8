from __future__ import annotations

import pytest

from interview_session import (
    AnalysisCache,
    NotFound,
    Question,
    SessionManager,
    SessionStatus,
    StateConflict,
    TRANSITIONS,
    WELCOME_MESSAGE,
    can_transition,
    create_message,
    normalize_directories,
)
from session_store import FallbackStore, MemoryBackend, RedisBackend
from tests.fakes import FakeRedis


def _manager() -> SessionManager:
    return SessionManager(FallbackStore(primary=None), ttl_seconds=60)


def test_create_moves_to_selecting_dirs_with_welcome():
    manager = _manager()
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    assert session.status == SessionStatus.SELECTING_DIRS
    assert session.messages[0].content == WELCOME_MESSAGE
    assert manager.get(session.session_id) == session


def test_missing_session_raises_not_found():
    manager = _manager()
    assert manager.get("nope") is None
    with pytest.raises(NotFound):
        manager.add_message("nope", create_message("user", "hi"))


def test_transition_table_rejects_skipping_states():
    manager = _manager()
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    with pytest.raises(StateConflict):
        manager.update_status(session.session_id, SessionStatus.ACTIVE)
    assert manager.require(session.session_id).status == SessionStatus.SELECTING_DIRS


def test_only_backward_edge_is_analysis_rollback():
    order = list(SessionStatus)
    backward = [
        (source, target)
        for source, targets in TRANSITIONS.items()
        for target in targets
        if order.index(target) < order.index(source)
    ]
    assert backward == [(SessionStatus.ANALYZING, SessionStatus.SELECTING_DIRS)]
    assert not can_transition(SessionStatus.ENDED, SessionStatus.ACTIVE)


def test_directories_then_cache_reaches_active():
    manager = _manager()
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    updated = manager.set_selected_directories(session.session_id, ["/src/", "", "src", "lib"])
    assert updated.status == SessionStatus.ANALYZING
    assert updated.selected_directories == ["src", "lib"]
    active = manager.set_analysis_cache(session.session_id, AnalysisCache(summary="ok"))
    assert active.status == SessionStatus.ACTIVE
    assert active.analysis_cache is not None


def test_set_current_question_requires_active():
    manager = _manager()
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    with pytest.raises(StateConflict):
        manager.set_current_question(session.session_id, Question(text="Why?", key_points=["a"]))


def test_current_question_tracks_asked_ids():
    manager = _manager()
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    manager.set_selected_directories(session.session_id, [])
    manager.set_analysis_cache(session.session_id, AnalysisCache(summary="ok"))
    question = Question(text="Why?", key_points=["a"])
    updated = manager.set_current_question(session.session_id, question)
    assert updated.current_question == question
    assert updated.questions_asked == [question.id]
    cleared = manager.clear_current_question(session.session_id)
    assert cleared.current_question is None
    assert cleared.questions_asked == [question.id]


def test_end_is_terminal_and_counts_questions():
    manager = _manager()
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    ended = manager.end(session.session_id)
    assert ended.status == SessionStatus.ENDED
    assert "You answered 0 questions" in ended.messages[-1].content
    with pytest.raises(StateConflict):
        manager.add_message(session.session_id, create_message("user", "still there?"))
    with pytest.raises(StateConflict):
        manager.end(session.session_id)


def test_save_refreshes_ttl_on_redis():
    client = FakeRedis()
    manager = SessionManager(FallbackStore(RedisBackend(client), MemoryBackend()), ttl_seconds=90, key_prefix="t:")
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    assert client.ttls[f"t:{session.session_id}"] == 90


def test_sessions_survive_redis_outage_identically():
    client = FakeRedis()
    manager = SessionManager(FallbackStore(RedisBackend(client)), ttl_seconds=90)
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    client.fail = True
    assert manager.require(session.session_id) == session


def test_delete_removes_session():
    manager = _manager()
    session = manager.create("https://github.com/acme/demo", "acme/demo")
    assert manager.delete(session.session_id) is True
    assert manager.get(session.session_id) is None


def test_normalize_directories_strips_and_dedupes():
    assert normalize_directories(["./src/api/", "src/api", " lib ", "/"]) == ["src/api", "lib"]
