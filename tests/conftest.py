import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.settings import Settings
from interview_flow import InterviewEngine, build_context
from session_store import FallbackStore
from tests.fakes import (
    CONFIG_PATH,
    ANALYSIS_REPLY,
    ANALYZER_MARKER,
    ANNOTATION_REPLY,
    ANNOTATOR_MARKER,
    EVALUATION_REPLY,
    EVALUATOR_MARKER,
    HINT_MARKER,
    HINT_REPLY,
    QUESTION_MARKER,
    QUESTION_REPLY,
    STUB_FILES,
    FakeSource,
    ScriptedLlm,
)


@pytest.fixture
def scripted_llm() -> ScriptedLlm:
    return (
        ScriptedLlm()
        .script(ANALYZER_MARKER, ANALYSIS_REPLY)
        .script(QUESTION_MARKER, QUESTION_REPLY)
        .script(ANNOTATOR_MARKER, ANNOTATION_REPLY)
        .script(EVALUATOR_MARKER, EVALUATION_REPLY)
        .script(HINT_MARKER, HINT_REPLY)
    )


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource(STUB_FILES)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, SESSION_STORE="memory", AUTO_FOLLOW_UP=False)


@pytest.fixture
def engine(test_settings: Settings, scripted_llm: ScriptedLlm, fake_source: FakeSource) -> InterviewEngine:
    context = build_context(
        test_settings,
        CONFIG_PATH,
        llm_client=scripted_llm,
        source=fake_source,
        store=FallbackStore(primary=None),
    )
    return InterviewEngine(context)


@pytest.fixture
def repo_url() -> str:
    return "https://github.com/acme/demo"
