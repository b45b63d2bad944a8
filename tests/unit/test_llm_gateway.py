from __future__ import annotations

from typing import List

import pytest
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel

from config import LlmRoute
from llm_gateway import (
    LlmGatewayError,
    LlmValidationError,
    chat,
    complete,
    decode_document,
    parse_structured,
    runnable,
)
from tests.fakes import FakeResponse, ScriptedLlm


class Plan(BaseModel):
    summary: str
    items: List[str] = []


def _route(**overrides) -> LlmRoute:
    data = {
        "name": "test",
        "base_url": "http://llm.local",
        "endpoint": "/v1/chat/completions",
        "model": "stub",
    }
    data.update(overrides)
    return LlmRoute(**data)


def test_decode_strips_code_fences():
    assert decode_document('```json\n{"summary": "ok"}\n```') == {"summary": "ok"}


def test_parse_structured_reports_each_phase():
    assert parse_structured(Plan, "not json").error.startswith("reply was not JSON")
    assert "summary" in parse_structured(Plan, '{"items": []}').error
    rejected = parse_structured(Plan, '{"summary": ""}', predicate=lambda p: None if p.summary else "empty")
    assert rejected.error == "empty"
    assert parse_structured(Plan, '{"summary": "fine"}').value == Plan(summary="fine")


def test_chat_injects_schema_and_validates():
    llm = ScriptedLlm().script("Summarize", {"summary": "done", "items": ["a"]})
    plan = chat([{"role": "user", "content": "Summarize"}], Plan, cfg=_route(), client=llm)
    assert plan.items == ["a"]
    first = llm.calls[0]["messages"][0]
    assert first["role"] == "system" and "JSON object" in first["content"]


def test_chat_raises_validation_error_without_retries():
    llm = ScriptedLlm().script("Summarize", "nope")
    with pytest.raises(LlmValidationError):
        chat([{"role": "user", "content": "Summarize"}], Plan, cfg=_route(), client=llm)
    assert len(llm.calls) == 1


def test_chat_retries_with_hint_when_configured():
    llm = ScriptedLlm().script("Summarize", {"items": []}, {"summary": "second"})
    plan = chat([{"role": "user", "content": "Summarize"}], Plan, cfg=_route(max_retries=1), client=llm)
    assert plan.summary == "second"
    assert "failed validation" in llm.calls[1]["messages"][-1]["content"]


def test_status_and_transport_failures_are_gateway_errors():
    failing = ScriptedLlm().script("Summarize", FakeResponse({"error": "boom"}, status_code=503))
    with pytest.raises(LlmGatewayError) as info:
        chat([{"role": "user", "content": "Summarize"}], Plan, cfg=_route(), client=failing)
    assert not isinstance(info.value, LlmValidationError)

    broken = ScriptedLlm().script("Summarize", ConnectionError("down"))
    with pytest.raises(LlmGatewayError):
        chat([{"role": "user", "content": "Summarize"}], Plan, cfg=_route(), client=broken)


def test_complete_returns_text_and_rejects_empty():
    llm = ScriptedLlm().script("Explain", "  Plain words.  ")
    assert complete([{"role": "user", "content": "Explain"}], cfg=_route(enforce_json=False), client=llm) == "Plain words."
    assert "response_format" not in llm.calls[0]

    empty = ScriptedLlm().script("Explain", "   ")
    with pytest.raises(LlmValidationError):
        complete([{"role": "user", "content": "Explain"}], cfg=_route(enforce_json=False), client=empty)


def test_runnable_accepts_prompt_values():
    llm = ScriptedLlm().script("Topic: caching", {"summary": "cache"})
    prompt = ChatPromptTemplate.from_messages([("system", "{instructions}"), ("human", "Topic: {topic}")])
    chain = prompt | runnable(_route(), Plan, client=llm)
    assert chain.invoke({"instructions": "Be brief.", "topic": "caching"}).summary == "cache"
    roles = [message["role"] for message in llm.calls[0]["messages"]]
    assert roles == ["system", "system", "user"]
