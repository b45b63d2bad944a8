from __future__ import annotations  # Code annotator agent attaching line notes to snippets

import logging
from textwrap import dedent
from typing import List, Optional, Sequence, Type

from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from config import LlmRoute
from interview_session.errors import InterviewError
from interview_session.models import Annotation, CodeSnippet, Question
from llm_gateway import HttpClient, runnable as llm_runnable
from observability import log_event
from .toolkit import gateway_errors, number_lines, numbered_list


logger = logging.getLogger(__name__)

CODE_ANNOTATOR_AGENT_KEY = "interview.code_annotator"  # Registry key for annotator configuration

ANNOTATION_TYPES = ("explanation", "key-point", "connection", "warning")

ANNOTATOR_GUIDANCE = dedent(  # Annotation style guide
    """
    You are a code annotation expert. Your job is to add helpful annotations to code snippets that help developers understand the code in the context of a technical interview question.

    Annotation types:
    - "explanation": Explains what a line or block does
    - "key-point": Highlights important concepts related to the question
    - "connection": Shows how this code connects to other parts of the system
    - "warning": Points out potential issues, edge cases, or gotchas

    Guidelines:
    - Don't over-annotate - 3-6 annotations per snippet is usually enough
    - Focus on lines that are most relevant to the question
    - Be concise but informative
    - Annotations should add value, not just restate what the code obviously does
    """
).strip()


class AnnotationItem(BaseModel):  # One annotation proposed by the model
    line: int
    text: str
    type: str = "explanation"


class AnnotationPlan(BaseModel):  # LLM-enforced annotation payload
    annotations: List[AnnotationItem]


class AnnotatedBatch(BaseModel):  # Snippets after annotation plus the ones that fell back
    snippets: List[CodeSnippet] = Field(default_factory=list)
    degraded_ids: List[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_ids)


class CodeAnnotatorAgent:  # Agent annotating snippets in the context of a question
    def __init__(
        self,
        route: LlmRoute,
        schema: Type[AnnotationPlan] = AnnotationPlan,
        *,
        client: Optional[HttpClient] = None,
    ) -> None:
        self._route = route
        self._schema = schema
        self._prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{instructions}"),
                (
                    "human",
                    (
                        "Add annotations to this code snippet in the context of this interview question:\n\n"
                        "QUESTION: {question}\n\n"
                        "KEY POINTS TO COVER:\n{key_points}\n\n"
                        "CODE ({file}):\n{code}\n\n"
                        "Return JSON with an annotations list; each item has line (a line number shown above),"
                        " text, and type (explanation, key-point, connection or warning).\n"
                        "Only annotate lines that exist in the code (lines {start_line}-{end_line})."
                    ),
                ),
            ]
        )
        self._chain = self._prompt | llm_runnable(
            self._route,
            self._schema,
            client=client,
            options={"temperature": 0.5, "max_tokens": 1024},
        )

    def invoke(self, snippet: CodeSnippet, question: Question) -> CodeSnippet:  # Annotate one snippet or raise
        with gateway_errors("Code annotator"):
            plan = self._chain.invoke(
                {
                    "instructions": ANNOTATOR_GUIDANCE,
                    "question": question.text,
                    "key_points": numbered_list(question.key_points),
                    "file": snippet.file,
                    "code": number_lines(snippet.code, snippet.start_line),
                    "start_line": snippet.start_line,
                    "end_line": snippet.end_line,
                }
            )
        annotations = [
            Annotation(line=item.line, text=item.text.strip(), type=_normalize_type(item.type))
            for item in plan.annotations
            if snippet.start_line <= item.line <= snippet.end_line and item.text.strip()
        ]
        return snippet.model_copy(update={"annotations": annotations})

    def annotate_all(
        self,
        snippets: Sequence[CodeSnippet],
        question: Question,
        *,
        session_id: Optional[str] = None,
    ) -> AnnotatedBatch:  # Annotate sequentially; failures keep the plain snippet
        batch = AnnotatedBatch()
        for snippet in snippets:
            try:
                batch.snippets.append(self.invoke(snippet, question))
            except InterviewError as exc:
                logger.warning("Annotation failed for %s: %s", snippet.file, exc)
                log_event(
                    "annotation_degraded",
                    session_id,
                    level=logging.WARNING,
                    question_id=question.id,
                    error=exc.kind,
                )
                batch.snippets.append(snippet)
                batch.degraded_ids.append(snippet.id)
        return batch


def _normalize_type(raw: str) -> str:
    value = (raw or "").strip().lower().replace("_", "-").replace(" ", "-")
    if value in ANNOTATION_TYPES:
        return value
    return "explanation"


__all__ = [
    "ANNOTATION_TYPES",
    "ANNOTATOR_GUIDANCE",
    "AnnotatedBatch",
    "AnnotationItem",
    "AnnotationPlan",
    "CODE_ANNOTATOR_AGENT_KEY",
    "CodeAnnotatorAgent",
]
