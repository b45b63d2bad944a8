from __future__ import annotations  # Question generator agent with literal snippet extraction

import logging
from textwrap import dedent
from typing import Any, List, Optional, Sequence, Type

from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, ConfigDict, Field

from config import LlmRoute
from interview_session.models import AnalysisCache, CodeSnippet, Evaluation, Question
from llm_gateway import HttpClient, runnable as llm_runnable
from repo_ingestion import language_for_path
from .toolkit import bullet_list, clamp_text, file_sections, gateway_errors


logger = logging.getLogger(__name__)

QUESTION_AGENT_KEY = "interview.question_generator"  # Registry key for question generator configuration

MAX_SAMPLED_FILES = 8
SAMPLED_FILE_CHARS = 2500
FALLBACK_SNIPPET_LINES = 30
FOLLOW_UP_SNIPPET_LINES = 25
FOLLOW_UP_MAX_FILES = 2
FOLLOW_UP_MIN_MISSED = 2
RECENT_QUESTION_WINDOW = 5

QUESTION_GUIDANCE = dedent(  # Interviewer persona for deep-dive questions
    """
    You are a senior technical interviewer conducting a deep-dive code review interview. Your job is to generate challenging, probing questions that test the candidate's understanding of the codebase.

    Guidelines for questions:
    1. Focus on WHY decisions were made, not just WHAT the code does
    2. Ask about edge cases, error handling, and potential improvements
    3. Connect different parts of the codebase to test holistic understanding
    4. Ask about trade-offs and alternative approaches
    5. Questions should require actual code understanding, not guessing
    6. Be specific - reference actual functions, classes, and patterns in the code
    7. Make questions challenging but fair - they should have clear answers based on the code

    Question types to vary between:
    - Architecture and design decisions
    - Error handling and edge cases
    - Performance and optimization
    - Security considerations
    - Testing strategies
    - Code maintainability
    - Integration between components
    """
).strip()

FOLLOW_UP_GUIDANCE = dedent(  # Follow-up persona probing missed points
    """
    You are a senior technical interviewer. Based on the candidate's previous answer, generate a follow-up question that probes deeper into the areas they missed or didn't fully explain.
    """
).strip()


class SnippetRef(BaseModel):  # Line range the model wants shown
    model_config = ConfigDict(populate_by_name=True)

    file: str
    start_line: int = Field(alias="startLine")
    end_line: int = Field(alias="endLine")
    relevance: str = ""


class QuestionPlan(BaseModel):  # LLM-enforced question payload
    model_config = ConfigDict(populate_by_name=True)

    text: str
    related_files: List[str] = Field(alias="relatedFiles")
    key_points: List[str] = Field(alias="keyPoints")
    code_snippets: List[SnippetRef] = Field(alias="codeSnippets")


def _require_text_and_points(plan: Any) -> Optional[str]:
    if not plan.text.strip():
        return "text must not be empty"
    if not [point for point in plan.key_points if point.strip()]:
        return "keyPoints must list at least one point"
    return None


class QuestionAgent:  # Agent drafting interview questions grounded in cached code
    def __init__(
        self,
        route: LlmRoute,
        schema: Type[QuestionPlan] = QuestionPlan,
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
                        "Generate a challenging technical interview question about this codebase.\n\n"
                        "CODEBASE SUMMARY:\n{summary}\n\n"
                        "ENTRY POINTS:\n{entry_points}\n\n"
                        "PATTERNS USED: {patterns}\n\n"
                        "LIBRARIES: {libraries}\n\n"
                        "{focus}"
                        "CODE SAMPLES:\n{samples}\n\n"
                        "{history}"
                        "Return JSON with text (the complete, specific question), relatedFiles, keyPoints"
                        " (points a strong answer should mention) and codeSnippets (file, startLine, endLine,"
                        " relevance) pointing at real line ranges of the files above.\n"
                        "The question should be answerable by studying the provided code but require deep understanding."
                    ),
                ),
            ]
        )
        self._follow_up_prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{instructions}"),
                (
                    "human",
                    (
                        "Previous question: {question}\n\n"
                        "Candidate's answer: {answer}\n\n"
                        "Points they missed:\n{missed}\n\n"
                        "Related files: {related}\n\n"
                        "Generate a follow-up question that helps them think more deeply about what they missed."
                        " Return JSON with text, relatedFiles (same or related files), keyPoints (what they should"
                        " realize from this follow-up) and an empty codeSnippets list."
                    ),
                ),
            ]
        )
        self._chain = self._prompt | llm_runnable(
            self._route,
            self._schema,
            client=client,
            options={"temperature": 0.8, "max_tokens": 2048},
            predicate=_require_text_and_points,
        )
        self._follow_up_chain = self._follow_up_prompt | llm_runnable(
            self._route,
            self._schema,
            client=client,
            options={"temperature": 0.7, "max_tokens": 1024},
            predicate=_require_text_and_points,
        )

    def invoke(
        self,
        cache: AnalysisCache,
        *,
        asked_count: int = 0,
        recent_questions: Sequence[str] = (),
        focus_area: Optional[str] = None,
    ) -> Question:  # Draft a new question and cut its snippets from cached content
        paths = list(cache.file_contents)
        if focus_area:
            paths = [path for path in paths if focus_area in path]
        with gateway_errors("Question generator"):
            plan = self._chain.invoke(
                {
                    "instructions": QUESTION_GUIDANCE,
                    "summary": cache.summary,
                    "entry_points": "\n".join(cache.main_entry_points) or "(none identified)",
                    "patterns": ", ".join(cache.patterns) or "(none identified)",
                    "libraries": ", ".join(cache.libraries_used) or "(none identified)",
                    "focus": f"FOCUS AREA: Questions should relate to {focus_area}\n\n" if focus_area else "",
                    "samples": file_sections(
                        paths, cache.file_contents, per_file=SAMPLED_FILE_CHARS, max_files=MAX_SAMPLED_FILES
                    ),
                    "history": _history_block(asked_count, recent_questions),
                }
            )
        snippets = [snippet for snippet in (extract_snippet(cache, ref) for ref in plan.code_snippets) if snippet]
        if not snippets:
            fallback = leading_snippet(cache, plan.related_files, FALLBACK_SNIPPET_LINES)
            if fallback is not None:
                snippets.append(fallback)
        return Question(
            text=plan.text.strip(),
            related_files=list(plan.related_files),
            key_points=[point.strip() for point in plan.key_points if point.strip()],
            code_snippets=snippets,
        )

    def follow_up(
        self,
        cache: AnalysisCache,
        question: Question,
        answer: str,
        evaluation: Evaluation,
    ) -> Optional[Question]:  # Probe missed points; None when fewer than two were missed
        if len(evaluation.missed_points) < FOLLOW_UP_MIN_MISSED:
            return None
        with gateway_errors("Follow-up generator"):
            plan = self._follow_up_chain.invoke(
                {
                    "instructions": FOLLOW_UP_GUIDANCE,
                    "question": question.text,
                    "answer": answer.strip(),
                    "missed": bullet_list(evaluation.missed_points),
                    "related": ", ".join(question.related_files) or "(none)",
                }
            )
        snippets: List[CodeSnippet] = []
        for path in plan.related_files[:FOLLOW_UP_MAX_FILES]:
            snippet = leading_snippet(cache, [path], FOLLOW_UP_SNIPPET_LINES)
            if snippet is not None:
                snippets.append(snippet)
        return Question(
            text=plan.text.strip(),
            related_files=list(plan.related_files),
            key_points=[point.strip() for point in plan.key_points if point.strip()],
            code_snippets=snippets,
            follow_up_of=question.id,
        )


def extract_snippet(cache: AnalysisCache, ref: SnippetRef) -> Optional[CodeSnippet]:
    """Cut the literal 1-based inclusive range ``ref`` describes.

    Returns None for a missing file, a start before line 1 or past the end of
    the file, or an inverted range. An end past EOF is clamped to the last line.
    """
    content = cache.file_contents.get(ref.file)
    if not content:
        return None
    lines = content.splitlines()
    if ref.start_line < 1 or ref.end_line < ref.start_line or ref.start_line > len(lines):
        logger.debug("Dropping snippet %s:%d-%d", ref.file, ref.start_line, ref.end_line)
        return None
    end_line = min(ref.end_line, len(lines))
    return CodeSnippet(
        file=ref.file,
        start_line=ref.start_line,
        end_line=end_line,
        code="\n".join(lines[ref.start_line - 1 : end_line]),
        language=language_for_path(ref.file),
    )


def leading_snippet(cache: AnalysisCache, paths: Sequence[str], max_lines: int) -> Optional[CodeSnippet]:  # First lines of the first cached path
    for path in paths:
        content = cache.file_contents.get(path)
        if not content:
            continue
        lines = content.splitlines()
        end_line = min(len(lines), max_lines)
        return CodeSnippet(
            file=path,
            start_line=1,
            end_line=end_line,
            code="\n".join(lines[:end_line]),
            language=language_for_path(path),
        )
    return None


def _history_block(asked_count: int, recent_questions: Sequence[str]) -> str:
    if asked_count <= 0 and not recent_questions:
        return ""
    lines = [
        f"Note: {asked_count} questions have already been asked. Generate a NEW question on a DIFFERENT topic."
    ]
    recent = [clamp_text(text, limit=200) for text in recent_questions[-RECENT_QUESTION_WINDOW:] if text.strip()]
    if recent:
        lines.append("Do not repeat any of these earlier questions:")
        lines.extend(f"- {text}" for text in recent)
    return "\n".join(lines) + "\n\n"


__all__ = [
    "FOLLOW_UP_GUIDANCE",
    "QUESTION_AGENT_KEY",
    "QUESTION_GUIDANCE",
    "QuestionAgent",
    "QuestionPlan",
    "SnippetRef",
    "extract_snippet",
    "leading_snippet",
]
