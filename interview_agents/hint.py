from __future__ import annotations  # Hint agent producing graded free-text hints

import math
from textwrap import dedent
from typing import Any, Dict, Optional

from langchain_core.prompts import ChatPromptTemplate

from config import LlmRoute
from interview_session.models import AnalysisCache, Question
from llm_gateway import HttpClient, text_runnable
from .toolkit import file_sections, gateway_errors, numbered_list


HINT_AGENT_KEY = "interview.hint_generator"  # Registry key for hint generator configuration

MIN_HINT_LEVEL = 1
MAX_HINT_LEVEL = 3
MAX_CONTEXT_FILES = 2
CONTEXT_FILE_CHARS = 2000

HINT_LEVEL_GUIDANCE: Dict[int, str] = {
    1: dedent(
        """
        Give a SUBTLE hint that points them in the right direction without revealing the answer.
        - Mention which file or function to look at
        - Suggest what concept or pattern they should think about
        - DO NOT explain the actual answer
        """
    ).strip(),
    2: dedent(
        """
        Give a MORE DIRECT hint that helps them understand the approach.
        - Explain the general mechanism or pattern being used
        - Point to specific lines or sections to examine
        - Still don't give the complete answer
        """
    ).strip(),
    3: dedent(
        """
        Give a DETAILED hint that walks them through the reasoning.
        - Explain the key concept they need to understand
        - Show how different parts connect
        - Stop just short of the full answer
        """
    ).strip(),
}

HINT_LABELS = {1: "Gentle", 2: "Moderate", 3: "Strong"}


def clamp_hint_level(value: Any) -> int:
    """Coerce a requested hint level into 1..3.

    Integers clamp, floats truncate toward zero before clamping, and anything
    non-numeric (including None and NaN) falls back to level 1.
    """
    if isinstance(value, bool) or value is None:
        return MIN_HINT_LEVEL
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return MIN_HINT_LEVEL
    if isinstance(value, float):
        if math.isnan(value):
            return MIN_HINT_LEVEL
        if math.isinf(value):
            return MAX_HINT_LEVEL if value > 0 else MIN_HINT_LEVEL
        value = math.trunc(value)
    if not isinstance(value, int):
        return MIN_HINT_LEVEL
    return max(MIN_HINT_LEVEL, min(MAX_HINT_LEVEL, value))


def format_hint_message(hint: str, level: int) -> str:  # Label hint text by strength
    label = HINT_LABELS.get(clamp_hint_level(level), HINT_LABELS[MAX_HINT_LEVEL])
    return f"💡 **{label} Hint:**\n\n{hint}"


class HintAgent:  # Agent giving level-scaled hints without revealing answers
    def __init__(self, route: LlmRoute, *, client: Optional[HttpClient] = None) -> None:
        self._route = route
        self._prompt = ChatPromptTemplate.from_messages(
            [
                (
                    "system",
                    (
                        "You are a helpful technical mentor. A candidate is struggling with a technical interview"
                        " question. Your job is to give them a hint that helps them think through the problem"
                        " without just giving them the answer.\n\n"
                        "{guideline}\n\n"
                        "Be encouraging but don't be condescending. The goal is to help them learn and discover"
                        " the answer themselves."
                    ),
                ),
                (
                    "human",
                    (
                        "The candidate needs a hint for this question:\n\n"
                        "QUESTION: {question}\n\n"
                        "KEY POINTS THEY SHOULD DISCOVER:\n{key_points}\n\n"
                        "RELEVANT CODE:\n{code}\n\n"
                        "Generate a helpful hint (hint level {level} of 3)."
                    ),
                ),
            ]
        )
        self._chain = self._prompt | text_runnable(
            self._route,
            client=client,
            options={"temperature": 0.7, "max_tokens": 500},
        )

    def invoke(self, question: Question, cache: AnalysisCache, level: Any = 1) -> str:  # Produce hint text
        resolved = clamp_hint_level(level)
        with gateway_errors("Hint generator"):
            return self._chain.invoke(
                {
                    "guideline": HINT_LEVEL_GUIDANCE[resolved],
                    "question": question.text,
                    "key_points": numbered_list(question.key_points),
                    "code": file_sections(
                        question.related_files[:MAX_CONTEXT_FILES],
                        cache.file_contents,
                        per_file=CONTEXT_FILE_CHARS,
                    ),
                    "level": resolved,
                }
            )


__all__ = [
    "HINT_AGENT_KEY",
    "HINT_LEVEL_GUIDANCE",
    "HintAgent",
    "MAX_HINT_LEVEL",
    "MIN_HINT_LEVEL",
    "clamp_hint_level",
    "format_hint_message",
]
