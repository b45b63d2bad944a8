from __future__ import annotations  # Answer evaluator agent with server-side score normalization

import math
from textwrap import dedent
from typing import List, Optional, Type

from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, ConfigDict, Field

from config import LlmRoute
from interview_session.models import AnalysisCache, Evaluation, Question
from llm_gateway import HttpClient, runnable as llm_runnable
from .toolkit import file_sections, gateway_errors, numbered_list


ANSWER_EVALUATOR_AGENT_KEY = "interview.answer_evaluator"  # Registry key for evaluator configuration

MAX_CONTEXT_FILES = 3
CONTEXT_FILE_CHARS = 3000
PASS_SCORE = 70
HINT_SCORE = 50

EVALUATOR_GUIDANCE = dedent(  # Strict-but-fair grading rubric
    """
    You are a strict but fair technical interviewer evaluating a candidate's answer about a codebase. Your evaluation should be:

    1. STRICT: The candidate should demonstrate actual understanding, not just regurgitate code
    2. FAIR: Give credit for partial understanding and correct insights
    3. SPECIFIC: Point out exactly what was missed or incorrect
    4. CONSTRUCTIVE: Feedback should help them understand what they missed

    Scoring guidelines:
    - 90-100: Excellent - Covered all key points with deep understanding
    - 70-89: Good - Covered most key points with solid understanding
    - 50-69: Partial - Some understanding but missed significant points
    - 30-49: Weak - Limited understanding, missed most key points
    - 0-29: Insufficient - Did not demonstrate meaningful understanding

    Be especially strict about:
    - Vague or generic answers that could apply to any codebase
    - Incorrect technical claims
    - Missing critical details that are clearly visible in the code
    """
).strip()


class EvaluationPlan(BaseModel):  # LLM-enforced evaluation payload, normalized before use
    model_config = ConfigDict(populate_by_name=True)

    score: float
    is_correct: bool = Field(default=False, alias="isCorrect")
    feedback: str
    missed_points: List[str] = Field(default_factory=list, alias="missedPoints")
    strengths: List[str] = Field(default_factory=list)
    needs_hint: bool = Field(default=False, alias="needsHint")


class AnswerEvaluatorAgent:  # Agent scoring a candidate answer against key points
    def __init__(
        self,
        route: LlmRoute,
        schema: Type[EvaluationPlan] = EvaluationPlan,
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
                        "Evaluate this answer:\n\n"
                        "QUESTION: {question}\n\n"
                        "EXPECTED KEY POINTS:\n{key_points}\n\n"
                        "RELEVANT CODE:\n{code}\n\n"
                        "CANDIDATE'S ANSWER:\n{answer}\n\n"
                        "Return JSON with score (0-100), isCorrect (true if score >= 70), feedback,"
                        " missedPoints, strengths, and needsHint (true if score < 50 and they seem stuck)."
                    ),
                ),
            ]
        )
        self._chain = self._prompt | llm_runnable(
            self._route,
            self._schema,
            client=client,
            options={"temperature": 0.3, "max_tokens": 1500},
        )

    def invoke(self, question: Question, answer: str, cache: AnalysisCache) -> Evaluation:  # Grade one answer
        with gateway_errors("Answer evaluator"):
            plan = self._chain.invoke(
                {
                    "instructions": EVALUATOR_GUIDANCE,
                    "question": question.text,
                    "key_points": numbered_list(question.key_points),
                    "code": file_sections(
                        question.related_files[:MAX_CONTEXT_FILES],
                        cache.file_contents,
                        per_file=CONTEXT_FILE_CHARS,
                    ),
                    "answer": answer.strip(),
                }
            )
        return normalize_evaluation(plan)


def normalize_evaluation(plan: EvaluationPlan) -> Evaluation:  # Clamp score and recompute derived flags
    score = clamp_score(plan.score)
    return Evaluation(
        score=score,
        is_correct=score >= PASS_SCORE,
        feedback=plan.feedback.strip(),
        missed_points=[item.strip() for item in plan.missed_points if item.strip()],
        strengths=[item.strip() for item in plan.strengths if item.strip()],
        needs_hint=plan.needs_hint or score < HINT_SCORE,
    )


def clamp_score(raw: float) -> int:
    if math.isnan(raw):
        return 0
    return int(round(max(0.0, min(100.0, raw))))


def format_evaluation_message(evaluation: Evaluation) -> str:  # Render chat text for an evaluation
    if evaluation.is_correct:
        emoji = "✅"
    elif evaluation.score >= HINT_SCORE:
        emoji = "🔶"
    else:
        emoji = "❌"
    if evaluation.score >= 90:
        label = "Excellent!"
    elif evaluation.score >= 70:
        label = "Good!"
    elif evaluation.score >= 50:
        label = "Partial understanding"
    elif evaluation.score >= 30:
        label = "Needs improvement"
    else:
        label = "Keep studying"

    parts = [f"{emoji} **Score: {evaluation.score}/100** - {label}\n\n", f"{evaluation.feedback}\n\n"]
    if evaluation.strengths:
        parts.append("**What you got right:**\n")
        parts.extend(f"- {item}\n" for item in evaluation.strengths)
        parts.append("\n")
    if evaluation.missed_points:
        parts.append("**Areas to improve:**\n")
        parts.extend(f"- {item}\n" for item in evaluation.missed_points)
        parts.append("\n")
    if evaluation.needs_hint:
        parts.append("\n💡 *Type \"hint\" if you'd like a hint to better understand this concept.*")
    return "".join(parts)


__all__ = [
    "ANSWER_EVALUATOR_AGENT_KEY",
    "AnswerEvaluatorAgent",
    "EVALUATOR_GUIDANCE",
    "EvaluationPlan",
    "clamp_score",
    "format_evaluation_message",
    "normalize_evaluation",
]
