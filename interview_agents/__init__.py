from __future__ import annotations  # Agent exports for the repository interview

from .analyzer import (
    REPO_ANALYZER_AGENT_KEY,
    AnalysisPlan,
    RepoAnalyzerAgent,
    find_related_files,
    get_file_content,
)
from .annotator import CODE_ANNOTATOR_AGENT_KEY, AnnotatedBatch, AnnotationPlan, CodeAnnotatorAgent
from .evaluator import (
    ANSWER_EVALUATOR_AGENT_KEY,
    AnswerEvaluatorAgent,
    EvaluationPlan,
    format_evaluation_message,
    normalize_evaluation,
)
from .hint import HINT_AGENT_KEY, HintAgent, clamp_hint_level, format_hint_message
from .question import QUESTION_AGENT_KEY, QuestionAgent, QuestionPlan, SnippetRef, extract_snippet

__all__ = [
    "ANSWER_EVALUATOR_AGENT_KEY",
    "AnalysisPlan",
    "AnnotatedBatch",
    "AnnotationPlan",
    "AnswerEvaluatorAgent",
    "CODE_ANNOTATOR_AGENT_KEY",
    "CodeAnnotatorAgent",
    "EvaluationPlan",
    "HINT_AGENT_KEY",
    "HintAgent",
    "QUESTION_AGENT_KEY",
    "QuestionAgent",
    "QuestionPlan",
    "REPO_ANALYZER_AGENT_KEY",
    "RepoAnalyzerAgent",
    "SnippetRef",
    "clamp_hint_level",
    "extract_snippet",
    "find_related_files",
    "format_evaluation_message",
    "format_hint_message",
    "get_file_content",
    "normalize_evaluation",
]
