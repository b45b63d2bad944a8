from __future__ import annotations  # Repository analyzer agent building the analysis cache

from textwrap import dedent
from typing import Any, Dict, List, Optional, Set, Type

from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, ConfigDict, Field

from config import LlmRoute
from interview_session.models import AnalysisCache
from llm_gateway import HttpClient, runnable as llm_runnable
from repo_ingestion import FetchedRepo, RepoFile
from .toolkit import gateway_errors


REPO_ANALYZER_AGENT_KEY = "interview.repo_analyzer"  # Registry key for analyzer configuration

MAX_KEY_FILES = 15
KEY_FILE_CHARS = 3000
MAX_OTHER_FILES = 10
OTHER_FILE_CHARS = 2000

KEY_FILE_MARKERS = ("package.json", "requirements.txt", "cargo.toml", "go.mod", "/api/", "/routes/")
KEY_FILE_SUFFIXES = (
    "readme.md",
    "index.ts",
    "index.js",
    "main.ts",
    "main.js",
    "app.ts",
    "app.js",
    "server.ts",
    "server.js",
)
SOURCE_LANGUAGES = {"typescript", "javascript", "python", "go", "rust"}

ANALYZER_GUIDANCE = dedent(  # System prompt for repository analysis
    """
    You are an expert code analyst. Analyze the repository structure and code to understand:
    1. Main entry points and their purposes
    2. Dependencies between files and modules
    3. Design patterns and architectural patterns used
    4. Key libraries and frameworks
    5. Overall purpose and architecture

    Be thorough and technical. Focus on understanding how the codebase works.
    """
).strip()


class AnalysisPlan(BaseModel):  # LLM-enforced analysis payload
    model_config = ConfigDict(populate_by_name=True)

    main_entry_points: List[str] = Field(alias="mainEntryPoints")
    dependencies: Dict[str, List[str]]
    patterns: List[str]
    libraries_used: List[str] = Field(alias="librariesUsed")
    summary: str


def _require_summary(plan: Any) -> Optional[str]:
    if not plan.summary.strip():
        return "summary must not be empty"
    return None


class RepoAnalyzerAgent:  # Agent summarizing a fetched repository
    def __init__(
        self,
        route: LlmRoute,
        schema: Type[AnalysisPlan] = AnalysisPlan,
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
                        "Analyze this repository: {repo_slug}\n\n"
                        "FILE STRUCTURE:\n{file_list}\n\n"
                        "KEY FILES:\n{key_files}\n\n"
                        "OTHER IMPORTANT FILES:\n{other_files}\n\n"
                        "Return JSON with mainEntryPoints (entry point files with brief descriptions),"
                        " dependencies (file path mapped to the files it depends on), patterns, librariesUsed"
                        " (key libraries with their purposes) and summary (a thorough 3-5 paragraph summary of"
                        " the architecture, how it works, and key technical decisions)."
                    ),
                ),
            ]
        )
        self._chain = self._prompt | llm_runnable(
            self._route,
            self._schema,
            client=client,
            options={"temperature": 0.3, "max_tokens": 4096},
            predicate=_require_summary,
        )

    def invoke(self, repo: FetchedRepo) -> AnalysisCache:  # Analyze fetched files into a cache entry
        key_files = select_key_files(repo.files)
        key_paths = {item.path for item in key_files}
        other_files = [
            item for item in repo.files if item.path not in key_paths and item.language in SOURCE_LANGUAGES
        ][:MAX_OTHER_FILES]
        with gateway_errors("Repository analyzer"):
            plan = self._chain.invoke(
                {
                    "instructions": ANALYZER_GUIDANCE,
                    "repo_slug": f"{repo.owner}/{repo.name}",
                    "file_list": "\n".join(f"- {f.path} ({f.language}, {f.size} bytes)" for f in repo.files),
                    "key_files": _render(key_files, KEY_FILE_CHARS),
                    "other_files": _render(other_files, OTHER_FILE_CHARS),
                }
            )
        return AnalysisCache(
            structure=repo.structure,
            main_entry_points=[item.strip() for item in plan.main_entry_points if item.strip()],
            dependencies={path: list(deps) for path, deps in plan.dependencies.items()},
            patterns=[item.strip() for item in plan.patterns if item.strip()],
            libraries_used=[item.strip() for item in plan.libraries_used if item.strip()],
            summary=plan.summary.strip(),
            file_contents={item.path: item.content for item in repo.files},
        )


def select_key_files(files: List[RepoFile]) -> List[RepoFile]:  # Manifests, entry points and API/route files
    selected: List[RepoFile] = []
    for item in files:
        name = item.path.lower()
        if any(marker in name for marker in KEY_FILE_MARKERS) or name.endswith(KEY_FILE_SUFFIXES):
            selected.append(item)
            if len(selected) >= MAX_KEY_FILES:
                break
    return selected


def get_file_content(cache: AnalysisCache, path: str) -> Optional[str]:
    return cache.file_contents.get(path) or None


def find_related_files(cache: AnalysisCache, path: str, max_depth: int = 2) -> List[str]:
    """Walk the dependency graph from ``path`` in both directions.

    Forward edges follow the files ``path`` depends on; reverse edges collect
    files that depend on it. Traversal stops past ``max_depth`` hops.
    """
    related: Dict[str, None] = {}
    visited: Set[str] = set()

    def traverse(current: str, depth: int) -> None:
        if depth > max_depth or current in visited:
            return
        visited.add(current)
        for dependency in cache.dependencies.get(current, []):
            related[dependency] = None
            traverse(dependency, depth + 1)
        for dependent, targets in cache.dependencies.items():
            if current in targets:
                related[dependent] = None
                if depth < max_depth:
                    traverse(dependent, depth + 1)

    traverse(path, 0)
    related.pop(path, None)
    return list(related)


def _render(files: List[RepoFile], limit: int) -> str:
    if not files:
        return "(none)"
    return "\n\n".join(f"=== {item.path} ===\n{item.content[:limit]}" for item in files)


__all__ = [
    "ANALYZER_GUIDANCE",
    "AnalysisPlan",
    "REPO_ANALYZER_AGENT_KEY",
    "RepoAnalyzerAgent",
    "find_related_files",
    "get_file_content",
    "select_key_files",
]
