from __future__ import annotations  # Scoped repository fetch with explicit worklist

import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, List, Sequence, Tuple

from pydantic import BaseModel, Field

from interview_session.errors import InterviewError, ValidationError
from interview_session.models import FileNode
from observability import span

from .github import RepoRef, RepositorySource, TreeEntry, parse_github_url


logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 100_000
MAX_REPO_FILES = 500

EXCLUDE_DIRS = frozenset(
    {
        "node_modules", ".git", "dist", "build", ".next", "venv",
        "__pycache__", ".venv", "target", "bin", "obj", "coverage",
        ".cache", ".husky", ".vscode", ".idea",
    }
)
BINARY_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".woff", ".woff2",
    ".ttf", ".eot", ".pdf", ".zip", ".tar", ".gz", ".exe", ".dll",
    ".so", ".dylib", ".mp3", ".mp4", ".wav", ".webp", ".bmp",
)
ALLOWED_HIDDEN_PREFIXES = (".env.example", ".gitignore", ".eslintrc", ".prettierrc")

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    "ts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "jsx": "jsx",
    "py": "python",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "java": "java",
    "kt": "kotlin",
    "swift": "swift",
    "c": "c",
    "cpp": "cpp",
    "h": "c",
    "hpp": "cpp",
    "cs": "csharp",
    "php": "php",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "sass": "sass",
    "less": "less",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "xml": "xml",
    "md": "markdown",
    "sql": "sql",
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "dockerfile": "dockerfile",
    "makefile": "makefile",
    "vue": "vue",
    "svelte": "svelte",
}


class RepoFile(BaseModel):  # Decoded file fetched from the repository
    path: str
    content: str
    language: str
    size: int


class FetchedRepo(BaseModel):  # Result of a scoped fetch
    owner: str
    name: str
    default_branch: str
    files: List[RepoFile] = Field(default_factory=list)
    structure: List[FileNode] = Field(default_factory=list)
    total_bytes: int = 0


@dataclass(frozen=True)
class IngestionLimits:  # Per-fetch size and count caps
    max_file_size: int = MAX_FILE_SIZE
    max_files: int = MAX_REPO_FILES


@dataclass(frozen=True)
class _Accumulated:  # Immutable fetch progress threaded through the loop
    files: Tuple[RepoFile, ...] = ()
    total_bytes: int = 0

    def with_file(self, item: RepoFile) -> "_Accumulated":
        return replace(self, files=self.files + (item,), total_bytes=self.total_bytes + item.size)


def language_for_path(path: str) -> str:  # Map file name to a highlighting language
    name = path.rsplit("/", 1)[-1]
    extension = name.rsplit(".", 1)[-1].lower()
    return LANGUAGE_BY_EXTENSION.get(extension, "text")


def should_include(path: str) -> bool:  # Exclusion rules for directories and files
    parts = path.split("/")
    if any(part in EXCLUDE_DIRS for part in parts):
        return False
    name = parts[-1].lower()
    if name.endswith(BINARY_EXTENSIONS):
        return False
    if name.startswith(".") and not name.startswith(ALLOWED_HIDDEN_PREFIXES):
        return False
    return True


def in_scope(path: str, directories: Sequence[str]) -> bool:  # Symmetric prefix test against the requested scope
    if not directories:
        return True
    normalized = path.strip("/")
    if not normalized:
        return True
    for directory in directories:
        wanted = directory.strip("/")
        if normalized.startswith(wanted) or wanted.startswith(normalized):
            return True
    return False


def build_file_tree(files: Sequence[RepoFile]) -> List[FileNode]:  # Nest flat paths into directory nodes
    root: List[FileNode] = []
    directories: Dict[str, FileNode] = {}
    for item in sorted(files, key=lambda f: f.path):
        parts = item.path.split("/")
        level = root
        current = ""
        for index, part in enumerate(parts):
            current = f"{current}/{part}" if current else part
            if index == len(parts) - 1:
                level.append(
                    FileNode(path=item.path, name=part, type="file", language=item.language, size=item.size)
                )
                continue
            node = directories.get(current)
            if node is None:
                node = FileNode(path=current, name=part, type="directory", children=[])
                directories[current] = node
                level.append(node)
            level = node.children  # type: ignore[assignment]
    return root


def directories_from_structure(structure: Sequence[FileNode]) -> List[str]:  # Depth-first directory paths
    found: List[str] = []
    stack: List[Tuple[FileNode, str]] = [(node, "") for node in reversed(structure)]
    while stack:
        node, prefix = stack.pop()
        if node.type != "directory":
            continue
        path = f"{prefix}/{node.name}" if prefix else node.name
        found.append(path)
        for child in reversed(node.children or []):
            stack.append((child, path))
    return found


def fetch_repository(
    source: RepositorySource,
    repo_url: str,
    directories: Sequence[str] = (),
    limits: IngestionLimits = IngestionLimits(),
) -> FetchedRepo:
    """Fetch every in-scope text file of a repository.

    Directories are walked from an explicit worklist. Failure to list the
    top-level path propagates; failures on subdirectories or single files are
    logged and skipped. Stops once ``limits.max_files`` files are collected.
    """
    repo = parse_github_url(repo_url)
    if repo is None:
        raise ValidationError("Invalid GitHub URL")

    with span("ingest", None, repo=repo.slug):
        branch = source.default_branch(repo)
        worklist: Deque[str] = deque([""])
        accumulated = _Accumulated()
        while worklist and len(accumulated.files) < limits.max_files:
            path = worklist.popleft()
            try:
                entries = source.list_tree(repo, path, branch)
            except InterviewError as exc:
                if not path:
                    raise
                logger.warning("Skipping directory %s of %s: %s", path, repo.slug, exc)
                continue
            accumulated = _collect(source, repo, branch, entries, directories, limits, worklist, accumulated)

    files = list(accumulated.files)
    logger.info("Fetched %d files (%d bytes) from %s", len(files), accumulated.total_bytes, repo.slug)
    return FetchedRepo(
        owner=repo.owner,
        name=repo.name,
        default_branch=branch,
        files=files,
        structure=build_file_tree(files),
        total_bytes=accumulated.total_bytes,
    )


def _collect(
    source: RepositorySource,
    repo: RepoRef,
    branch: str,
    entries: Sequence[TreeEntry],
    directories: Sequence[str],
    limits: IngestionLimits,
    worklist: Deque[str],
    accumulated: _Accumulated,
) -> _Accumulated:  # Read files of one listing and queue its subdirectories
    for entry in entries:
        if len(accumulated.files) >= limits.max_files:
            break
        if not should_include(entry.path) or not in_scope(entry.path, directories):
            continue
        if entry.type == "dir":
            worklist.append(entry.path)
            continue
        if entry.type != "file" or entry.size > limits.max_file_size:
            continue
        try:
            raw = source.read_file(repo, entry.path, branch)
        except InterviewError as exc:
            logger.warning("Skipping file %s of %s: %s", entry.path, repo.slug, exc)
            continue
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping non-UTF-8 file %s", entry.path)
            continue
        accumulated = accumulated.with_file(
            RepoFile(
                path=entry.path,
                content=content,
                language=language_for_path(entry.path),
                size=entry.size or len(raw),
            )
        )
    return accumulated


__all__ = [
    "BINARY_EXTENSIONS",
    "EXCLUDE_DIRS",
    "FetchedRepo",
    "IngestionLimits",
    "RepoFile",
    "build_file_tree",
    "directories_from_structure",
    "fetch_repository",
    "in_scope",
    "language_for_path",
    "should_include",
]
