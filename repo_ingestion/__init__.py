from __future__ import annotations  # Re-export repo_ingestion public API

from .github import GitHubSource, RepoRef, RepositorySource, TreeEntry, parse_github_url
from .ingestion import (
    FetchedRepo,
    IngestionLimits,
    RepoFile,
    build_file_tree,
    directories_from_structure,
    fetch_repository,
    in_scope,
    language_for_path,
    should_include,
)

__all__ = [
    "FetchedRepo",
    "GitHubSource",
    "IngestionLimits",
    "RepoFile",
    "RepoRef",
    "RepositorySource",
    "TreeEntry",
    "build_file_tree",
    "directories_from_structure",
    "fetch_repository",
    "in_scope",
    "language_for_path",
    "parse_github_url",
    "should_include",
]
